"""JSON report output."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

from journeyqa.models.records import RunRecord
from journeyqa.reporter.regression_detector import Regression


def generate_json_report(
    record: RunRecord,
    regressions: list[Regression],
    output_path: Path,
) -> None:
    report = record.model_dump(mode="json")
    report["regressions"] = [asdict(r) for r in regressions]

    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
