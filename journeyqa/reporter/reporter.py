"""Report generation orchestration."""

from __future__ import annotations

import logging
from pathlib import Path

from journeyqa.models.config import FrameworkConfig
from journeyqa.models.records import RunRecord
from journeyqa.reporter.html_report import generate_html_report
from journeyqa.reporter.json_report import generate_json_report
from journeyqa.reporter.regression_detector import detect_regressions

logger = logging.getLogger(__name__)


def load_record(path: Path) -> RunRecord | None:
    """Load a previously written JSON report back into a run record."""
    try:
        return RunRecord.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except Exception as e:
        logger.warning("Could not load previous run from %s: %s", path, e)
        return None


def latest_report(output_dir: Path, exclude_run_id: str | None = None) -> Path | None:
    reports = sorted(
        (p for p in Path(output_dir).glob("report_*.json")
         if not exclude_run_id or exclude_run_id not in p.name),
        key=lambda p: p.stat().st_mtime,
    )
    return reports[-1] if reports else None


class Reporter:
    """Writes local reports for a run record."""

    def __init__(self, config: FrameworkConfig):
        self.config = config

    def generate_reports(
        self,
        record: RunRecord,
        previous: RunRecord | None = None,
        output_dir: Path | None = None,
    ) -> dict[str, str]:
        """Generate all configured report formats. Returns format -> file path."""
        out_dir = output_dir or Path(self.config.report_output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        generated = {}

        if previous is None:
            prev_path = latest_report(out_dir, exclude_run_id=record.run.run_id)
            previous = load_record(prev_path) if prev_path else None

        regressions = detect_regressions(previous, record) if previous else []
        name = f"report_{record.run.readable_run_id}_{record.run.run_id[:8]}"

        if "html" in self.config.report_formats:
            path = out_dir / f"{name}.html"
            generate_html_report(record, regressions, path)
            generated["html"] = str(path)
            logger.info("HTML report: %s", path)

        if "json" in self.config.report_formats:
            path = out_dir / f"{name}.json"
            generate_json_report(record, regressions, path)
            generated["json"] = str(path)
            logger.info("JSON report: %s", path)

        return generated

    @staticmethod
    def basic_summary(record: RunRecord) -> str:
        run = record.run
        parts = [
            f"{run.readable_run_id}: {run.total_journeys} journeys, {run.total_steps} steps "
            f"in {run.total_runtime_ms / 1000:.1f}s.",
            f"Journeys: {run.passed_journeys} passed, {run.failed_journeys} failed; "
            f"step success rate {run.success_rate:.2f}%.",
        ]
        failures = [j for j in record.journeys if j.status == "FAILED"]
        if failures:
            parts.append("Failed: " + ", ".join(
                f"{j.journey_name} ({j.failure_reason})" for j in failures[:5]
            ))
        return " ".join(parts)
