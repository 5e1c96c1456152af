"""Run orchestrator — wires config into runner, publisher, mailbox and reports."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from journeyqa.datastore.client import get_client
from journeyqa.datastore.publisher import ResultsPublisher
from journeyqa.datastore.test_data_service import TestDataService
from journeyqa.executor.runner import JourneyRunner
from journeyqa.mail.otp_client import GmailOtpClient
from journeyqa.models.config import FrameworkConfig
from journeyqa.models.records import RunRecord
from journeyqa.reporter.reporter import Reporter
from journeyqa.tracking.collector import ExecutionCollector

logger = logging.getLogger(__name__)


class Orchestrator:
    """Coordinates a journey run end to end."""

    def __init__(self, config: FrameworkConfig, publish: bool = True):
        self.config = config
        self.output_dir = Path(config.report_output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.client = None
        if publish and config.datastore.enabled:
            try:
                self.client = get_client(config.datastore)
            except Exception as e:
                logger.warning("Datastore unavailable: %s. Results will only be reported locally.", e)

        self.otp_client: Optional[GmailOtpClient] = (
            GmailOtpClient(config.mailbox) if config.mailbox else None
        )

    def data_service(self) -> Optional[TestDataService]:
        return TestDataService(self.client) if self.client is not None else None

    def run(self, journeys: list[str] | None = None) -> dict:
        """Run the journeys, publish and report. Returns a summary dict."""
        return asyncio.run(self._run(journeys))

    async def _run(self, journeys: list[str] | None) -> dict:
        start = time.time()
        logger.info("=== Starting journey run against %s ===", self.config.base_url)

        publisher = ResultsPublisher(self.client, self.config.datastore) if self.client else None
        runner = JourneyRunner(
            self.config,
            collector=ExecutionCollector(),
            publisher=publisher,
            otp_client=self.otp_client,
            evidence_root=self.output_dir / "evidence",
        )
        record = await runner.run(journeys)

        if publisher and publisher.enabled:
            publisher.ingest_raw_log(record)

        reports = Reporter(self.config).generate_reports(record, output_dir=self.output_dir)
        logger.info("=== Run complete in %.1fs ===", time.time() - start)
        return self._summary(record, reports, published=bool(publisher and publisher.enabled))

    @staticmethod
    def _summary(record: RunRecord, reports: dict[str, str], published: bool) -> dict:
        run = record.run
        return {
            "run_id": run.run_id,
            "readable_run_id": run.readable_run_id,
            "duration_ms": run.total_runtime_ms,
            "journeys": [
                {
                    "number": j.journey_number,
                    "name": j.journey_name,
                    "status": j.status,
                    "steps": f"{j.passed_steps}/{j.total_steps}",
                    "duration_ms": j.duration_ms,
                    "failure_reason": j.failure_reason,
                }
                for j in record.journeys
            ],
            "results": {
                "total": run.total_journeys,
                "passed": run.passed_journeys,
                "failed": run.failed_journeys,
                "steps": run.total_steps,
                "success_rate": run.success_rate,
            },
            "reports": reports,
            "published": published,
            "summary": Reporter.basic_summary(record),
        }
