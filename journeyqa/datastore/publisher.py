"""Results publisher — writes run, journey and step rows to the datastore."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, TypeVar

from journeyqa.models.config import DatastoreConfig
from journeyqa.models.records import Journey, RunRecord, Step, TestRun

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResultsPublisher:
    """Writes execution records; never raises into the test run.

    The run row is inserted when the run starts (``completed_at`` NULL),
    each journey and its steps are inserted as the journey completes, and
    the run row is updated with totals at the end. A run whose process dies
    midway therefore stays visible with ``completed_at`` NULL and only the
    journeys that finished.
    """

    def __init__(
        self,
        client: Any,
        config: DatastoreConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        config = config or DatastoreConfig()
        self.client = client
        self.max_retries = max(1, config.max_retries)
        self.retry_delay = config.retry_delay_seconds
        self._sleep = sleep
        self.enabled = client is not None
        self.current_run_id: Optional[str] = None
        if not self.enabled:
            logger.warning("Publisher: no datastore client, result publishing disabled")

    def _with_retry(self, label: str, fn: Callable[[], T]) -> T:
        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return fn()
            except Exception as e:
                last_error = e
                if attempt < self.max_retries:
                    logger.warning("Publisher: %s attempt %d failed (%s), retrying in %.1fs",
                                   label, attempt, e, self.retry_delay)
                    self._sleep(self.retry_delay)
        assert last_error is not None
        raise last_error

    def start_run(self, run: TestRun) -> Optional[str]:
        """Insert the run row. A failure disables the publisher for the session."""
        if not self.enabled:
            return None
        row = run.model_dump(include={
            "run_id", "executed_at", "framework", "environment", "metadata",
        })
        try:
            self._with_retry("start_run", lambda: self.client.table("test_runs").insert(row).execute())
        except Exception as e:
            logger.error("Publisher: failed to start run, disabling: %s", e)
            self.enabled = False
            return None
        self.current_run_id = run.run_id
        logger.info("Publisher: run %s created", run.run_id)
        return run.run_id

    def log_journey(self, journey: Journey) -> Optional[str]:
        """Insert a journey row, then its steps in one batch."""
        if not self.enabled or not self.current_run_id:
            logger.debug("Publisher: disabled or no active run, skipping journey")
            return None
        row = journey.model_dump(exclude={"steps", "journey_id"})
        row["run_id"] = self.current_run_id
        row["total_steps"] = len(journey.steps)
        row["passed_steps"] = sum(1 for s in journey.steps if s.status == "PASSED")
        row["failed_steps"] = sum(1 for s in journey.steps if s.status == "FAILED")
        try:
            response = self._with_retry(
                "log_journey", lambda: self.client.table("journeys").insert(row).execute(),
            )
        except Exception as e:
            logger.error("Publisher: failed to log journey %s: %s", journey.journey_name, e)
            return None

        data = response.data or []
        journey_id = data[0].get("journey_id") if data else None
        if journey_id is None:
            logger.error("Publisher: journey insert returned no id for %s", journey.journey_name)
            return None
        if journey.steps:
            self.log_steps(journey_id, journey.steps)
        return journey_id

    def log_steps(self, journey_id: str, steps: list[Step]) -> bool:
        rows = []
        for index, step in enumerate(steps):
            row = step.model_dump(exclude={"journey_number"})
            row.update(
                journey_id=journey_id,
                run_id=self.current_run_id,
                step_number=index + 1,
            )
            rows.append(row)
        try:
            self._with_retry("log_steps", lambda: self.client.table("steps").insert(rows).execute())
        except Exception as e:
            logger.error("Publisher: failed to log %d steps: %s", len(rows), e)
            return False
        logger.debug("Publisher: %d steps logged for journey %s", len(rows), journey_id)
        return True

    def complete_run(self, run: TestRun) -> bool:
        """Write completion time and totals onto the run row."""
        if not self.enabled or not self.current_run_id:
            return False
        success = round(run.passed_steps / run.total_steps * 100, 2) if run.total_steps else 0.0
        update = {
            "completed_at": run.completed_at,
            "total_runtime_ms": run.total_runtime_ms,
            "total_journeys": run.total_journeys,
            "passed_journeys": run.passed_journeys,
            "failed_journeys": run.failed_journeys,
            "total_steps": run.total_steps,
            "passed_steps": run.passed_steps,
            "failed_steps": run.failed_steps,
            "success_rate": success,
        }
        run_id = self.current_run_id
        try:
            self._with_retry(
                "complete_run",
                lambda: self.client.table("test_runs").update(update).eq("run_id", run_id).execute(),
            )
        except Exception as e:
            logger.error("Publisher: failed to complete run %s: %s", run_id, e)
            return False
        logger.info("Publisher: run %s completed (success rate %.2f%%)", run_id, success)
        self.current_run_id = None
        return True

    def publish(self, record: RunRecord) -> Optional[str]:
        """Write a complete run record in one go."""
        if not self.enabled:
            return None
        run_id = self.start_run(record.run)
        if not run_id:
            return None
        for journey in record.journeys:
            self.log_journey(journey)
        self.complete_run(record.run)
        return run_id

    def ingest_raw_log(self, record: RunRecord, source: str = "local") -> Optional[str]:
        """Store the full record as an immutable raw payload."""
        if not self.enabled:
            return None
        row = {
            "raw_payload": record.model_dump(mode="json"),
            "run_id": record.run.run_id,
            "framework": record.run.framework,
            "environment": record.run.environment,
            "executed_at": record.run.executed_at,
            "ingestion_source": source,
            "processed": False,
        }
        try:
            response = self._with_retry(
                "ingest_raw_log", lambda: self.client.table("raw_test_logs").insert(row).execute(),
            )
        except Exception as e:
            logger.error("Publisher: failed to ingest raw log: %s", e)
            return None
        data = response.data or []
        return data[0].get("log_id") if data else None
