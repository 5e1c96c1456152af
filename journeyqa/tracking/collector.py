"""Execution collector — builds run/journey/step records during a test run."""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Callable, Optional, Sequence

from journeyqa.models.records import ApiCall, Journey, RunRecord, Step, TestRun

logger = logging.getLogger(__name__)

MAX_RESPONSE_BODY = 1000


def iso_timestamp(ts: float | None = None) -> str:
    ts = time.time() if ts is None else ts
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(ts))


def extract_failure_reason(
    step_name: str, error_type: str | None, error_message: str | None,
) -> str:
    """Map a technical error to a short business-facing failure reason."""
    message = (error_message or "").lower()
    error_type = error_type or ""
    if not error_type and not message:
        return "Unknown failure"
    if "timeout" in message:
        return "Page or element took too long to respond"
    if "not found" in message or "locator" in message:
        return "Required page element was not found"
    if "click" in message:
        return "Unable to interact with page element"
    if "network" in message:
        return "Network connectivity issue"
    if "navigation" in message:
        return "Page navigation failed"
    if "detached" in message:
        return "Page element became detached from DOM"
    if "Assertion" in error_type:
        return "Assertion failed - expected condition not met"
    return f"{step_name} failed: {error_type}"


def truncate_body(body: Any) -> Optional[str]:
    if body is None or body == "":
        return None
    if not isinstance(body, str):
        try:
            body = json.dumps(body)
        except (TypeError, ValueError):
            return "Unable to serialize response body"
    if len(body) > MAX_RESPONSE_BODY:
        return body[:MAX_RESPONSE_BODY - 3] + "..."
    return body


def sanitize_api_calls(calls: list[dict]) -> list[ApiCall]:
    """Keep response bodies only for failed calls (status >= 400), truncated."""
    sanitized = []
    for call in calls:
        status = int(call.get("status") or 0)
        sanitized.append(ApiCall(
            url=call.get("url", ""),
            method=call.get("method", "GET"),
            status=status,
            duration_ms=max(0, int(call.get("duration_ms") or 0)),
            response_body=truncate_body(call.get("response_body")) if status >= 400 else None,
        ))
    return sanitized


class StepNamer:
    """Turns step phrases into ``Area: Action`` names for the dashboard.

    Each rule is a tuple of lowercase keywords and the name it yields; the
    first rule whose keywords all occur in the phrase wins. Phrases no rule
    matches are kept as they are.
    """

    RULES: tuple[tuple[tuple[str, ...], str], ...] = (
        (("explore the home page",), "Home Page Exploration: Browse Home Page"),
        (("search for",), "Product Discovery: Search Products"),
        (("deliverable product",), "Delivery Setup: Select Date & Time Slot"),
        (("open the product",), "Product Selection: Open Product Page"),
        (("try the coupon",), "Coupon Management: Validate Coupons"),
        (("check out to the payment page",), "Payment Process: Proceed to Payment"),
        (("log in with", "one-time code"), "User Authentication: Email OTP Login"),
        (("journey should pass",), "Verification: Journey Passed"),
        (("should be recorded",), "Verification: Journey State Recorded"),
    )

    def __init__(self, rules: Optional[Sequence[tuple[tuple[str, ...], str]]] = None):
        self.rules = list(self.RULES if rules is None else rules)

    def name(self, phrase: str) -> str:
        if not phrase or not phrase.strip():
            return "Unknown Step"
        lowered = phrase.lower()
        for keywords, business_name in self.rules:
            if all(k in lowered for k in keywords):
                return business_name
        return phrase


class ExecutionCollector:
    """Collects journeys and steps for one run.

    Created per run and passed into flows explicitly. The lifecycle is
    ``start_run`` → (``start_journey`` → ``add_step``* → ``complete_journey``)*
    → ``build_record``.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        namer: Optional[StepNamer] = None,
    ):
        self._clock = clock
        self.namer = namer or StepNamer()
        self.reset()

    def reset(self) -> None:
        self.run: TestRun | None = None
        self.journeys: list[Journey] = []
        self.current: Journey | None = None
        self.page_loads: list[dict[str, Any]] = []
        self._run_start: float | None = None
        self._journey_start: float | None = None

    def start_run(
        self,
        system: str = "DESKTOP",
        environment: str = "dev",
        framework: str = "playwright",
        metadata: dict[str, Any] | None = None,
    ) -> TestRun:
        self.reset()
        self._run_start = self._clock()
        run_id = str(uuid.uuid4())
        self.run = TestRun(
            run_id=run_id,
            executed_at=iso_timestamp(self._run_start),
            framework=framework,
            environment=environment,
            metadata={
                "system": system,
                "readable_run_id": f"{system}-{time.strftime('%Y%m%d-%H%M%S', time.gmtime(self._run_start))}",
                **(metadata or {}),
            },
        )
        logger.info("Collector: run %s initialized (%s/%s)", run_id, system, environment)
        return self.run

    def start_journey(self, number: int, name: str, description: str = "") -> Journey:
        if self.run is None:
            raise RuntimeError("start_run() must be called before start_journey()")
        if self.current is not None:
            logger.warning("Collector: journey '%s' was not completed, closing it",
                           self.current.journey_name)
            self.complete_journey()
        self._journey_start = self._clock()
        self.current = Journey(
            run_id=self.run.run_id,
            journey_number=number,
            journey_name=name,
            journey_description=description or name,
            status="PASSED",
            start_time=iso_timestamp(self._journey_start),
        )
        logger.info("Collector: started journey %d: %s", number, name)
        return self.current

    def add_step(
        self,
        name: str,
        status: str,
        duration_ms: int = 0,
        started_at: float | None = None,
        category: str = "navigation",
        error: BaseException | None = None,
        api_calls: list[dict] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Step | None:
        if self.current is None:
            logger.warning("Collector: no active journey, dropping step '%s'", name)
            return None

        name = self.namer.name(name)
        started_at = self._clock() if started_at is None else started_at
        duration_ms = max(0, int(duration_ms))
        error_type = type(error).__name__ if error is not None else None
        error_message = str(error) if error is not None else None

        step = Step(
            run_id=self.current.run_id,
            journey_number=self.current.journey_number,
            step_number=len(self.current.steps) + 1,
            step_name=name,
            step_category=category,
            status=status,
            start_time=iso_timestamp(started_at),
            end_time=iso_timestamp(started_at + duration_ms / 1000),
            duration_ms=duration_ms,
            error_type=error_type,
            error_message=error_message,
            api_calls=sanitize_api_calls(api_calls or []),
            metadata=metadata or {},
        )
        self.current.steps.append(step)
        self.current.total_steps += 1
        if status == "PASSED":
            self.current.passed_steps += 1
        elif status == "FAILED":
            self.current.failed_steps += 1
            self.current.status = "FAILED"
            if self.current.failure_reason is None:
                self.current.failure_reason = extract_failure_reason(name, error_type, error_message)
                self.current.error_type = error_type or "UnknownError"
                self.current.error_message = error_message or "Unknown error occurred"
        return step

    def record_page_load(self, label: str, load_time_ms: int) -> None:
        self.page_loads.append({
            "label": label,
            "load_time_ms": int(load_time_ms),
            "journey_number": self.current.journey_number if self.current else None,
            "recorded_at": iso_timestamp(self._clock()),
        })

    def complete_journey(self) -> Journey | None:
        if self.current is None:
            logger.warning("Collector: no active journey to complete")
            return None
        end = self._clock()
        self.current.end_time = iso_timestamp(end)
        self.current.duration_ms = max(0, int((end - (self._journey_start or end)) * 1000))
        journey = self.current
        self.journeys.append(journey)
        self.current = None
        logger.info("Collector: completed journey %d: %s (%s, %d steps, %dms)",
                    journey.journey_number, journey.journey_name, journey.status,
                    journey.total_steps, journey.duration_ms)
        return journey

    def summary(self) -> dict[str, Any]:
        total_steps = sum(j.total_steps for j in self.journeys)
        passed_steps = sum(j.passed_steps for j in self.journeys)
        return {
            "total_journeys": len(self.journeys),
            "passed_journeys": sum(1 for j in self.journeys if j.status == "PASSED"),
            "failed_journeys": sum(1 for j in self.journeys if j.status == "FAILED"),
            "total_steps": total_steps,
            "passed_steps": passed_steps,
            "failed_steps": sum(j.failed_steps for j in self.journeys),
            "success_rate": round(passed_steps / total_steps * 100, 2) if total_steps else 0.0,
        }

    def build_record(self) -> RunRecord:
        """Close the run and return the complete record."""
        if self.run is None:
            raise RuntimeError("No run in progress")
        if self.current is not None:
            self.complete_journey()
        end = self._clock()
        summary = self.summary()
        run = self.run.model_copy(update={
            **summary,
            "completed_at": iso_timestamp(end),
            "total_runtime_ms": max(0, int((end - (self._run_start or end)) * 1000)),
        })
        logger.info("Collector: %d journeys, %d passed, %d failed, success rate %.2f%%",
                    summary["total_journeys"], summary["passed_journeys"],
                    summary["failed_journeys"], summary["success_rate"])
        return RunRecord(run=run, journeys=list(self.journeys), page_loads=list(self.page_loads))
