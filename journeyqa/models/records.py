"""Execution records persisted to the results datastore."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

StepStatus = Literal["PASSED", "FAILED", "RUNNING", "PENDING"]
JourneyStatus = Literal["PASSED", "FAILED", "RUNNING"]

STEP_STATUSES: tuple[str, ...] = ("PASSED", "FAILED", "RUNNING", "PENDING")


class ApiCall(BaseModel):
    url: str
    method: str = "GET"
    status: int = 0
    duration_ms: int = Field(default=0, ge=0)
    response_body: Optional[str] = None


class Step(BaseModel):
    """One recorded action or assertion within a journey."""
    run_id: str
    journey_id: Optional[str] = None
    journey_number: int = 0
    step_number: int = 0
    step_name: str
    step_category: str = "navigation"
    status: StepStatus = "PENDING"
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration_ms: int = Field(default=0, ge=0)
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    api_calls: list[ApiCall] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class Journey(BaseModel):
    """One named user flow within a run."""
    run_id: str
    journey_id: Optional[str] = None
    journey_number: int
    journey_name: str
    journey_description: str = ""
    status: JourneyStatus = "RUNNING"
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration_ms: int = Field(default=0, ge=0)
    total_steps: int = 0
    passed_steps: int = 0
    failed_steps: int = 0
    failure_reason: Optional[str] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    steps: list[Step] = Field(default_factory=list)


class TestRun(BaseModel):
    """One execution of the suite."""
    run_id: str
    executed_at: str
    completed_at: Optional[str] = None
    framework: str = "playwright"
    environment: str = "dev"
    total_journeys: int = 0
    passed_journeys: int = 0
    failed_journeys: int = 0
    total_steps: int = 0
    passed_steps: int = 0
    failed_steps: int = 0
    success_rate: float = 0.0
    total_runtime_ms: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def system(self) -> str:
        return str(self.metadata.get("system", ""))

    @property
    def readable_run_id(self) -> str:
        return str(self.metadata.get("readable_run_id") or self.run_id)


class RunRecord(BaseModel):
    """A complete run as produced by the runner: the run row plus its journeys."""
    run: TestRun
    journeys: list[Journey] = Field(default_factory=list)
    page_loads: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def steps(self) -> list[Step]:
        return [s for j in self.journeys for s in j.steps]
