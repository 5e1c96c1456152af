"""Aggregate rows served to the dashboard."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .records import Journey, Step, TestRun


class RunSummary(BaseModel):
    total_runs: int = 0
    avg_success_rate: float = 0.0
    avg_runtime_ms: float = 0.0
    last_execution: Optional[str] = None


class RunDetail(BaseModel):
    run: TestRun
    journeys: list[Journey] = Field(default_factory=list)
    steps: list[Step] = Field(default_factory=list)
    summary: RunSummary = Field(default_factory=RunSummary)


class JourneyDetail(BaseModel):
    journey: Journey
    steps: list[Step] = Field(default_factory=list)


class SystemHealth(BaseModel):
    system: str
    runs_last_24h: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    avg_success_rate: float = 0.0
    avg_runtime_ms: float = 0.0
    last_execution: Optional[str] = None


class CorrelatedRun(BaseModel):
    master_execution_id: str
    oms_run_id: Optional[str] = None
    oms_status: Optional[str] = None
    oms_success_rate: Optional[float] = None
    oms_tabs: Optional[str] = None
    oms_runtime_ms: Optional[int] = None
    pp_run_id: Optional[str] = None
    pp_status: Optional[str] = None
    pp_success_rate: Optional[float] = None
    pp_tabs: Optional[str] = None
    pp_runtime_ms: Optional[int] = None
    executed_at: Optional[str] = None
    completed_at: Optional[str] = None


class TabPerformance(BaseModel):
    tab_name: str
    test_count: int = 0
    avg_load_time_ms: float = 0.0
    min_load_time_ms: float = 0.0
    max_load_time_ms: float = 0.0
    passed_count: int = 0
    failed_count: int = 0
    success_rate: float = 0.0


class RecentFailure(BaseModel):
    system: Optional[str] = None
    readable_run_id: Optional[str] = None
    step_name: str
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    created_at: Optional[str] = None


class DailyMetric(BaseModel):
    model_config = ConfigDict(extra="allow")

    date: str
    total_runs: int = 0
    avg_success_rate: float = 0.0
    avg_runtime_ms: float = 0.0


class FailureHotspot(BaseModel):
    model_config = ConfigDict(extra="allow")

    step_name: str
    failure_count: int = 0
    last_failure: Optional[str] = None


class RealtimeHealth(BaseModel):
    model_config = ConfigDict(extra="allow")

    framework: str = "playwright"
    environment: str = "dev"
    runs_today: int = 0
    success_rate_today: float = 0.0
    last_run_at: Optional[str] = None


class StepStats(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    running: int = 0
    pending: int = 0
    success_rate: int = 0
    total_duration_ms: int = 0
    avg_step_time_ms: int = 0


class ModuleResult(BaseModel):
    name: str
    passed: int = 0
    failed: int = 0
    duration_ms: int = 0
    duration: str = "0ms"
    status: str = "PASSED"
    steps: list[dict[str, Any]] = Field(default_factory=list)


class PlatformResults(BaseModel):
    """One platform card on the dashboard."""
    model_config = ConfigDict(populate_by_name=True)

    platform: str
    label: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration: str = "0ms"
    last_run: Optional[str] = Field(default=None, serialization_alias="lastRun")
    total_steps: int = Field(default=0, serialization_alias="totalSteps")
    success_rate: int = Field(default=0, serialization_alias="successRate")
    coming_soon: bool = Field(default=False, serialization_alias="comingSoon")
    modules: list[ModuleResult] = Field(default_factory=list)
