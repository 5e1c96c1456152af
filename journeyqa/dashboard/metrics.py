"""Dashboard metrics — derived figures, chart options and manual aggregations.

Everything here is a pure function over rows already fetched from the
datastore. The ``*_from_*`` aggregations are the manual counterparts of the
server-side RPC functions and return the same models field for field.
"""

from __future__ import annotations

import math
from collections import OrderedDict
from typing import Any, Iterable, Optional

from journeyqa.models.dashboard import (
    CorrelatedRun,
    DailyMetric,
    FailureHotspot,
    ModuleResult,
    PlatformResults,
    RecentFailure,
    RunDetail,
    RunSummary,
    StepStats,
    SystemHealth,
    TabPerformance,
)
from journeyqa.models.records import Step

# (platform key, card label, datastore system); None marks a platform without runs yet
PLATFORMS: list[tuple[str, str, Optional[str]]] = [
    ("desktop", "Desktop Site", "DESKTOP"),
    ("mobile", "Mobile Site", "MOBILE"),
    ("oms", "OMS", "OMS"),
    ("android", "Partner Panel", "PARTNER_PANEL"),
    ("ios", "iOS App", None),
]

PASS_COLOR = "#4CAF50"
FAIL_COLOR = "#F44336"
SKIP_COLOR = "#FFC107"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_duration(ms: float | None) -> str:
    """Human-readable duration: 999 -> "999ms", 1000 -> "1.0s", 61000 -> "1m 1s"."""
    if not ms or ms <= 0:
        return "0ms"
    if ms < 1000:
        return f"{int(ms)}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    return f"{int(ms // 60000)}m {int((ms % 60000) // 1000)}s"


def success_rate(passed: int, total: int) -> int:
    """Whole-number success percentage; 0 when there is nothing to divide by."""
    if total <= 0:
        return 0
    return _round_half_up(passed / total * 100)


def step_stats(steps: Iterable[Step]) -> StepStats:
    steps = list(steps)
    total = len(steps)
    counts = {"PASSED": 0, "FAILED": 0, "RUNNING": 0, "PENDING": 0}
    total_duration = 0
    for step in steps:
        counts[step.status] = counts.get(step.status, 0) + 1
        total_duration += step.duration_ms or 0
    return StepStats(
        total=total,
        passed=counts["PASSED"],
        failed=counts["FAILED"],
        running=counts["RUNNING"],
        pending=counts["PENDING"],
        success_rate=success_rate(counts["PASSED"], total),
        total_duration_ms=total_duration,
        avg_step_time_ms=_round_half_up(total_duration / total) if total else 0,
    )


def _metadata(row: dict) -> dict:
    return row.get("metadata") or {}


def _readable_id(row: dict) -> str:
    return _metadata(row).get("readable_run_id") or row.get("run_id") or ""


def _tabs(row: dict) -> Optional[str]:
    tabs = _metadata(row).get("total_tabs_tested")
    return str(tabs) if tabs is not None else None


def _run_status(row: dict) -> str:
    return "PASSED" if (row.get("failed_journeys") or 0) == 0 else "FAILED"


# ---------------------------------------------------------------------------
# Manual aggregations
# ---------------------------------------------------------------------------


def run_summary(rows: list[dict], last_execution: Optional[str] = None) -> RunSummary:
    """Summary over recent run rows (newest first)."""
    count = len(rows)
    if not count:
        return RunSummary(last_execution=last_execution)
    return RunSummary(
        total_runs=count,
        avg_success_rate=sum(r.get("success_rate") or 0 for r in rows) / count,
        avg_runtime_ms=sum(r.get("total_runtime_ms") or 0 for r in rows) / count,
        last_execution=last_execution or rows[0].get("executed_at"),
    )


def system_health_from_runs(rows: list[dict]) -> list[SystemHealth]:
    """Group last-24h run rows by ``metadata.system``."""
    grouped: OrderedDict[str, dict[str, Any]] = OrderedDict()
    for row in rows:
        system = _metadata(row).get("system")
        if not system:
            continue
        acc = grouped.setdefault(system, {
            "runs": 0, "successful": 0, "failed": 0,
            "success_rate": 0.0, "runtime": 0, "last": None,
        })
        acc["runs"] += 1
        if (row.get("failed_journeys") or 0) == 0:
            acc["successful"] += 1
        else:
            acc["failed"] += 1
        acc["success_rate"] += row.get("success_rate") or 0
        acc["runtime"] += row.get("total_runtime_ms") or 0
        executed_at = row.get("executed_at")
        if executed_at and (acc["last"] is None or executed_at > acc["last"]):
            acc["last"] = executed_at

    return [
        SystemHealth(
            system=system,
            runs_last_24h=acc["runs"],
            successful_runs=acc["successful"],
            failed_runs=acc["failed"],
            avg_success_rate=acc["success_rate"] / acc["runs"] if acc["runs"] else 0.0,
            avg_runtime_ms=acc["runtime"] / acc["runs"] if acc["runs"] else 0.0,
            last_execution=acc["last"],
        )
        for system, acc in grouped.items()
    ]


def correlated_runs_from_runs(oms_runs: list[dict], pp_runs: list[dict]) -> list[CorrelatedRun]:
    """Pair each OMS run with the partner-panel run sharing its master execution id."""
    pp_by_master: dict[str, dict] = {}
    for pp in pp_runs:
        master = _metadata(pp).get("master_execution_id")
        if master and master not in pp_by_master:
            pp_by_master[master] = pp

    correlated = []
    for oms in oms_runs:
        master = _metadata(oms).get("master_execution_id")
        pp = pp_by_master.get(master) if master else None
        correlated.append(CorrelatedRun(
            master_execution_id=master or oms.get("run_id", ""),
            oms_run_id=_readable_id(oms),
            oms_status=_run_status(oms),
            oms_success_rate=oms.get("success_rate"),
            oms_tabs=_tabs(oms),
            oms_runtime_ms=oms.get("total_runtime_ms"),
            pp_run_id=_readable_id(pp) if pp else None,
            pp_status=_run_status(pp) if pp else None,
            pp_success_rate=pp.get("success_rate") if pp else None,
            pp_tabs=_tabs(pp) if pp else None,
            pp_runtime_ms=pp.get("total_runtime_ms") if pp else None,
            executed_at=oms.get("executed_at"),
            completed_at=oms.get("completed_at"),
        ))
    return correlated


def tab_performance_from_steps(rows: list[dict], system: str) -> list[TabPerformance]:
    """Aggregate ``Tab:`` steps of one system by ``metadata.tab_name``."""
    grouped: OrderedDict[str, dict[str, Any]] = OrderedDict()
    for row in rows:
        run_meta = (row.get("test_runs") or {}).get("metadata") or {}
        if run_meta.get("system") != system:
            continue
        tab_name = _metadata(row).get("tab_name")
        if not tab_name:
            continue
        try:
            load_time = int(_metadata(row).get("load_time_ms") or 0)
        except (TypeError, ValueError):
            load_time = 0
        acc = grouped.setdefault(tab_name, {"loads": [], "passed": 0, "failed": 0})
        acc["loads"].append(load_time)
        if row.get("status") == "PASSED":
            acc["passed"] += 1
        elif row.get("status") == "FAILED":
            acc["failed"] += 1

    results = []
    for tab_name, acc in grouped.items():
        loads = acc["loads"]
        count = len(loads)
        results.append(TabPerformance(
            tab_name=tab_name,
            test_count=count,
            avg_load_time_ms=_round_half_up(sum(loads) / count) if count else 0,
            min_load_time_ms=min(loads) if count else 0,
            max_load_time_ms=max(loads) if count else 0,
            passed_count=acc["passed"],
            failed_count=acc["failed"],
            success_rate=round(acc["passed"] / count * 100, 2) if count else 0.0,
        ))
    return results


def recent_failures_from_steps(rows: list[dict]) -> list[RecentFailure]:
    failures = []
    for row in rows:
        run_meta = (row.get("test_runs") or {}).get("metadata") or {}
        failures.append(RecentFailure(
            system=run_meta.get("system"),
            readable_run_id=run_meta.get("readable_run_id"),
            step_name=row.get("step_name") or "Unknown Step",
            error_type=row.get("error_type"),
            error_message=row.get("error_message"),
            duration_ms=row.get("duration_ms"),
            created_at=row.get("created_at"),
        ))
    return failures


# ---------------------------------------------------------------------------
# Platform cards
# ---------------------------------------------------------------------------


def platform_card(
    platform: str,
    label: str,
    detail: RunDetail | None,
    coming_soon: bool = False,
) -> PlatformResults:
    """Build one platform card from the latest run of its system."""
    if coming_soon or detail is None:
        return PlatformResults(platform=platform, label=label, coming_soon=coming_soon)

    modules = []
    for journey in detail.journeys:
        steps = journey.steps or [s for s in detail.steps if s.journey_id == journey.journey_id]
        modules.append(ModuleResult(
            name=journey.journey_name or f"Journey {journey.journey_number}",
            passed=journey.passed_steps,
            failed=journey.failed_steps,
            duration_ms=journey.duration_ms,
            duration=format_duration(journey.duration_ms),
            status=journey.status,
            steps=[
                {
                    "step_name": s.step_name,
                    "status": s.status,
                    "duration_ms": s.duration_ms,
                    "category": s.step_category,
                }
                for s in steps
            ],
        ))

    passed = sum(1 for j in detail.journeys if j.status == "PASSED")
    failed = sum(1 for j in detail.journeys if j.status == "FAILED")
    total = len(detail.journeys)
    total_duration = sum(j.duration_ms for j in detail.journeys) or detail.run.total_runtime_ms
    return PlatformResults(
        platform=platform,
        label=label,
        total=total,
        passed=passed,
        failed=failed,
        skipped=max(0, total - passed - failed),
        duration=format_duration(total_duration),
        last_run=detail.run.executed_at,
        total_steps=len(detail.steps) or sum(j.total_steps for j in detail.journeys),
        success_rate=success_rate(passed, total),
        modules=modules,
    )


# ---------------------------------------------------------------------------
# Highcharts options
# ---------------------------------------------------------------------------


def overview_column_chart(cards: list[PlatformResults]) -> dict[str, Any]:
    """3-D column chart of passed/failed/skipped journeys per platform."""
    live = [c for c in cards if not c.coming_soon]
    return {
        "chart": {
            "type": "column",
            "options3d": {"enabled": True, "alpha": 15, "beta": 15, "depth": 50, "viewDistance": 25},
        },
        "title": {"text": None},
        "credits": {"enabled": False},
        "xAxis": {"categories": [c.label for c in live]},
        "yAxis": {"min": 0, "title": {"text": "Journeys"}},
        "plotOptions": {"column": {"depth": 25, "dataLabels": {"enabled": True, "format": "{point.y}"}}},
        "colors": [PASS_COLOR, FAIL_COLOR, SKIP_COLOR],
        "series": [
            {"name": "Passed", "data": [c.passed for c in live]},
            {"name": "Failed", "data": [c.failed for c in live]},
            {"name": "Skipped", "data": [c.skipped for c in live]},
        ],
    }


def trend_line_chart(metrics: list[DailyMetric]) -> dict[str, Any]:
    """Daily success-rate trend, oldest day first."""
    ordered = sorted(metrics, key=lambda m: m.date)
    return {
        "chart": {"type": "line", "backgroundColor": "transparent"},
        "title": {"text": None},
        "credits": {"enabled": False},
        "xAxis": {"categories": [m.date for m in ordered]},
        "yAxis": {"min": 0, "max": 100, "title": {"text": "Success Rate (%)"}},
        "series": [
            {"name": "Success Rate", "data": [round(m.avg_success_rate, 2) for m in ordered]},
            {"name": "Runs", "data": [m.total_runs for m in ordered], "visible": False},
        ],
    }


def journey_bubble_chart(cards: list[PlatformResults]) -> dict[str, Any]:
    """Bubble per journey: x = duration (s), y = success rate, z = step count."""
    series = []
    for card in cards:
        if card.coming_soon or not card.modules:
            continue
        series.append({
            "name": card.label,
            "data": [
                {
                    "x": round(m.duration_ms / 1000, 1),
                    "y": success_rate(m.passed, m.passed + m.failed),
                    "z": (m.passed + m.failed) or 1,
                    "name": m.name,
                    "status": m.status,
                }
                for m in card.modules
            ],
        })
    return {
        "chart": {"type": "bubble", "plotBorderWidth": 1, "zoomType": "xy"},
        "title": {"text": None},
        "credits": {"enabled": False},
        "xAxis": {"title": {"text": "Duration (seconds)"}, "gridLineWidth": 1},
        "yAxis": {"title": {"text": "Success Rate (%)"}, "min": 0, "max": 100},
        "plotOptions": {"series": {"dataLabels": {"enabled": True, "format": "{point.name}"}}},
        "series": series,
    }


def hotspot_bar_chart(hotspots: list[FailureHotspot]) -> dict[str, Any]:
    return {
        "chart": {"type": "bar"},
        "title": {"text": None},
        "credits": {"enabled": False},
        "xAxis": {"categories": [h.step_name for h in hotspots]},
        "yAxis": {"min": 0, "title": {"text": "Failures"}},
        "colors": [FAIL_COLOR],
        "series": [{"name": "Failures", "data": [h.failure_count for h in hotspots]}],
    }
