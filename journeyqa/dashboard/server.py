"""Dashboard HTTP surface — JSON endpoints over the data service plus the static page."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse

from journeyqa.dashboard.metrics import (
    PLATFORMS,
    hotspot_bar_chart,
    journey_bubble_chart,
    overview_column_chart,
    platform_card,
    trend_line_chart,
)
from journeyqa.datastore.test_data_service import TestDataService
from journeyqa.models.dashboard import PlatformResults

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"
SCREENSHOT_SUFFIXES = (".png", ".jpg", ".jpeg")


def _dump(models) -> list[dict]:
    return [m.model_dump(by_alias=True) for m in models]


def create_app(service: Optional[TestDataService], screenshot_dir: Path | str | None = None) -> FastAPI:
    """Build the dashboard app.

    ``service`` may be None when no datastore is configured; every endpoint
    then answers with empty data instead of failing.
    """
    app = FastAPI(title="Journey Dashboard")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.state.service = service
    app.state.screenshot_dir = Path(screenshot_dir) if screenshot_dir else None

    def _card(platform: str, label: str, system: Optional[str]) -> PlatformResults:
        if system is None:
            return platform_card(platform, label, None, coming_soon=True)
        detail = service.fetch_latest_system_run(system) if service else None
        return platform_card(platform, label, detail)

    def _cards() -> list[PlatformResults]:
        return [_card(*p) for p in PLATFORMS]

    @app.get("/api/test-results")
    def test_results() -> dict:
        return {card.platform: card.model_dump(by_alias=True) for card in _cards()}

    @app.get("/api/test-results/{platform}")
    def platform_results(platform: str) -> dict:
        for key, label, system in PLATFORMS:
            if key == platform:
                return _card(key, label, system).model_dump(by_alias=True)
        raise HTTPException(status_code=404, detail=f"Unknown platform '{platform}'")

    @app.get("/api/screenshots")
    def screenshots() -> list[dict]:
        root = app.state.screenshot_dir
        if root is None or not root.exists():
            return []
        files = sorted(
            (p for p in root.rglob("*") if p.suffix.lower() in SCREENSHOT_SUFFIXES),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        return [
            {
                "name": p.name,
                "path": str(p.relative_to(root)),
                "url": f"/api/screenshots/{p.relative_to(root).as_posix()}",
                "size": p.stat().st_size,
            }
            for p in files
        ]

    @app.get("/api/screenshots/{path:path}")
    def screenshot_file(path: str) -> FileResponse:
        root = app.state.screenshot_dir
        if root is None:
            raise HTTPException(status_code=404, detail="No screenshot directory configured")
        target = (root / path).resolve()
        if root.resolve() not in target.parents or not target.is_file():
            raise HTTPException(status_code=404, detail="Screenshot not found")
        return FileResponse(target)

    @app.get("/api/system-health")
    def system_health() -> list[dict]:
        return _dump(service.fetch_system_health()) if service else []

    @app.get("/api/correlated-runs")
    def correlated_runs(limit: int = 10) -> list[dict]:
        return _dump(service.fetch_correlated_runs(limit)) if service else []

    @app.get("/api/tab-performance/{system}")
    def tab_performance(system: str, days: int = 7) -> list[dict]:
        return _dump(service.fetch_tab_performance(system.upper(), days)) if service else []

    @app.get("/api/recent-failures")
    def recent_failures(limit: int = 20) -> list[dict]:
        return _dump(service.fetch_recent_failures(limit)) if service else []

    @app.get("/api/daily-metrics")
    def daily_metrics(days: int = 30) -> list[dict]:
        return _dump(service.fetch_daily_metrics(days)) if service else []

    @app.get("/api/failure-hotspots")
    def failure_hotspots(limit: int = 10) -> list[dict]:
        return _dump(service.fetch_failure_hotspots(limit)) if service else []

    @app.get("/api/realtime-health")
    def realtime_health(framework: str = "playwright", environment: str = "dev") -> Optional[dict]:
        health = service.fetch_realtime_health(framework, environment) if service else None
        return health.model_dump() if health else None

    @app.get("/api/charts")
    def charts() -> dict:
        cards = _cards()
        metrics = service.fetch_daily_metrics() if service else []
        hotspots = service.fetch_failure_hotspots() if service else []
        return {
            "overview": overview_column_chart(cards),
            "trend": trend_line_chart(metrics),
            "journeys": journey_bubble_chart(cards),
            "hotspots": hotspot_bar_chart(hotspots),
        }

    @app.get("/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        return HTMLResponse((STATIC_DIR / "index.html").read_text(encoding="utf-8"))

    return app
