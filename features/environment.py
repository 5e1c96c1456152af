"""behave hooks — one browser for the run, a fresh context and journey per scenario."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from playwright.async_api import async_playwright

from journeyqa.cli import setup_logging
from journeyqa.datastore.client import get_client
from journeyqa.datastore.publisher import ResultsPublisher
from journeyqa.executor.evidence_collector import EvidenceCollector
from journeyqa.flows.journeys import JourneyContext
from journeyqa.mail.otp_client import GmailOtpClient
from journeyqa.models.config import FrameworkConfig
from journeyqa.reporter.reporter import Reporter
from journeyqa.tracking.collector import ExecutionCollector
from journeyqa.utils.browser import create_journey_context, launch_browser, new_page

logger = logging.getLogger(__name__)


def before_all(context):
    userdata = context.config.userdata
    setup_logging(userdata.getbool("verbose", False))
    cfg = FrameworkConfig.load(userdata.get("config", "journeyqa.json"))
    context.qa_config = cfg
    context.loop = asyncio.new_event_loop()
    context.run_async = context.loop.run_until_complete

    context.playwright = context.run_async(async_playwright().start())
    context.browser = context.run_async(launch_browser(context.playwright, headless=cfg.headless))

    context.collector = ExecutionCollector()
    run = context.collector.start_run(
        system=cfg.system, environment=cfg.environment, framework=cfg.framework,
        metadata={"base_url": cfg.base_url, "runner": "behave"},
    )
    context.publisher = None
    if cfg.datastore.enabled and not userdata.getbool("no_publish", False):
        context.publisher = ResultsPublisher(get_client(cfg.datastore), cfg.datastore)
        context.publisher.start_run(run)
    context.otp_client = GmailOtpClient(cfg.mailbox) if cfg.mailbox else None
    context.evidence_root = Path(cfg.report_output_dir) / "evidence" / run.run_id
    context.journey_number = 0


def before_scenario(context, scenario):
    cfg = context.qa_config
    context.journey_number += 1
    context.collector.start_journey(
        context.journey_number, scenario.name, " ".join(scenario.description) or scenario.name,
    )
    context.browser_context = context.run_async(create_journey_context(
        context.browser,
        viewport={"width": cfg.viewport.width, "height": cfg.viewport.height},
        blocked_url_patterns=cfg.blocked_url_patterns,
    ))
    page = context.run_async(new_page(
        context.browser_context, cfg.action_timeout_ms, cfg.navigation_timeout_ms,
    ))
    context.evidence = EvidenceCollector(context.evidence_root / f"journey_{context.journey_number}")
    context.evidence.setup_listeners(page)
    context.journey = JourneyContext(
        page=page,
        config=cfg,
        collector=context.collector,
        evidence=context.evidence,
        otp_client=context.otp_client,
    )


def after_scenario(context, scenario):
    current = context.collector.current
    if scenario.status == "failed" and current is not None and not current.steps:
        failed = next((s for s in scenario.steps if s.status == "failed"), None)
        context.collector.add_step(
            failed.name if failed else "Scenario Setup", "FAILED",
            error=RuntimeError(getattr(failed, "error_message", None) or f"Scenario '{scenario.name}' failed"),
        )
    context.evidence.save_logs()
    context.run_async(context.browser_context.close())
    journey = context.collector.complete_journey()
    if context.publisher and context.publisher.enabled and journey is not None:
        context.publisher.log_journey(journey)


def after_all(context):
    record = context.collector.build_record()
    if context.publisher and context.publisher.enabled:
        context.publisher.complete_run(record.run)
    Reporter(context.qa_config).generate_reports(record)
    logger.info("%s", Reporter.basic_summary(record))

    context.run_async(context.browser.close())
    context.run_async(context.playwright.stop())
    context.loop.close()
