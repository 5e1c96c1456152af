"""Journey runner — runs the selected journeys in Playwright, one context each."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from playwright.async_api import Browser, async_playwright

from journeyqa.datastore.publisher import ResultsPublisher
from journeyqa.executor.evidence_collector import EvidenceCollector
from journeyqa.flows.journeys import JourneyContext, JourneyDefinition, select_journeys
from journeyqa.mail.otp_client import GmailOtpClient
from journeyqa.models.config import FrameworkConfig
from journeyqa.models.records import Journey, RunRecord
from journeyqa.tracking.collector import ExecutionCollector
from journeyqa.utils.browser import create_journey_context, launch_browser, new_page

logger = logging.getLogger(__name__)


class JourneyRunner:
    """Runs journeys sequentially and returns the run record.

    A journey that raises is recorded as FAILED and the run moves on to the
    next journey. Each completed journey is published straight away when a
    publisher is enabled.
    """

    def __init__(
        self,
        config: FrameworkConfig,
        collector: Optional[ExecutionCollector] = None,
        publisher: Optional[ResultsPublisher] = None,
        otp_client: Optional[GmailOtpClient] = None,
        evidence_root: Optional[Path] = None,
    ):
        self.config = config
        self.collector = collector or ExecutionCollector()
        self.publisher = publisher
        self.otp_client = otp_client
        self.evidence_root = evidence_root or Path(config.report_output_dir) / "evidence"

    @property
    def publishing(self) -> bool:
        return self.publisher is not None and self.publisher.enabled

    async def run(self, keys: list[str] | None = None) -> RunRecord:
        definitions = select_journeys(keys or self.config.journeys)
        run = self.collector.start_run(
            system=self.config.system,
            environment=self.config.environment,
            framework=self.config.framework,
            metadata={"base_url": self.config.base_url,
                      "journeys": [d.key for d in definitions]},
        )
        logger.info("Starting run %s (%d journeys)",
                    run.metadata["readable_run_id"], len(definitions))
        if self.publishing:
            await asyncio.to_thread(self.publisher.start_run, run)

        async with async_playwright() as p:
            browser = await launch_browser(p, headless=self.config.headless)
            try:
                for index, definition in enumerate(definitions):
                    logger.info("Running journey [%d/%d]: %s",
                                index + 1, len(definitions), definition.name)
                    journey = await self.run_journey(browser, definition)
                    if self.publishing and journey is not None:
                        await asyncio.to_thread(self.publisher.log_journey, journey)
            finally:
                await browser.close()

        record = self.collector.build_record()
        if self.publishing:
            await asyncio.to_thread(self.publisher.complete_run, record.run)
        return record

    async def run_journey(self, browser: Browser, definition: JourneyDefinition) -> Optional[Journey]:
        """Run one journey in a fresh context; never raises for journey failures."""
        self.collector.start_journey(definition.number, definition.name, definition.description)
        evidence = EvidenceCollector(
            self.evidence_root / self.collector.run.run_id / f"journey_{definition.number}"
        )
        context = None
        try:
            context = await create_journey_context(
                browser,
                viewport={"width": self.config.viewport.width, "height": self.config.viewport.height},
                blocked_url_patterns=self.config.blocked_url_patterns,
            )
            page = await new_page(context, self.config.action_timeout_ms,
                                  self.config.navigation_timeout_ms)
            evidence.setup_listeners(page)
            ctx = JourneyContext(
                page=page,
                config=self.config,
                collector=self.collector,
                evidence=evidence,
                otp_client=self.otp_client,
            )
            await definition.func(ctx)
        except Exception as e:
            logger.error("Journey '%s' failed: %s", definition.name, e)
            if not self.collector.current.steps:
                self.collector.add_step("Journey Setup", "FAILED", error=e)
        finally:
            evidence.save_logs()
            if context is not None:
                try:
                    await context.close()
                except Exception as e:
                    logger.warning("Could not close context for '%s': %s", definition.name, e)
        return self.collector.complete_journey()
