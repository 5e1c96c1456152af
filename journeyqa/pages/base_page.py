"""Base page object — navigation, popups and the shared checkout widgets."""

from __future__ import annotations

import logging
import re
import time
from typing import Optional, Sequence
from urllib.parse import urljoin

from playwright.async_api import Page

from journeyqa.executor.fallback import (
    ActionPolicy,
    click_first,
    pick_first_available,
    probe,
)
from journeyqa.models.config import FrameworkConfig
from journeyqa.tracking.collector import ExecutionCollector

logger = logging.getLogger(__name__)

PAYMENT_URL_PATTERN = re.compile(r".*(payment|checkout|address).*", re.IGNORECASE)

_HIDE_OVERLAYS_SCRIPT = """
() => {
  document.querySelectorAll('.wzrk-overlay, [class*="overlay"], [class*="popup"]').forEach((el) => {
    const position = window.getComputedStyle(el).position;
    if (position === 'fixed' || position === 'absolute') {
      el.style.display = 'none';
    }
  });
}
"""


class BasePage:
    """Shared behaviour for every page object.

    Selectors are declared as ordered candidate lists; the first candidate
    that works wins.
    """

    POPUP_CLOSE: Sequence[str] = (
        'button:has-text("No, Thanks")',
        'button:has-text("Close")',
        'button:has-text("×")',
        '[data-testid="close-button"]',
        ".popup-close",
    )
    CONTINUE_BUTTONS: Sequence[str] = (
        'button:has-text("Skip & Continue")',
        'button:has-text("Continue")',
    )
    PROCEED_TO_PAY: Sequence[str] = (
        "#proceed-to-pay-btn",
        'button:has-text("Proceed to Pay")',
        'button:has-text("Checkout")',
        '[data-testid="proceed-to-pay"]',
    )

    def __init__(
        self,
        page: Page,
        config: FrameworkConfig,
        collector: Optional[ExecutionCollector] = None,
    ):
        self.page = page
        self.config = config
        self.collector = collector

    @property
    def timeout(self) -> int:
        return self.config.action_timeout_ms

    @property
    def probe_timeout(self) -> int:
        return self.config.probe_timeout_ms

    def url(self, path: str = "/") -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return urljoin(self.config.base_url.rstrip("/") + "/", path.lstrip("/"))

    async def goto(self, path: str = "/") -> None:
        target = self.url(path)
        start = time.time()
        logger.info("Navigating to %s", target)
        await self.page.goto(target, wait_until="domcontentloaded",
                             timeout=self.config.navigation_timeout_ms)
        await self.wait_ready()
        if self.collector:
            self.collector.record_page_load(target, int((time.time() - start) * 1000))

    async def wait_ready(self, timeout_ms: Optional[int] = None) -> None:
        """Wait for the DOM, then best-effort for network idle."""
        await self.page.wait_for_load_state(
            "domcontentloaded", timeout=timeout_ms or self.config.navigation_timeout_ms,
        )
        try:
            await self.page.wait_for_load_state("networkidle", timeout=10000)
        except Exception:
            logger.debug("Network not idle on %s, continuing", self.page.url)

    async def dismiss_popups(self) -> int:
        """Close any visible marketing popups. Never fails."""
        closed = 0
        for selector in self.POPUP_CLOSE:
            if not await probe(self.page, selector, timeout_ms=1000):
                continue
            outcome = await click_first(
                self.page, [selector], ActionPolicy.OPTIONAL,
                action="dismiss popup", timeout_ms=2000,
            )
            if outcome.succeeded:
                closed += 1
        if closed:
            logger.info("Dismissed %d popup(s)", closed)
        return closed

    async def remove_overlays(self) -> None:
        try:
            await self.page.evaluate(_HIDE_OVERLAYS_SCRIPT)
        except Exception as e:
            logger.debug("Overlay removal skipped: %s", e)

    async def click_continue(self) -> bool:
        """Click the optional add-on Continue button if the site shows one."""
        outcome = await click_first(
            self.page, self.CONTINUE_BUTTONS, ActionPolicy.OPTIONAL,
            action="continue button", timeout_ms=5000,
        )
        return outcome.succeeded

    async def select_delivery_date(self, dates: Optional[Sequence[str]] = None) -> str:
        """Pick the first available day in the open calendar popover."""
        popover = self.page.get_by_test_id("popover")
        await popover.wait_for(state="visible", timeout=self.timeout)
        return await pick_first_available(
            self.page,
            dates or self.config.delivery_dates,
            lambda d: popover.get_by_text(d, exact=True),
            what="delivery date",
            timeout_ms=2000,
        )

    async def select_time_slot(self, slots: Optional[Sequence[str]] = None) -> str:
        return await pick_first_available(
            self.page,
            slots or self.config.delivery_time_slots,
            lambda s: self.page.get_by_text(s),
            what="time slot",
            timeout_ms=2000,
        )

    async def proceed_to_pay(self) -> None:
        """Click through to the payment step; required for checkout journeys."""
        await self.page.wait_for_load_state("domcontentloaded")
        await click_first(
            self.page, self.PROCEED_TO_PAY, ActionPolicy.REQUIRED,
            action="proceed to pay", timeout_ms=self.timeout,
        )
        try:
            await self.page.wait_for_url(PAYMENT_URL_PATTERN, timeout=self.timeout)
        except Exception:
            logger.info("Payment URL not matched after proceeding, continuing")
