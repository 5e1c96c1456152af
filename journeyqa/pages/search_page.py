"""Search page object."""

from __future__ import annotations

import logging
from typing import Sequence

from journeyqa.executor.fallback import ActionPolicy, click_first, fill_first
from journeyqa.pages.base_page import BasePage

logger = logging.getLogger(__name__)


class SearchPage(BasePage):
    SEARCH_TRIGGERS: Sequence[str] = (
        '[data-testid="search-icon"]',
        'button[aria-label*="Search" i]',
    )
    SEARCH_INPUTS: Sequence[str] = (
        'input[type="search"]',
        'input[placeholder*="Search" i]',
        'input[name="q"]',
        "#search",
    )
    RESULT_CARDS = '[data-testid="product-card"], a[href*="/product"]'

    async def search(self, term: str) -> None:
        await click_first(self.page, self.SEARCH_TRIGGERS, ActionPolicy.OPTIONAL,
                          action="open search", timeout_ms=self.probe_timeout)
        outcome = await fill_first(self.page, self.SEARCH_INPUTS, term, ActionPolicy.REQUIRED,
                                   action="search input", timeout_ms=self.timeout)
        await self.page.locator(outcome.used).first.press("Enter")
        await self.page.wait_for_load_state("domcontentloaded")
        logger.info("Searched for '%s'", term)

    async def result_count(self) -> int:
        results = self.page.locator(self.RESULT_CARDS)
        await results.first.wait_for(state="visible", timeout=self.timeout)
        return await results.count()

    async def open_first_result(self) -> str:
        first = self.page.locator(self.RESULT_CARDS).first
        href = await first.get_attribute("href") or ""
        await first.click(timeout=self.timeout)
        await self.page.wait_for_load_state("domcontentloaded")
        return href
