"""Home page object."""

from __future__ import annotations

import logging
from typing import Sequence

from journeyqa.executor.fallback import ActionPolicy, Candidate, try_in_order
from journeyqa.pages.base_page import BasePage

logger = logging.getLogger(__name__)


class HomePage(BasePage):
    LANDMARKS: Sequence[str] = (
        "header",
        '[data-testid="header"]',
        "nav",
        "#account",
    )
    CATEGORY_LINKS = 'nav a[href]:visible, [data-testid="category-menu"] a[href]:visible'

    async def open(self) -> None:
        await self.goto("/")
        await self.dismiss_popups()

    async def verify_loaded(self) -> str:
        """Wait for the first recognisable landmark; returns the one found."""

        def _wait(selector: str) -> Candidate:
            async def _run() -> None:
                await self.page.locator(selector).first.wait_for(
                    state="visible", timeout=self.probe_timeout
                )
            return Candidate(label=selector, run=_run)

        outcome = await try_in_order(
            [_wait(s) for s in self.LANDMARKS], ActionPolicy.REQUIRED, action="home page landmark"
        )
        return outcome.used or ""

    async def category_links(self, limit: int = 3) -> list[str]:
        links = self.page.locator(self.CATEGORY_LINKS)
        hrefs: list[str] = []
        count = await links.count()
        for i in range(count):
            href = await links.nth(i).get_attribute("href")
            if href and not href.startswith(("#", "javascript:")) and href not in hrefs:
                hrefs.append(href)
            if len(hrefs) >= limit:
                break
        logger.info("Found %d category link(s)", len(hrefs))
        return hrefs

    async def explore_categories(self, limit: int = 3) -> list[str]:
        """Visit up to ``limit`` category pages and return the ones that loaded."""
        visited = []
        for href in await self.category_links(limit):
            try:
                await self.goto(href)
            except Exception as e:
                logger.warning("Category %s did not load: %s", href, e)
                continue
            visited.append(href)
        return visited
