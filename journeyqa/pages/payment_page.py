"""Payment page object."""

from __future__ import annotations

import logging
from typing import Sequence

from journeyqa.executor.fallback import pick_first_available, probe
from journeyqa.pages.base_page import PAYMENT_URL_PATTERN, BasePage

logger = logging.getLogger(__name__)


class PaymentPage(BasePage):
    PAYMENT_METHODS: Sequence[str] = ("UPI", "Credit/Debit Card", "Net Banking", "Wallets", "QR")

    async def wait_loaded(self) -> None:
        await self.page.wait_for_url(PAYMENT_URL_PATTERN, timeout=self.config.navigation_timeout_ms)
        await self.wait_ready()

    async def available_methods(self) -> list[str]:
        found = []
        for method in self.PAYMENT_METHODS:
            if await probe(self.page, self.page.get_by_text(method), timeout_ms=1000):
                found.append(method)
        logger.info("Payment methods on page: %s", ", ".join(found) or "none")
        return found

    async def select_method(self, preferences: Sequence[str] | None = None) -> str:
        return await pick_first_available(
            self.page,
            preferences or self.PAYMENT_METHODS,
            lambda m: self.page.get_by_text(m),
            what="payment method",
        )
