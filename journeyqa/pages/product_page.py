"""Product page object — delivery restrictions, delivery slot and add to cart."""

from __future__ import annotations

import logging

from journeyqa.executor.fallback import (
    ActionPolicy,
    JourneyError,
    click_first,
    probe,
)
from journeyqa.pages.base_page import BasePage

logger = logging.getLogger(__name__)

RESTRICTION_MESSAGE = "product can not be delivered at the desired location"
SELECT_DATE_TOAST = "Please Select Delivery Date"


class ProductPage(BasePage):

    async def open(self, path: str | None = None) -> None:
        await self.goto(path or self.config.product_path)
        await self.dismiss_popups()

    async def is_delivery_restricted(self) -> bool:
        message = self.page.get_by_test_id("input_related_message").filter(
            has_text=RESTRICTION_MESSAGE
        )
        return await probe(self.page, message, timeout_ms=self.probe_timeout)

    async def open_deliverable_product(self) -> str:
        """Open the configured product, switching to the alternate when it is restricted."""
        await self.open()
        if not await self.is_delivery_restricted():
            return self.config.product_path
        logger.info("Product %s is not deliverable here, switching to %s",
                    self.config.product_path, self.config.alternate_product_path)
        await self.open(self.config.alternate_product_path)
        return self.config.alternate_product_path

    async def set_delivery(self) -> dict:
        """Choose a later date and slot, or fall back to today's first free slot."""
        try:
            await click_first(self.page, [self.page.get_by_text("Later", exact=True)],
                              ActionPolicy.REQUIRED, action="later delivery", timeout_ms=self.timeout)
            popover = self.page.get_by_test_id("popover")
            await click_first(self.page, [popover.get_by_role("img", name="arrow-right")],
                              ActionPolicy.OPTIONAL, action="next month", timeout_ms=self.probe_timeout)
            date = await self.select_delivery_date()
            slot = await self.select_time_slot()
            return {"mode": "later", "date": date, "slot": slot}
        except JourneyError as e:
            logger.info("Later delivery unavailable (%s), trying today", e)

        await click_first(self.page, [self.page.get_by_text("Today", exact=True)],
                          ActionPolicy.REQUIRED, action="today delivery", timeout_ms=self.timeout)
        slot = await self.select_time_slot()
        return {"mode": "today", "date": None, "slot": slot}

    async def _click_add_to_cart(self) -> None:
        await click_first(self.page, [self.page.get_by_role("button", name="Add To Cart")],
                          ActionPolicy.REQUIRED, action="add to cart", timeout_ms=self.timeout)

    async def add_to_cart(self) -> None:
        """Add the product; sets a delivery slot first if the site asks for one."""
        await self._click_add_to_cart()
        if await probe(self.page, self.page.get_by_text(SELECT_DATE_TOAST),
                       timeout_ms=self.probe_timeout):
            logger.info("Delivery date required before adding to cart")
            await self.set_delivery()
            await self._click_add_to_cart()
        await self.click_continue()
        if not await probe(self.page, self.page.get_by_test_id("drawer"), timeout_ms=self.timeout):
            logger.info("Cart drawer did not open after adding to cart")
