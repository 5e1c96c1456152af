"""Cart page object — cart contents and coupon handling."""

from __future__ import annotations

import logging
from typing import Sequence

from playwright.async_api import expect

from journeyqa.executor.fallback import ActionPolicy, JourneyError, click_first, fill_first, probe
from journeyqa.pages.base_page import BasePage

logger = logging.getLogger(__name__)

INVALID_COUPON_MESSAGE = "The coupon code is not valid. Please try another code"
APPLIED_COUPON_MESSAGE = "Coupon code applied"


class EmptyCartError(JourneyError):
    pass


class CartPage(BasePage):
    CART_ITEMS: Sequence[str] = (
        '[data-testid="cart-item"]',
        '#right_drawer [data-testid="product-card"]',
        ".cart-item",
    )
    REMOVE_COUPON: Sequence[str] = (
        'button:has-text("Remove Coupon")',
        '[data-testid="remove-coupon"]',
    )

    @property
    def coupon_message(self):
        return self.page.get_by_test_id("external-coupon")

    async def open_coupon_form(self) -> None:
        await click_first(
            self.page, [self.page.get_by_role("button", name="Have a Discount Coupon?")],
            ActionPolicy.OPTIONAL, action="open coupon form", timeout_ms=self.timeout,
        )

    async def apply_coupon(self, code: str) -> None:
        await self.open_coupon_form()
        await fill_first(
            self.page, [self.page.get_by_role("textbox", name="Enter coupon code")], code,
            ActionPolicy.REQUIRED, action="coupon code", timeout_ms=self.timeout,
        )
        await click_first(
            self.page, [self.page.get_by_role("button", name="Apply")],
            ActionPolicy.REQUIRED, action="apply coupon", timeout_ms=self.timeout,
        )
        logger.info("Applied coupon %s", code)

    async def expect_coupon_rejected(self, code: str) -> None:
        await self.apply_coupon(code)
        await expect(self.coupon_message).to_contain_text(INVALID_COUPON_MESSAGE, timeout=self.timeout)

    async def expect_coupon_applied(self, code: str) -> None:
        await self.apply_coupon(code)
        await expect(self.coupon_message).to_contain_text(APPLIED_COUPON_MESSAGE, timeout=self.timeout)

    async def remove_coupon(self) -> None:
        await click_first(
            self.page,
            [self.coupon_message.get_by_role("button", name="Remove"), *self.REMOVE_COUPON],
            ActionPolicy.REQUIRED, action="remove coupon", timeout_ms=self.timeout,
        )
        await expect(self.coupon_message).not_to_contain_text(APPLIED_COUPON_MESSAGE, timeout=self.timeout)
        logger.info("Removed coupon")

    async def verify_cart(self) -> int:
        """Return the number of line items in the cart; an empty cart fails."""
        for selector in self.CART_ITEMS:
            if await probe(self.page, selector, timeout_ms=self.probe_timeout):
                count = await self.page.locator(selector).count()
                logger.info("Cart has %d item(s)", count)
                return count
        raise EmptyCartError("No items found in the cart")
