"""Journey library — the business journeys shared by the runner and the Gherkin steps."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence

from playwright.async_api import Page

from journeyqa.executor.evidence_collector import EvidenceCollector
from journeyqa.mail.otp_client import GmailOtpClient
from journeyqa.models.config import FrameworkConfig
from journeyqa.pages.cart_page import CartPage
from journeyqa.pages.home_page import HomePage
from journeyqa.pages.login_page import LoginPage
from journeyqa.pages.payment_page import PaymentPage
from journeyqa.pages.product_page import ProductPage
from journeyqa.pages.search_page import SearchPage
from journeyqa.tracking.collector import ExecutionCollector

logger = logging.getLogger(__name__)


@dataclass
class JourneyContext:
    """Everything a journey needs, passed in explicitly."""

    page: Page
    config: FrameworkConfig
    collector: ExecutionCollector
    evidence: Optional[EvidenceCollector] = None
    otp_client: Optional[GmailOtpClient] = None
    state: dict = field(default_factory=dict)

    @asynccontextmanager
    async def step(self, name: str, category: str = "navigation"):
        """Record the wrapped block as one step; failures are recorded and re-raised."""
        started_at = time.time()
        logger.info("  Step: %s", name)
        try:
            yield
        except Exception as e:
            metadata = {}
            if self.evidence and self.config.screenshot_on_failure:
                screenshot = await self.evidence.take_screenshot(self.page, name)
                if screenshot:
                    metadata["screenshot_path"] = screenshot
            self.collector.add_step(
                name, "FAILED",
                duration_ms=int((time.time() - started_at) * 1000),
                started_at=started_at,
                category=category,
                error=e,
                api_calls=self._drain_api_calls(),
                metadata=metadata,
            )
            raise
        self.collector.add_step(
            name, "PASSED",
            duration_ms=int((time.time() - started_at) * 1000),
            started_at=started_at,
            category=category,
            api_calls=self._drain_api_calls(),
        )

    def _drain_api_calls(self) -> list[dict]:
        return self.evidence.drain_step_calls() if self.evidence else []


JourneyFunc = Callable[[JourneyContext], Awaitable[None]]


@dataclass(frozen=True)
class JourneyDefinition:
    number: int
    key: str
    name: str
    description: str
    func: JourneyFunc


# ---------------------------------------------------------------------------
# Journeys
# ---------------------------------------------------------------------------

async def home_exploration(ctx: JourneyContext) -> None:
    home = HomePage(ctx.page, ctx.config, ctx.collector)
    async with ctx.step("Home Page Load"):
        await home.open()
        await home.verify_loaded()
    async with ctx.step("Category Exploration"):
        ctx.state["categories"] = await home.explore_categories()


async def product_search(ctx: JourneyContext) -> None:
    search = SearchPage(ctx.page, ctx.config, ctx.collector)
    async with ctx.step("Home Page Load"):
        await search.goto("/")
        await search.dismiss_popups()
    async with ctx.step("Product Search", category="search"):
        await search.search(ctx.config.search_term)
        count = await search.result_count()
        if count == 0:
            raise AssertionError(f"No results for '{ctx.config.search_term}'")
        ctx.state["result_count"] = count
    async with ctx.step("Open Search Result", category="product"):
        ctx.state["product"] = await search.open_first_result()


async def product_delivery(ctx: JourneyContext) -> None:
    product = ProductPage(ctx.page, ctx.config, ctx.collector)
    async with ctx.step("Product Page Load", category="product"):
        ctx.state["product"] = await product.open_deliverable_product()
    async with ctx.step("Delivery Slot Selection", category="delivery"):
        ctx.state["delivery"] = await product.set_delivery()
    async with ctx.step("Add To Cart", category="cart"):
        await product.add_to_cart()


async def cart_and_coupons(ctx: JourneyContext) -> None:
    await product_delivery(ctx)
    cart = CartPage(ctx.page, ctx.config, ctx.collector)
    async with ctx.step("Cart Verified", category="cart"):
        ctx.state["cart_items"] = await cart.verify_cart()
    async with ctx.step("Invalid Coupon Rejected", category="coupon"):
        await cart.expect_coupon_rejected(ctx.config.invalid_coupon_code)
    async with ctx.step("Valid Coupon Applied", category="coupon"):
        await cart.expect_coupon_applied(ctx.config.valid_coupon_code)
    async with ctx.step("Coupon Removed", category="coupon"):
        await cart.remove_coupon()


async def checkout_to_payment(ctx: JourneyContext) -> None:
    await product_delivery(ctx)
    payment = PaymentPage(ctx.page, ctx.config, ctx.collector)
    async with ctx.step("Proceed To Payment", category="checkout"):
        await payment.proceed_to_pay()
    async with ctx.step("Payment Page Load", category="payment"):
        await payment.wait_loaded()
        ctx.state["payment_methods"] = await payment.available_methods()
    async with ctx.step("Payment Method Selection", category="payment"):
        ctx.state["payment_method"] = await payment.select_method(ctx.state["payment_methods"] or None)


async def otp_login(ctx: JourneyContext) -> None:
    login = LoginPage(ctx.page, ctx.config, ctx.collector, otp_client=ctx.otp_client)
    async with ctx.step("Home Page Load"):
        await login.goto("/")
        await login.dismiss_popups()
    async with ctx.step("Email OTP Login", category="authentication"):
        await login.login(ctx.config.customer_email)


JOURNEYS: dict[str, JourneyDefinition] = {
    d.key: d for d in (
        JourneyDefinition(1, "home", "Home Page Exploration",
                          "Open the home page and browse top categories", home_exploration),
        JourneyDefinition(2, "search", "Product Search",
                          "Search for a product and open a result", product_search),
        JourneyDefinition(3, "delivery", "Product Delivery Selection",
                          "Pick a deliverable product, a delivery slot, and add it to the cart",
                          product_delivery),
        JourneyDefinition(4, "coupons", "Cart And Coupons",
                          "Reject an invalid coupon, apply a valid one, then remove it", cart_and_coupons),
        JourneyDefinition(5, "checkout", "Checkout To Payment",
                          "Proceed from the cart to the payment page", checkout_to_payment),
        JourneyDefinition(6, "login", "OTP Login",
                          "Log in with email and a one-time code from the mailbox", otp_login),
    )
}


def select_journeys(keys: Sequence[str] | None = None) -> list[JourneyDefinition]:
    """Resolve journey keys to definitions, in registry order. Empty means all."""
    if not keys:
        return sorted(JOURNEYS.values(), key=lambda d: d.number)
    unknown = [k for k in keys if k not in JOURNEYS]
    if unknown:
        raise KeyError(f"Unknown journey(s): {', '.join(unknown)}")
    return sorted((JOURNEYS[k] for k in keys), key=lambda d: d.number)
