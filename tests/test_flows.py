"""Tests for the journey library."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from journeyqa.flows.journeys import (
    JOURNEYS,
    JourneyContext,
    cart_and_coupons,
    checkout_to_payment,
    product_search,
    select_journeys,
)
from journeyqa.tracking.collector import ExecutionCollector


@pytest.fixture
def collector() -> ExecutionCollector:
    collector = ExecutionCollector()
    collector.start_run(system="DESKTOP", environment="test")
    collector.start_journey(1, "Home Page Exploration")
    return collector


@pytest.fixture
def evidence() -> MagicMock:
    evidence = MagicMock()
    evidence.take_screenshot = AsyncMock(return_value="/tmp/evidence/failure_1_Add_To_Cart.png")
    evidence.drain_step_calls.return_value = [
        {"url": "https://shop.example.com/api/cart", "method": "POST", "status": 500},
    ]
    return evidence


class TestJourneyContextStep:
    """Tests for the step recorder."""

    @pytest.mark.asyncio
    async def test_passed_step(self, mock_page, framework_config, collector):
        ctx = JourneyContext(page=mock_page, config=framework_config, collector=collector)

        async with ctx.step("Home Page Load"):
            pass

        step = collector.current.steps[0]
        assert step.step_name == "Home Page Load"
        assert step.status == "PASSED"
        assert step.step_category == "navigation"

    @pytest.mark.asyncio
    async def test_failed_step_recorded_and_reraised(self, mock_page, framework_config,
                                                     collector, evidence):
        ctx = JourneyContext(page=mock_page, config=framework_config,
                             collector=collector, evidence=evidence)

        with pytest.raises(AssertionError):
            async with ctx.step("Add To Cart", category="cart"):
                raise AssertionError("cart drawer missing")

        step = collector.current.steps[0]
        assert step.status == "FAILED"
        assert step.error_type == "AssertionError"
        assert step.metadata["screenshot_path"].endswith("failure_1_Add_To_Cart.png")
        assert step.api_calls[0].status == 500
        assert collector.current.status == "FAILED"
        evidence.take_screenshot.assert_awaited_once_with(mock_page, "Add To Cart")

    @pytest.mark.asyncio
    async def test_no_screenshot_when_disabled(self, mock_page, framework_config, collector, evidence):
        config = framework_config.model_copy(update={"screenshot_on_failure": False})
        ctx = JourneyContext(page=mock_page, config=config, collector=collector, evidence=evidence)

        with pytest.raises(RuntimeError):
            async with ctx.step("Payment Page Load"):
                raise RuntimeError("timeout")

        evidence.take_screenshot.assert_not_called()
        assert collector.current.steps[0].metadata == {}


class TestJourneys:
    """Tests for journey composition."""

    @pytest.mark.asyncio
    async def test_search_without_results_fails_step(self, mock_page, framework_config, collector):
        search = MagicMock()
        search.goto = AsyncMock()
        search.dismiss_popups = AsyncMock()
        search.search = AsyncMock()
        search.result_count = AsyncMock(return_value=0)
        search.open_first_result = AsyncMock()
        ctx = JourneyContext(page=mock_page, config=framework_config, collector=collector)

        with patch("journeyqa.flows.journeys.SearchPage", return_value=search):
            with pytest.raises(AssertionError, match="No results for 'cake'"):
                await product_search(ctx)

        names = [(s.step_name, s.status) for s in collector.current.steps]
        assert names == [("Home Page Load", "PASSED"), ("Product Search", "FAILED")]
        search.open_first_result.assert_not_called()

    @pytest.mark.asyncio
    async def test_search_records_result_count(self, mock_page, framework_config, collector):
        search = MagicMock()
        for name in ("goto", "dismiss_popups", "search"):
            setattr(search, name, AsyncMock())
        search.result_count = AsyncMock(return_value=12)
        search.open_first_result = AsyncMock(return_value="/gift/red-roses")
        ctx = JourneyContext(page=mock_page, config=framework_config, collector=collector)

        with patch("journeyqa.flows.journeys.SearchPage", return_value=search):
            await product_search(ctx)

        assert ctx.state == {"result_count": 12, "product": "/gift/red-roses"}
        assert collector.current.passed_steps == 3

    @pytest.mark.asyncio
    async def test_coupons_verify_cart_and_remove_coupon(self, mock_page, framework_config, collector):
        cart = MagicMock()
        cart.verify_cart = AsyncMock(return_value=1)
        for name in ("expect_coupon_rejected", "expect_coupon_applied", "remove_coupon"):
            setattr(cart, name, AsyncMock())
        ctx = JourneyContext(page=mock_page, config=framework_config, collector=collector)

        with patch("journeyqa.flows.journeys.product_delivery", AsyncMock()), \
             patch("journeyqa.flows.journeys.CartPage", return_value=cart):
            await cart_and_coupons(ctx)

        assert [s.step_name for s in collector.current.steps] == [
            "Cart Verified", "Invalid Coupon Rejected", "Valid Coupon Applied", "Coupon Removed",
        ]
        assert ctx.state["cart_items"] == 1
        cart.remove_coupon.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_checkout_selects_offered_payment_method(self, mock_page, framework_config, collector):
        payment = MagicMock()
        for name in ("proceed_to_pay", "wait_loaded"):
            setattr(payment, name, AsyncMock())
        payment.available_methods = AsyncMock(return_value=["Net Banking", "QR"])
        payment.select_method = AsyncMock(return_value="Net Banking")
        ctx = JourneyContext(page=mock_page, config=framework_config, collector=collector)

        with patch("journeyqa.flows.journeys.product_delivery", AsyncMock()), \
             patch("journeyqa.flows.journeys.PaymentPage", return_value=payment):
            await checkout_to_payment(ctx)

        payment.select_method.assert_awaited_once_with(["Net Banking", "QR"])
        assert ctx.state["payment_method"] == "Net Banking"
        assert collector.current.steps[-1].step_name == "Payment Method Selection"


class TestSelectJourneys:
    def test_all_by_default(self):
        assert [d.number for d in select_journeys()] == [1, 2, 3, 4, 5, 6]
        assert select_journeys([]) == select_journeys(None)

    def test_registry_order(self):
        assert [d.key for d in select_journeys(["login", "home"])] == ["home", "login"]

    def test_unknown_key(self):
        with pytest.raises(KeyError, match="nope"):
            select_journeys(["home", "nope"])

    def test_registry_keys(self):
        assert set(JOURNEYS) == {"home", "search", "delivery", "coupons", "checkout", "login"}
