"""Tests for the page objects."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import make_locator, missing_locator
from journeyqa.executor.fallback import ActionFailedError, NoOptionAvailableError
from journeyqa.pages.base_page import BasePage
from journeyqa.pages.cart_page import (
    APPLIED_COUPON_MESSAGE,
    INVALID_COUPON_MESSAGE,
    CartPage,
    EmptyCartError,
)
from journeyqa.pages.home_page import HomePage
from journeyqa.pages.login_page import OTP_FIELDS, LoginPage, OtpNotReceivedError
from journeyqa.pages.payment_page import PaymentPage
from journeyqa.pages.product_page import SELECT_DATE_TOAST, ProductPage
from journeyqa.pages.search_page import SearchPage


def _busy_network(state, timeout=None):
    if state == "networkidle":
        raise TimeoutError("still busy")


class TestBasePage:
    """Tests for navigation and the shared widgets."""

    def test_url_joins_relative_paths(self, mock_page, framework_config):
        page = BasePage(mock_page, framework_config)
        assert page.url("/gift/red-roses") == "https://shop.example.com/gift/red-roses"
        assert page.url("cart") == "https://shop.example.com/cart"
        assert page.url("https://other.example.com/x") == "https://other.example.com/x"

    @pytest.mark.asyncio
    async def test_goto_tolerates_busy_network(self, mock_page, framework_config):
        collector = MagicMock()
        mock_page.wait_for_load_state.side_effect = _busy_network
        page = BasePage(mock_page, framework_config, collector)

        await page.goto("/cart")

        mock_page.goto.assert_awaited_once_with(
            "https://shop.example.com/cart", wait_until="domcontentloaded", timeout=1000,
        )
        collector.record_page_load.assert_called_once()
        assert collector.record_page_load.call_args.args[0] == "https://shop.example.com/cart"

    @pytest.mark.asyncio
    async def test_wait_ready_waits_for_dom_then_idle(self, mock_page, framework_config):
        await BasePage(mock_page, framework_config).wait_ready()

        assert [c.args[0] for c in mock_page.wait_for_load_state.await_args_list] == [
            "domcontentloaded", "networkidle",
        ]
        assert mock_page.wait_for_load_state.await_args_list[0].kwargs["timeout"] == 1000

    @pytest.mark.asyncio
    async def test_wait_ready_requires_dom(self, mock_page, framework_config):
        mock_page.wait_for_load_state.side_effect = TimeoutError("page never loaded")
        with pytest.raises(TimeoutError):
            await BasePage(mock_page, framework_config).wait_ready(timeout_ms=200)
        mock_page.wait_for_load_state.assert_awaited_once_with("domcontentloaded", timeout=200)

    @pytest.mark.asyncio
    async def test_dismiss_popups_counts_closed(self, mock_page, framework_config):
        close = make_locator()
        mock_page.selectors['button:has-text("Close")'] = close
        assert await BasePage(mock_page, framework_config).dismiss_popups() == 1
        close.click.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_dismiss_popups_none_visible(self, mock_page, framework_config):
        assert await BasePage(mock_page, framework_config).dismiss_popups() == 0

    @pytest.mark.asyncio
    async def test_time_slot_preference_order(self, mock_page, framework_config):
        mock_page.texts["14:00 - 16:00 Hrs"] = make_locator()
        mock_page.texts["12:00 - 14:00 Hrs"] = make_locator(enabled=False)
        slot = await BasePage(mock_page, framework_config).select_time_slot()
        assert slot == "14:00 - 16:00 Hrs"

    @pytest.mark.asyncio
    async def test_no_time_slot_raises(self, mock_page, framework_config):
        with pytest.raises(NoOptionAvailableError, match="time slot"):
            await BasePage(mock_page, framework_config).select_time_slot()

    @pytest.mark.asyncio
    async def test_proceed_to_pay_required(self, mock_page, framework_config):
        with pytest.raises(ActionFailedError, match="proceed to pay"):
            await BasePage(mock_page, framework_config).proceed_to_pay()

    @pytest.mark.asyncio
    async def test_proceed_to_pay_tolerates_url_mismatch(self, mock_page, framework_config):
        button = make_locator()
        mock_page.selectors['button:has-text("Proceed to Pay")'] = button
        mock_page.wait_for_url.side_effect = TimeoutError("no redirect")

        await BasePage(mock_page, framework_config).proceed_to_pay()

        button.click.assert_awaited_once()


class TestHomePage:
    @pytest.mark.asyncio
    async def test_verify_loaded_uses_first_landmark(self, mock_page, framework_config):
        mock_page.selectors["nav"] = make_locator()
        assert await HomePage(mock_page, framework_config).verify_loaded() == "nav"

    @pytest.mark.asyncio
    async def test_verify_loaded_fails_without_landmarks(self, mock_page, framework_config):
        with pytest.raises(ActionFailedError):
            await HomePage(mock_page, framework_config).verify_loaded()

    @pytest.mark.asyncio
    async def test_category_links_deduplicated(self, mock_page, framework_config):
        links = make_locator(count=5)
        links.get_attribute.side_effect = ["#top", "/flowers", "/flowers", "javascript:void(0)", "/cakes"]
        mock_page.selectors[HomePage.CATEGORY_LINKS] = links

        assert await HomePage(mock_page, framework_config).category_links() == ["/flowers", "/cakes"]

    @pytest.mark.asyncio
    async def test_explore_skips_broken_categories(self, mock_page, framework_config):
        links = make_locator(count=2)
        links.get_attribute.side_effect = ["/flowers", "/cakes"]
        mock_page.selectors[HomePage.CATEGORY_LINKS] = links
        mock_page.goto.side_effect = [RuntimeError("net::ERR_ABORTED"), None]

        visited = await HomePage(mock_page, framework_config).explore_categories()

        assert visited == ["/cakes"]


class TestSearchPage:
    @pytest.mark.asyncio
    async def test_search_uses_first_working_input(self, mock_page, framework_config):
        box = make_locator()
        mock_page.selectors['input[name="q"]'] = box

        await SearchPage(mock_page, framework_config).search("roses")

        box.fill.assert_awaited_once_with("roses", timeout=500)
        box.press.assert_awaited_once_with("Enter")

    @pytest.mark.asyncio
    async def test_search_without_input_fails(self, mock_page, framework_config):
        with pytest.raises(ActionFailedError, match="search input"):
            await SearchPage(mock_page, framework_config).search("roses")

    @pytest.mark.asyncio
    async def test_results(self, mock_page, framework_config):
        cards = make_locator(count=7, href="/gift/red-roses")
        mock_page.selectors[SearchPage.RESULT_CARDS] = cards
        page = SearchPage(mock_page, framework_config)

        assert await page.result_count() == 7
        assert await page.open_first_result() == "/gift/red-roses"
        cards.click.assert_awaited_once()


class TestProductPage:
    """Tests for restriction handling and delivery selection."""

    @pytest.mark.asyncio
    async def test_deliverable_product_kept(self, mock_page, framework_config):
        path = await ProductPage(mock_page, framework_config).open_deliverable_product()
        assert path == "/gift/red-roses"
        assert mock_page.goto.await_count == 1

    @pytest.mark.asyncio
    async def test_restricted_product_switches_to_alternate(self, mock_page, framework_config):
        mock_page.texts["input_related_message"] = make_locator()

        path = await ProductPage(mock_page, framework_config).open_deliverable_product()

        assert path == "/gift/pastel-carnations"
        urls = [c.args[0] for c in mock_page.goto.call_args_list]
        assert urls == ["https://shop.example.com/gift/red-roses",
                        "https://shop.example.com/gift/pastel-carnations"]

    @pytest.mark.asyncio
    async def test_later_delivery(self, mock_page, framework_config):
        popover = make_locator()
        popover.get_by_role.return_value = missing_locator()
        popover.get_by_text.side_effect = lambda d, exact=False: make_locator() if d == "20" else missing_locator()
        mock_page.texts["popover"] = popover
        mock_page.texts["Later"] = make_locator()
        mock_page.texts["16:00 - 18:00 Hrs"] = make_locator()

        delivery = await ProductPage(mock_page, framework_config).set_delivery()

        assert delivery == {"mode": "later", "date": "20", "slot": "16:00 - 18:00 Hrs"}

    @pytest.mark.asyncio
    async def test_falls_back_to_today(self, mock_page, framework_config):
        today = make_locator()
        mock_page.texts["Today"] = today
        mock_page.texts["18:00 - 20:00 Hrs"] = make_locator()

        delivery = await ProductPage(mock_page, framework_config).set_delivery()

        assert delivery == {"mode": "today", "date": None, "slot": "18:00 - 20:00 Hrs"}
        today.click.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_delivery_option_fails(self, mock_page, framework_config):
        with pytest.raises(ActionFailedError, match="today delivery"):
            await ProductPage(mock_page, framework_config).set_delivery()

    @pytest.mark.asyncio
    async def test_add_to_cart(self, mock_page, framework_config):
        button = make_locator()
        mock_page.texts["Add To Cart"] = button
        await ProductPage(mock_page, framework_config).add_to_cart()
        button.click.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_add_to_cart_sets_delivery_when_asked(self, mock_page, framework_config):
        button = make_locator()
        mock_page.texts["Add To Cart"] = button
        mock_page.texts[SELECT_DATE_TOAST] = make_locator()
        page = ProductPage(mock_page, framework_config)
        page.set_delivery = AsyncMock(return_value={"mode": "today"})

        await page.add_to_cart()

        page.set_delivery.assert_awaited_once()
        assert button.click.await_count == 2


class TestCartPage:
    """Tests for coupon handling."""

    def _register_form(self, mock_page):
        box, apply = make_locator(), make_locator()
        mock_page.texts["Enter coupon code"] = box
        mock_page.texts["Apply"] = apply
        return box, apply

    @pytest.mark.asyncio
    async def test_invalid_coupon_expects_rejection(self, mock_page, framework_config):
        box, apply = self._register_form(mock_page)
        assertion = MagicMock()
        assertion.to_contain_text = AsyncMock()

        with patch("journeyqa.pages.cart_page.expect", return_value=assertion) as mock_expect:
            await CartPage(mock_page, framework_config).expect_coupon_rejected("BAD")

        box.fill.assert_awaited_once_with("BAD", timeout=500)
        apply.click.assert_awaited_once()
        mock_expect.assert_called_once()
        assertion.to_contain_text.assert_awaited_once_with(INVALID_COUPON_MESSAGE, timeout=500)

    @pytest.mark.asyncio
    async def test_valid_coupon_expects_applied(self, mock_page, framework_config):
        self._register_form(mock_page)
        message = make_locator()
        mock_page.texts["external-coupon"] = message
        assertion = MagicMock()
        assertion.to_contain_text = AsyncMock()

        with patch("journeyqa.pages.cart_page.expect", return_value=assertion) as mock_expect:
            await CartPage(mock_page, framework_config).expect_coupon_applied("GIFT10")

        mock_expect.assert_called_once_with(message)
        assertion.to_contain_text.assert_awaited_once_with(APPLIED_COUPON_MESSAGE, timeout=500)

    @pytest.mark.asyncio
    async def test_missing_apply_button_fails(self, mock_page, framework_config):
        mock_page.texts["Enter coupon code"] = make_locator()
        with pytest.raises(ActionFailedError, match="apply coupon"):
            await CartPage(mock_page, framework_config).apply_coupon("GIFT10")

    @pytest.mark.asyncio
    async def test_remove_coupon_clears_applied_message(self, mock_page, framework_config):
        message = make_locator()
        remove = make_locator()
        message.get_by_role.return_value = remove
        mock_page.texts["external-coupon"] = message
        assertion = MagicMock()
        assertion.not_to_contain_text = AsyncMock()

        with patch("journeyqa.pages.cart_page.expect", return_value=assertion):
            await CartPage(mock_page, framework_config).remove_coupon()

        message.get_by_role.assert_called_once_with("button", name="Remove")
        remove.click.assert_awaited_once()
        assertion.not_to_contain_text.assert_awaited_once_with(APPLIED_COUPON_MESSAGE, timeout=500)

    @pytest.mark.asyncio
    async def test_remove_coupon_without_button_fails(self, mock_page, framework_config):
        with pytest.raises(ActionFailedError, match="remove coupon"):
            await CartPage(mock_page, framework_config).remove_coupon()

    @pytest.mark.asyncio
    async def test_verify_cart_counts_items(self, mock_page, framework_config):
        mock_page.selectors['#right_drawer [data-testid="product-card"]'] = make_locator(count=2)
        assert await CartPage(mock_page, framework_config).verify_cart() == 2

    @pytest.mark.asyncio
    async def test_verify_empty_cart_fails(self, mock_page, framework_config):
        with pytest.raises(EmptyCartError, match="No items"):
            await CartPage(mock_page, framework_config).verify_cart()


class TestPaymentPage:
    @pytest.mark.asyncio
    async def test_available_methods(self, mock_page, framework_config):
        mock_page.texts["UPI"] = make_locator()
        mock_page.texts["QR"] = make_locator()
        assert await PaymentPage(mock_page, framework_config).available_methods() == ["UPI", "QR"]

    @pytest.mark.asyncio
    async def test_select_method_preference(self, mock_page, framework_config):
        mock_page.texts["Net Banking"] = make_locator()
        chosen = await PaymentPage(mock_page, framework_config).select_method()
        assert chosen == "Net Banking"


class TestLoginPage:
    """Tests for the email/OTP login."""

    @pytest.mark.asyncio
    async def test_requires_otp_client(self, mock_page, framework_config):
        with pytest.raises(OtpNotReceivedError, match="No mailbox"):
            await LoginPage(mock_page, framework_config).login("qa@example.com")

    def _register_drawer(self, mock_page):
        email = make_locator()
        mock_page.selectors["#userEmail"] = email
        mock_page.selectors["#right_drawer button"] = make_locator()
        digits = {label: make_locator() for label in OTP_FIELDS}
        mock_page.texts.update(digits)
        return email, digits

    @pytest.mark.asyncio
    async def test_full_login(self, mock_page, framework_config):
        email, digits = self._register_drawer(mock_page)
        otp_client = MagicMock()
        otp_client.wait_for_otp = AsyncMock(return_value="4821")

        code = await LoginPage(mock_page, framework_config, otp_client=otp_client).login("qa@example.com")

        assert code == "4821"
        email.fill.assert_awaited_once_with("qa@example.com")
        assert [digits[label].fill.call_args.args[0] for label in OTP_FIELDS] == ["4", "8", "2", "1"]

    @pytest.mark.asyncio
    async def test_six_digit_code_uses_single_field(self, mock_page, framework_config):
        _, digits = self._register_drawer(mock_page)
        single = make_locator()
        mock_page.selectors['input[autocomplete="one-time-code"]'] = single

        await LoginPage(mock_page, framework_config).enter_otp("482199")

        single.fill.assert_awaited_once_with("482199", timeout=500)
        for label in OTP_FIELDS:
            digits[label].fill.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_digit_boxes_use_single_field(self, mock_page, framework_config):
        single = make_locator()
        mock_page.selectors['input[name="otp"]'] = single

        await LoginPage(mock_page, framework_config).enter_otp("4821")

        single.fill.assert_awaited_once_with("4821", timeout=500)

    @pytest.mark.asyncio
    async def test_code_that_fits_no_field_raises(self, mock_page, framework_config):
        _, digits = self._register_drawer(mock_page)

        with pytest.raises(ActionFailedError, match="otp field"):
            await LoginPage(mock_page, framework_config).enter_otp("482199")
        for label in OTP_FIELDS:
            digits[label].fill.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_otp_raises(self, mock_page, framework_config):
        self._register_drawer(mock_page)
        otp_client = MagicMock()
        otp_client.wait_for_otp = AsyncMock(return_value=None)

        with pytest.raises(OtpNotReceivedError, match="qa@example.com"):
            await LoginPage(mock_page, framework_config, otp_client=otp_client).login("qa@example.com")

    @pytest.mark.asyncio
    async def test_account_menu_required(self, mock_page, framework_config):
        with pytest.raises(ActionFailedError, match="account menu"):
            await LoginPage(mock_page, framework_config).open_login_drawer()
