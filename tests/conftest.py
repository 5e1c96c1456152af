"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from journeyqa.models.config import DatastoreConfig, FrameworkConfig, MailboxConfig
from journeyqa.models.records import ApiCall, Journey, RunRecord, Step, TestRun


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def framework_config(tmp_path: Path) -> FrameworkConfig:
    """A config pointed at a fake storefront with fast timeouts."""
    return FrameworkConfig(
        base_url="https://shop.example.com",
        system="desktop",
        environment="test",
        action_timeout_ms=500,
        probe_timeout_ms=100,
        navigation_timeout_ms=1000,
        customer_email="qa@example.com",
        product_path="/gift/red-roses",
        alternate_product_path="/gift/pastel-carnations",
        report_output_dir=str(tmp_path / "reports"),
    )


@pytest.fixture
def mailbox_config() -> MailboxConfig:
    return MailboxConfig(
        address="qa@example.com",
        app_password="app-password",
        otp_timeout_seconds=0,
        poll_interval_seconds=0,
    )


@pytest.fixture
def datastore_config() -> DatastoreConfig:
    return DatastoreConfig(url="https://db.example.com", key="anon-key", retry_delay_seconds=0)


# ============================================================================
# Record Fixtures
# ============================================================================


def make_step(
    name: str = "Home Page Load",
    status: str = "PASSED",
    duration_ms: int = 1200,
    **kwargs: Any,
) -> Step:
    return Step(
        run_id=kwargs.pop("run_id", "run-1"),
        step_name=name,
        status=status,
        duration_ms=duration_ms,
        **kwargs,
    )


@pytest.fixture
def passed_journey() -> Journey:
    return Journey(
        run_id="run-1",
        journey_id="j-1",
        journey_number=1,
        journey_name="Home Page Exploration",
        status="PASSED",
        duration_ms=4000,
        total_steps=2,
        passed_steps=2,
        steps=[
            make_step("Home Page Load", journey_id="j-1", step_number=1),
            make_step("Category Exploration", journey_id="j-1", step_number=2),
        ],
    )


@pytest.fixture
def failed_journey() -> Journey:
    return Journey(
        run_id="run-1",
        journey_id="j-2",
        journey_number=2,
        journey_name="Cart And Coupons",
        status="FAILED",
        duration_ms=9000,
        total_steps=2,
        passed_steps=1,
        failed_steps=1,
        failure_reason="Coupon validation failed",
        error_type="AssertionError",
        error_message="coupon message mismatch",
        steps=[
            make_step("Add To Cart", journey_id="j-2", step_number=1, step_category="cart"),
            make_step(
                "Invalid Coupon Rejected", "FAILED", 3000,
                journey_id="j-2", step_number=2, step_category="coupon",
                error_type="AssertionError", error_message="coupon message mismatch",
                api_calls=[ApiCall(url="https://shop.example.com/api/coupon", method="POST",
                                   status=500, response_body="boom")],
            ),
        ],
    )


@pytest.fixture
def run_record(passed_journey: Journey, failed_journey: Journey) -> RunRecord:
    run = TestRun(
        run_id="run-1",
        executed_at="2026-01-05T10:00:00Z",
        completed_at="2026-01-05T10:00:13Z",
        environment="test",
        total_journeys=2,
        passed_journeys=1,
        failed_journeys=1,
        total_steps=4,
        passed_steps=3,
        failed_steps=1,
        success_rate=75.0,
        total_runtime_ms=13000,
        metadata={"system": "DESKTOP", "readable_run_id": "DESKTOP-20260105-100000"},
    )
    return RunRecord(run=run, journeys=[passed_journey, failed_journey])


# ============================================================================
# Fake Supabase client
# ============================================================================


class FakeResponse:
    def __init__(self, data: Any):
        self.data = data


class FakeQuery:
    """Chainable stand-in for the query builder; records every call."""

    def __init__(self, client: "FakeClient", table: str):
        self.client = client
        self.table = table
        self.calls: list[tuple[str, tuple, dict]] = []

    @property
    def not_(self) -> "FakeQuery":
        self.calls.append(("not_", (), {}))
        return self

    def __getattr__(self, name: str):
        if name.startswith("__"):
            raise AttributeError(name)

        def _record(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return _record

    def called(self, name: str) -> list[tuple]:
        return [args for n, args, _ in self.calls if n == name]

    def execute(self) -> FakeResponse:
        queued = self.client.responses.get(self.table)
        item = queued.pop(0) if queued else []
        if isinstance(item, Exception):
            raise item
        return FakeResponse(item)


class FakeRpc:
    def __init__(self, client: "FakeClient", name: str, params: dict):
        self.client = client
        self.name = name
        self.params = params

    def execute(self) -> FakeResponse:
        error = self.client.rpc_errors.get(self.name)
        if error is not None:
            raise error
        return FakeResponse(self.client.rpc_data.get(self.name, []))


class FakeClient:
    """Queue table responses per table (data lists or exceptions) and RPC results by name."""

    def __init__(self):
        self.responses: dict[str, list[Any]] = {}
        self.rpc_data: dict[str, list[dict]] = {}
        self.rpc_errors: dict[str, Exception] = {}
        self.queries: list[FakeQuery] = []
        self.rpc_calls: list[tuple[str, dict]] = []

    def queue(self, table: str, *items: Any) -> None:
        self.responses.setdefault(table, []).extend(items)

    def table(self, name: str) -> FakeQuery:
        query = FakeQuery(self, name)
        self.queries.append(query)
        return query

    def rpc(self, name: str, params: dict | None = None) -> FakeRpc:
        self.rpc_calls.append((name, params or {}))
        return FakeRpc(self, name, params or {})

    def queries_for(self, table: str) -> list[FakeQuery]:
        return [q for q in self.queries if q.table == table]


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


# ============================================================================
# Playwright Mocks
# ============================================================================


def make_locator(
    visible: bool = True,
    enabled: bool = True,
    click_error: Exception | None = None,
    count: int = 1,
    href: str | None = None,
) -> MagicMock:
    """A locator whose async methods are AsyncMocks; chaining returns itself."""
    loc = MagicMock()
    loc.first = loc
    loc.nth.return_value = loc
    loc.filter.return_value = loc
    loc.wait_for = AsyncMock(side_effect=None if visible else TimeoutError("not visible"))
    loc.is_enabled = AsyncMock(return_value=enabled)
    loc.click = AsyncMock(side_effect=click_error)
    loc.fill = AsyncMock()
    loc.clear = AsyncMock()
    loc.press = AsyncMock()
    loc.count = AsyncMock(return_value=count)
    loc.get_attribute = AsyncMock(return_value=href)
    return loc


def missing_locator() -> MagicMock:
    loc = make_locator(visible=False, click_error=TimeoutError("element not found"), count=0)
    loc.fill = AsyncMock(side_effect=TimeoutError("element not found"))
    return loc


@pytest.fixture
def mock_page() -> MagicMock:
    """A page where every selector is missing unless registered in ``page.selectors``.

    ``page.selectors`` maps CSS selectors and ``page.texts`` maps text, role
    and test-id lookups to locators.
    """
    page = MagicMock()
    page.selectors = {}
    page.texts = {}
    page.locator.side_effect = lambda s: page.selectors.get(s) or missing_locator()
    page.get_by_text.side_effect = lambda t, exact=False: page.texts.get(t) or missing_locator()
    page.get_by_role.side_effect = lambda role, name=None: page.texts.get(name) or missing_locator()
    page.get_by_test_id.side_effect = lambda tid: page.texts.get(tid) or missing_locator()
    page.goto = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.wait_for_url = AsyncMock()
    page.evaluate = AsyncMock()
    page.screenshot = AsyncMock()
    return page
