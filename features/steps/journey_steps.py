"""Step definitions — each phrase maps onto a journey from the flow library."""

from __future__ import annotations

from behave import given, then, when

from journeyqa.flows.journeys import (
    cart_and_coupons,
    checkout_to_payment,
    home_exploration,
    otp_login,
    product_delivery,
    product_search,
)


def _run(context, journey, **overrides):
    ctx = context.journey
    if overrides:
        ctx.config = ctx.config.model_copy(update=overrides)
    context.run_async(journey(ctx))


@given("I explore the home page")
@when("I explore the home page")
def step_explore_home(context):
    _run(context, home_exploration)


@when('I search for "{term}"')
def step_search(context, term):
    _run(context, product_search, search_term=term)


@when("I choose a deliverable product with a delivery slot")
def step_product_delivery(context):
    _run(context, product_delivery)


@when('I open the product "{path}" with "{alternate}" as the alternate')
def step_product_paths(context, path, alternate):
    _run(context, product_delivery, product_path=path, alternate_product_path=alternate)


@when('I try the coupon "{invalid}" and then "{valid}"')
def step_coupons(context, invalid, valid):
    _run(context, cart_and_coupons, invalid_coupon_code=invalid, valid_coupon_code=valid)


@when("I check out to the payment page")
def step_checkout(context):
    _run(context, checkout_to_payment)


@when("I log in with the emailed one-time code")
def step_login(context):
    _run(context, otp_login)


@then("the journey should pass")
def step_journey_passed(context):
    journey = context.collector.current
    assert journey is not None, "No journey in progress"
    failed = [s.step_name for s in journey.steps if s.status == "FAILED"]
    assert not failed, f"Failed steps: {', '.join(failed)}"


@then('the "{key}" should be recorded')
def step_state_recorded(context, key):
    assert context.journey.state.get(key), f"Nothing recorded for '{key}'"
