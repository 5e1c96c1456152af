"""Resilient UI actions — ordered candidate lists with a declared failure policy."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence

from playwright.async_api import Locator, Page

logger = logging.getLogger(__name__)


class ActionPolicy(str, enum.Enum):
    REQUIRED = "required"  # exhausting every candidate aborts the journey
    OPTIONAL = "optional"  # exhausting every candidate is logged and skipped


class JourneyError(Exception):
    """Base error raised by journey flows."""


class ActionFailedError(JourneyError):
    """A REQUIRED action ran out of candidates."""

    def __init__(self, action: str, attempts: list[dict]):
        self.action = action
        self.attempts = attempts
        last = attempts[-1]["error"] if attempts else "no candidates"
        super().__init__(
            f"{action}: all {len(attempts)} candidates failed (last error: {last})"
        )


class NoOptionAvailableError(JourneyError):
    """Every entry of a preference list was exhausted."""

    def __init__(self, what: str, options: Sequence[str]):
        self.what = what
        self.options = list(options)
        super().__init__(f"No available {what} found (tried {', '.join(self.options)})")


@dataclass
class Candidate:
    label: str
    run: Callable[[], Awaitable[object]]


@dataclass
class FallbackOutcome:
    succeeded: bool
    used: str | None = None
    attempts: list[dict] = field(default_factory=list)  # [{candidate, success, error}]


async def try_in_order(
    candidates: Sequence[Candidate],
    policy: ActionPolicy = ActionPolicy.REQUIRED,
    action: str = "action",
) -> FallbackOutcome:
    """Run candidates in order, stopping at the first one that does not raise.

    When every candidate fails, a REQUIRED action raises ActionFailedError and
    an OPTIONAL action returns an unsuccessful outcome.
    """
    attempts: list[dict] = []
    for candidate in candidates:
        try:
            await candidate.run()
        except Exception as e:
            attempts.append({"candidate": candidate.label, "success": False, "error": str(e)})
            logger.debug("%s: candidate '%s' failed: %s", action, candidate.label, e)
            continue
        attempts.append({"candidate": candidate.label, "success": True, "error": None})
        if len(attempts) > 1:
            logger.info("%s: succeeded via fallback '%s'", action, candidate.label)
        return FallbackOutcome(succeeded=True, used=candidate.label, attempts=attempts)

    if policy is ActionPolicy.REQUIRED:
        raise ActionFailedError(action, attempts)
    logger.warning("%s: skipped, no candidate succeeded (%d tried)", action, len(attempts))
    return FallbackOutcome(succeeded=False, attempts=attempts)


def _as_locator(page: Page, target: str | Locator) -> Locator:
    return page.locator(target) if isinstance(target, str) else target


def _label(target: str | Locator) -> str:
    return target if isinstance(target, str) else repr(target)


async def click_first(
    page: Page,
    targets: Sequence[str | Locator],
    policy: ActionPolicy = ActionPolicy.REQUIRED,
    action: str = "click",
    timeout_ms: int = 5000,
) -> FallbackOutcome:
    """Click the first target that becomes actionable within the timeout."""

    def _make(target: str | Locator) -> Candidate:
        async def _run() -> None:
            await _as_locator(page, target).first.click(timeout=timeout_ms)
        return Candidate(label=_label(target), run=_run)

    return await try_in_order([_make(t) for t in targets], policy, action)


async def fill_first(
    page: Page,
    targets: Sequence[str | Locator],
    value: str,
    policy: ActionPolicy = ActionPolicy.REQUIRED,
    action: str = "fill",
    timeout_ms: int = 5000,
) -> FallbackOutcome:
    """Fill the first target that accepts input within the timeout."""

    def _make(target: str | Locator) -> Candidate:
        async def _run() -> None:
            await _as_locator(page, target).first.fill(value, timeout=timeout_ms)
        return Candidate(label=_label(target), run=_run)

    return await try_in_order([_make(t) for t in targets], policy, action)


async def probe(page: Page, target: str | Locator, timeout_ms: int = 3000) -> bool:
    """Return True if the target becomes visible within the timeout."""
    try:
        await _as_locator(page, target).first.wait_for(state="visible", timeout=timeout_ms)
        return True
    except Exception:
        return False


async def pick_first_available(
    page: Page,
    options: Sequence[str],
    locator_for: Callable[[str], str | Locator],
    what: str = "option",
    timeout_ms: int = 2000,
) -> str:
    """Select the first option in preference order that is visible and enabled.

    Returns the chosen option. Raises NoOptionAvailableError only after every
    entry has been tried.
    """
    for option in options:
        locator = _as_locator(page, locator_for(option)).first
        try:
            await locator.wait_for(state="visible", timeout=timeout_ms)
            if not await locator.is_enabled():
                logger.debug("%s '%s' visible but disabled", what, option)
                continue
            await locator.click(timeout=timeout_ms)
        except Exception as e:
            logger.debug("%s '%s' unavailable: %s", what, option, e)
            continue
        logger.info("Selected %s '%s'", what, option)
        return option
    raise NoOptionAvailableError(what, options)
