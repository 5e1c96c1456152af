"""Regression detection — journeys that passed last run and fail now."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from journeyqa.models.records import RunRecord

logger = logging.getLogger(__name__)


@dataclass
class Regression:
    journey_name: str
    journey_number: int
    previous_status: str
    current_status: str
    failure_reason: str | None = None


def detect_regressions(previous: RunRecord, current: RunRecord) -> list[Regression]:
    """Compare two runs journey by journey, matched on journey name."""
    prev_by_name = {j.journey_name: j for j in previous.journeys}

    regressions = []
    for journey in current.journeys:
        prev = prev_by_name.get(journey.journey_name)
        if prev and prev.status == "PASSED" and journey.status == "FAILED":
            regressions.append(Regression(
                journey_name=journey.journey_name,
                journey_number=journey.journey_number,
                previous_status=prev.status,
                current_status=journey.status,
                failure_reason=journey.failure_reason,
            ))

    if regressions:
        logger.warning("Detected %d regressions", len(regressions))
    return regressions
