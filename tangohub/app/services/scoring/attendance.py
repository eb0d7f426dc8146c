"""Event attendance prediction."""

import math
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from tangohub.app.core.logging import get_logger
from tangohub.app.services.scoring.models import (
    AttendanceFactor,
    AttendancePrediction,
    EventFeatures,
    as_utc,
    step_confidence,
)

logger = get_logger(__name__)

DEFAULT_ATTENDANCE = 50.0
ORGANIZER_WEIGHT = 0.6
VENUE_WEIGHT = 0.4

EVENT_TYPE_MULTIPLIERS = {
    "milonga": 1.0,
    "workshop": 0.8,
    "festival": 1.5,
    "class": 0.7,
    "practica": 0.6,
}

FREE_MULTIPLIER = 1.3
EXPENSIVE_PRICE = 50
EXPENSIVE_MULTIPLIER = 0.7
SHORT_NOTICE_DAYS = 7
SHORT_NOTICE_MULTIPLIER = 0.8
FAR_AHEAD_DAYS = 90
FAR_AHEAD_MULTIPLIER = 0.9
DAY_MULTIPLIERS = {4: 1.2, 5: 1.2, 6: 1.1}  # Friday, Saturday, Sunday

RANGE_LOW = 0.7
RANGE_HIGH = 1.3

CONFIDENCE_TIERS = ((1, 0.3), (5, 0.5), (15, 0.7))
CONFIDENCE_CEILING = 0.85


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _impact(multiplier: float) -> int:
    return _round((multiplier - 1) * 100)


def _average(history: Sequence[int]) -> float:
    if not history:
        return DEFAULT_ATTENDANCE
    return sum(history) / len(history)


class AttendancePredictor:
    """Predicts how many dancers will show up to an event."""

    def baseline(
        self,
        organizer_history: Sequence[int],
        venue_history: Sequence[int],
    ) -> float:
        """Weighted blend of organizer and venue averages.

        Each side falls back to the default when it has no history.
        """
        return (
            ORGANIZER_WEIGHT * _average(organizer_history)
            + VENUE_WEIGHT * _average(venue_history)
        )

    def predict(
        self,
        event: EventFeatures,
        organizer_history: Sequence[int] = (),
        venue_history: Sequence[int] = (),
        now: Optional[datetime] = None,
    ) -> AttendancePrediction:
        """Predict attendance for an event.

        Args:
            event: Event being announced
            organizer_history: Actual attendance of the organizer's past events
            venue_history: Actual attendance of past events at the venue
            now: Reference time for the days-until-event factor
        """
        now = as_utc(now or datetime.now(timezone.utc))
        start = as_utc(event.start_time)
        factors: List[AttendanceFactor] = []

        base = self.baseline(organizer_history, venue_history)
        attendance = base

        event_type = event.event_type.strip().lower()
        type_x = EVENT_TYPE_MULTIPLIERS.get(event_type, 1.0)
        attendance *= type_x
        if type_x != 1.0:
            factors.append(AttendanceFactor(f"Event type: {event_type}", _impact(type_x)))

        if event.price == 0:
            attendance *= FREE_MULTIPLIER
            factors.append(AttendanceFactor("Free entry", _impact(FREE_MULTIPLIER)))
        elif event.price > EXPENSIVE_PRICE:
            attendance *= EXPENSIVE_MULTIPLIER
            factors.append(AttendanceFactor("High price", _impact(EXPENSIVE_MULTIPLIER)))

        days_until = (start - now).total_seconds() / 86400
        if days_until < SHORT_NOTICE_DAYS:
            attendance *= SHORT_NOTICE_MULTIPLIER
            factors.append(AttendanceFactor("Short notice", _impact(SHORT_NOTICE_MULTIPLIER)))
        elif days_until > FAR_AHEAD_DAYS:
            attendance *= FAR_AHEAD_MULTIPLIER
            factors.append(AttendanceFactor("Announced far in advance", _impact(FAR_AHEAD_MULTIPLIER)))

        day_x = DAY_MULTIPLIERS.get(start.weekday())
        if day_x is not None:
            attendance *= day_x
            factors.append(AttendanceFactor(f"{start.strftime('%A')} event", _impact(day_x)))

        if event.capacity > 0 and attendance > event.capacity:
            factors.append(
                AttendanceFactor("Venue capacity", _impact(event.capacity / attendance))
            )
            attendance = float(event.capacity)

        predicted = _round(attendance)
        samples = len(organizer_history) + len(venue_history)
        prediction = AttendancePrediction(
            predicted_attendance=predicted,
            min_attendance=_round(predicted * RANGE_LOW),
            max_attendance=_round(predicted * RANGE_HIGH),
            confidence=step_confidence(samples, CONFIDENCE_TIERS, CONFIDENCE_CEILING),
            baseline=base,
            factors=factors,
        )
        logger.debug(
            f"Attendance prediction for {event_type}: {predicted} "
            f"(baseline {base:.1f}, {samples} samples)"
        )
        return prediction
