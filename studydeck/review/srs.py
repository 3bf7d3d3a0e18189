"""Spaced-repetition scheduling helpers for flashcard reviews."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import IntEnum


MIN_EASE_FACTOR = 1.3
MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3


class InvalidQualityError(ValueError):
    """Raised when a recall quality falls outside 0..5."""


class InvalidScheduleStateError(ValueError):
    """Raised when prior scheduling fields are outside their documented domains."""


class Rating(IntEnum):
    """The four answer buttons offered by the default review UI."""

    AGAIN = 0
    HARD = 1
    GOOD = 3
    EASY = 5


def quality_from_rating(rating: str | Rating) -> int:
    """Map a button label such as ``"good"`` to its SM-2 quality."""
    if isinstance(rating, Rating):
        return int(rating)
    try:
        return int(Rating[rating.strip().upper()])
    except KeyError as exc:
        raise InvalidQualityError(f"Unknown rating {rating!r}.") from exc


def validate_quality(quality: int) -> int:
    """Return ``quality`` unchanged or raise if it is not an integer in 0..5."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQualityError(f"Quality must be an integer, got {quality!r}.")
    if quality < MIN_QUALITY or quality > MAX_QUALITY:
        raise InvalidQualityError(f"Quality must be between 0 and 5, got {quality}.")
    return quality


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True, slots=True)
class ReviewSchedule:
    """Calculated review data for a flashcard after receiving a score."""

    next_review_at: datetime
    easiness_factor: float
    interval: int
    repetition: int


def calculate_next_schedule(
    *,
    score: int,
    current_easiness: float,
    current_interval: int,
    current_repetition: int,
    now: datetime | None = None,
) -> ReviewSchedule:
    """Return the next review schedule using the SM-2 algorithm.

    The ease factor is updated first and floored at 1.3. A failed recall
    (score below 3) resets the card to a one day interval. Successful recalls
    step through 1 day, 6 days, and then grow the previous interval by the
    updated ease factor.
    """
    quality = validate_quality(score)
    if current_easiness < MIN_EASE_FACTOR:
        raise InvalidScheduleStateError(
            f"Ease factor must be at least {MIN_EASE_FACTOR}, got {current_easiness}."
        )
    if current_interval < 0:
        raise InvalidScheduleStateError(f"Interval must not be negative, got {current_interval}.")
    if current_repetition < 0:
        raise InvalidScheduleStateError(
            f"Repetition count must not be negative, got {current_repetition}."
        )

    if now is None:
        now = datetime.now(timezone.utc)

    penalty = MAX_QUALITY - quality
    easiness_factor = current_easiness + (0.1 - penalty * (0.08 + penalty * 0.02))
    easiness_factor = max(MIN_EASE_FACTOR, easiness_factor)

    if quality < PASSING_QUALITY:
        repetition = 0
        interval = 1
    else:
        repetition = current_repetition + 1
        if repetition == 1:
            interval = 1
        elif repetition == 2:
            interval = 6
        else:
            # a card restored with interval 0 but repetitions >= 2 still moves forward
            interval = max(1, _round_half_up(current_interval * easiness_factor))

    return ReviewSchedule(
        next_review_at=now + timedelta(days=interval),
        easiness_factor=easiness_factor,
        interval=interval,
        repetition=repetition,
    )
