"""Spaced-repetition review engine: SM-2 scheduling and review sessions."""

from .gateway import CardNotFoundError, CardStore, DueCardFetchError, PersistenceError, SqlAlchemyCardStore
from .selector import select_due_cards
from .session import InvalidTransitionError, ReviewSession, SessionFailure, SessionPhase, SessionState
from .srs import (
    InvalidQualityError,
    InvalidScheduleStateError,
    Rating,
    ReviewSchedule,
    calculate_next_schedule,
    quality_from_rating,
)

__all__ = [
    "CardNotFoundError",
    "CardStore",
    "DueCardFetchError",
    "InvalidQualityError",
    "InvalidScheduleStateError",
    "InvalidTransitionError",
    "PersistenceError",
    "Rating",
    "ReviewSchedule",
    "ReviewSession",
    "SessionFailure",
    "SessionPhase",
    "SessionState",
    "SqlAlchemyCardStore",
    "calculate_next_schedule",
    "quality_from_rating",
    "select_due_cards",
]
