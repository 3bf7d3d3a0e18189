"""Storage contract used by review sessions and its SQLAlchemy implementation."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studydeck.db.flashcards import (
    Card,
    apply_review_schedule,
    count_due_flashcards,
    get_flashcard,
    select_due_flashcards,
)
from studydeck.review.srs import ReviewSchedule


LOGGER = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """A card store read or write did not go through."""


class DueCardFetchError(PersistenceError):
    """Loading the due cards for a session failed."""


class CardNotFoundError(PersistenceError):
    """The card does not exist or belongs to another owner."""


class CardStore(Protocol):
    """What a review session needs from storage."""

    async def fetch_due_cards(
        self,
        owner_id: str,
        now: datetime,
        deck_id: Optional[str] = None,
    ) -> list[Card]:
        ...

    async def commit_review(
        self,
        owner_id: str,
        card_id: str,
        schedule: ReviewSchedule,
    ) -> Card:
        ...


class SqlAlchemyCardStore:
    """Card store backed by the ``flashcards`` table, one transaction per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def fetch_due_cards(
        self,
        owner_id: str,
        now: datetime,
        deck_id: Optional[str] = None,
    ) -> list[Card]:
        try:
            async with self._session_factory() as session:
                records = await select_due_flashcards(session, owner_id, now=now, deck_id=deck_id)
                return [Card.from_record(record) for record in records]
        except SQLAlchemyError as exc:
            raise DueCardFetchError(f"Could not load due cards for {owner_id}.") from exc

    async def count_due_cards(
        self,
        owner_id: str,
        now: Optional[datetime] = None,
        deck_id: Optional[str] = None,
    ) -> int:
        try:
            async with self._session_factory() as session:
                return await count_due_flashcards(session, owner_id, now=now, deck_id=deck_id)
        except SQLAlchemyError as exc:
            raise DueCardFetchError(f"Could not count due cards for {owner_id}.") from exc

    async def commit_review(
        self,
        owner_id: str,
        card_id: str,
        schedule: ReviewSchedule,
    ) -> Card:
        now = datetime.now(timezone.utc)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    updated = await apply_review_schedule(
                        session,
                        owner_id,
                        card_id,
                        next_review_at=schedule.next_review_at,
                        ease_factor=schedule.easiness_factor,
                        interval=schedule.interval,
                        repetitions=schedule.repetition,
                        now=now,
                    )
                    if not updated:
                        raise CardNotFoundError(f"Card {card_id} not found for {owner_id}.")
                    record = await get_flashcard(session, owner_id, card_id)
                    if record is None:  # pragma: no cover - deleted between statements
                        raise CardNotFoundError(f"Card {card_id} not found for {owner_id}.")
                    card = Card.from_record(record)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not save review of card {card_id}.") from exc

        LOGGER.debug(
            "Committed card %s: interval=%s repetitions=%s next=%s",
            card_id,
            schedule.interval,
            schedule.repetition,
            schedule.next_review_at.isoformat(),
        )
        return card
