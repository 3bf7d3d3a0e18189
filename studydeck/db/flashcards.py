"""Helpers for working with flashcard persistence."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from . import DEFAULT_EASE_FACTOR, Flashcard


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (SQLite hands back naive ones)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(slots=True)
class FlashcardPayload:
    """Authoring-side definition of a new flashcard."""

    owner_id: str
    deck_id: str
    front: str
    back: str
    note_id: Optional[str] = None

    def normalized(self) -> "FlashcardPayload":
        """Return a payload with leading/trailing whitespace stripped."""
        return FlashcardPayload(
            owner_id=self.owner_id.strip(),
            deck_id=self.deck_id.strip(),
            front=self.front.strip(),
            back=self.back.strip(),
            note_id=self.note_id.strip() if isinstance(self.note_id, str) else self.note_id,
        )


@dataclass(frozen=True, slots=True)
class Card:
    """Detached snapshot of a flashcard as seen by a review session."""

    id: str
    owner_id: str
    deck_id: str
    front: str
    back: str
    ease_factor: float
    interval: int
    repetitions: int
    next_review_at: datetime
    note_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Flashcard) -> "Card":
        return cls(
            id=record.id,
            owner_id=record.owner_id,
            deck_id=record.deck_id,
            front=record.front,
            back=record.back,
            ease_factor=record.ease_factor,
            interval=record.interval,
            repetitions=record.repetitions,
            next_review_at=ensure_utc(record.next_review_at),
            note_id=record.note_id,
        )


async def create_flashcard(
    session: AsyncSession,
    payload: FlashcardPayload,
    now: Optional[datetime] = None,
) -> Flashcard:
    """Persist a new flashcard that is due immediately."""
    if now is None:
        now = datetime.now(timezone.utc)

    normalized = payload.normalized()
    if not normalized.owner_id or not normalized.deck_id:
        raise ValueError("Flashcards need both an owner and a deck.")
    if not normalized.front or not normalized.back:
        raise ValueError("Flashcards need non-empty front and back text.")

    flashcard = Flashcard(
        id=uuid.uuid4().hex,
        owner_id=normalized.owner_id,
        deck_id=normalized.deck_id,
        note_id=normalized.note_id,
        front=normalized.front,
        back=normalized.back,
        ease_factor=DEFAULT_EASE_FACTOR,
        interval=0,
        repetitions=0,
        next_review_at=now,
        created_at=now,
        updated_at=now,
    )
    session.add(flashcard)
    await session.flush()
    return flashcard


async def get_flashcard(
    session: AsyncSession,
    owner_id: str,
    card_id: str,
) -> Optional[Flashcard]:
    """Return the owner's flashcard with ``card_id``, if it exists."""
    stmt = select(Flashcard).where(Flashcard.id == card_id, Flashcard.owner_id == owner_id)
    result = await session.execute(stmt)
    return result.scalars().first()


def _due_filter(owner_id: str, now: datetime, deck_id: Optional[str]) -> list:
    conditions = [Flashcard.owner_id == owner_id, Flashcard.next_review_at <= now]
    if deck_id is not None:
        conditions.append(Flashcard.deck_id == deck_id)
    return conditions


async def select_due_flashcards(
    session: AsyncSession,
    owner_id: str,
    now: Optional[datetime] = None,
    deck_id: Optional[str] = None,
) -> list[Flashcard]:
    """Return the owner's due flashcards, most overdue first."""
    if now is None:
        now = datetime.now(timezone.utc)

    stmt = (
        select(Flashcard)
        .where(*_due_filter(owner_id, now, deck_id))
        .order_by(Flashcard.next_review_at, Flashcard.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_due_flashcards(
    session: AsyncSession,
    owner_id: str,
    now: Optional[datetime] = None,
    deck_id: Optional[str] = None,
) -> int:
    """Return how many of the owner's flashcards are due."""
    if now is None:
        now = datetime.now(timezone.utc)

    stmt = select(func.count()).select_from(Flashcard).where(*_due_filter(owner_id, now, deck_id))
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def apply_review_schedule(
    session: AsyncSession,
    owner_id: str,
    card_id: str,
    next_review_at: datetime,
    ease_factor: float,
    interval: int,
    repetitions: int,
    now: Optional[datetime] = None,
) -> bool:
    """Overwrite the scheduling state of one flashcard.

    The update writes absolute values, so repeating it with the same arguments
    leaves the row unchanged. Returns False when no flashcard matches
    ``card_id`` for ``owner_id``.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    stmt = (
        update(Flashcard)
        .where(Flashcard.id == card_id, Flashcard.owner_id == owner_id)
        .values(
            next_review_at=next_review_at,
            ease_factor=ease_factor,
            interval=interval,
            repetitions=repetitions,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount > 0
