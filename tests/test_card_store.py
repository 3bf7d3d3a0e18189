from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from studydeck.db.flashcards import FlashcardPayload, create_flashcard
from studydeck.review import (
    CardNotFoundError,
    DueCardFetchError,
    PersistenceError,
    SqlAlchemyCardStore,
    calculate_next_schedule,
)


async def _seed(session_factory, owner: str, *offsets_in_days: float) -> list[str]:
    now = datetime.now(timezone.utc)
    ids = []
    async with session_factory() as session:
        async with session.begin():
            for position, offset in enumerate(offsets_in_days):
                flashcard = await create_flashcard(
                    session,
                    FlashcardPayload(owner, "deck", f"front {position}", f"back {position}"),
                    now=now + timedelta(days=offset),
                )
                ids.append(flashcard.id)
    return ids


class _BrokenSessionFactory:
    def __call__(self):
        raise OperationalError("SELECT 1", {}, Exception("database is unavailable"))


@pytest.mark.asyncio
async def test_fetch_due_cards_returns_detached_snapshots(card_store, session_factory) -> None:
    ids = await _seed(session_factory, "learner-1", -2, -1, 3)

    cards = await card_store.fetch_due_cards("learner-1", datetime.now(timezone.utc))

    assert [card.id for card in cards] == ids[:2]
    assert all(card.next_review_at.tzinfo is not None for card in cards)
    assert await card_store.count_due_cards("learner-1") == 2


@pytest.mark.asyncio
async def test_commit_removes_card_from_due_selection(card_store, session_factory) -> None:
    (card_id,) = await _seed(session_factory, "learner-1", -1)
    now = datetime.now(timezone.utc)
    schedule = calculate_next_schedule(
        score=3, current_easiness=2.5, current_interval=0, current_repetition=0, now=now
    )

    card = await card_store.commit_review("learner-1", card_id, schedule)

    assert card.repetitions == 1
    assert card.interval == 1
    assert card.next_review_at == schedule.next_review_at
    assert await card_store.fetch_due_cards("learner-1", now) == []
    later = await card_store.fetch_due_cards("learner-1", now + timedelta(days=1))
    assert [card.id for card in later] == [card_id]


@pytest.mark.asyncio
async def test_repeated_commit_does_not_compound(card_store, session_factory) -> None:
    (card_id,) = await _seed(session_factory, "learner-1", -1)
    schedule = calculate_next_schedule(
        score=5, current_easiness=2.5, current_interval=6, current_repetition=2
    )

    first = await card_store.commit_review("learner-1", card_id, schedule)
    second = await card_store.commit_review("learner-1", card_id, schedule)

    assert first == second
    assert second.repetitions == 3
    assert second.interval == schedule.interval


@pytest.mark.asyncio
async def test_commit_for_unknown_card_raises(card_store, session_factory) -> None:
    (card_id,) = await _seed(session_factory, "learner-1", -1)
    schedule = calculate_next_schedule(
        score=3, current_easiness=2.5, current_interval=0, current_repetition=0
    )

    with pytest.raises(CardNotFoundError):
        await card_store.commit_review("learner-2", card_id, schedule)
    with pytest.raises(CardNotFoundError):
        await card_store.commit_review("learner-1", "missing", schedule)


@pytest.mark.asyncio
async def test_storage_errors_are_wrapped() -> None:
    store = SqlAlchemyCardStore(_BrokenSessionFactory())
    schedule = calculate_next_schedule(
        score=3, current_easiness=2.5, current_interval=0, current_repetition=0
    )

    with pytest.raises(DueCardFetchError):
        await store.fetch_due_cards("learner-1", datetime.now(timezone.utc))
    with pytest.raises(DueCardFetchError):
        await store.count_due_cards("learner-1")
    with pytest.raises(PersistenceError) as excinfo:
        await store.commit_review("learner-1", "card", schedule)
    assert isinstance(excinfo.value.__cause__, OperationalError)
