from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from studydeck.db.flashcards import Card
from studydeck.review.selector import order_due_cards, select_due_cards


NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


def _card(card_id: str, due_in_hours: float, owner: str = "learner-1", deck: str = "french") -> Card:
    return Card(
        id=card_id,
        owner_id=owner,
        deck_id=deck,
        front=f"{card_id} front",
        back=f"{card_id} back",
        ease_factor=2.5,
        interval=0,
        repetitions=0,
        next_review_at=NOW + timedelta(hours=due_in_hours),
    )


class _UnorderedStore:
    def __init__(self, cards: list[Card]) -> None:
        self.cards = cards
        self.calls: list[tuple] = []

    async def fetch_due_cards(self, owner_id, now, deck_id=None):
        self.calls.append((owner_id, now, deck_id))
        return list(self.cards)

    async def commit_review(self, owner_id, card_id, schedule):  # pragma: no cover - unused
        raise NotImplementedError


def test_order_due_cards_sorts_oldest_first() -> None:
    cards = [_card("b", -2), _card("c", -1), _card("a", -30)]

    ordered = order_due_cards(cards, "learner-1", NOW)

    assert [card.id for card in ordered] == ["a", "b", "c"]


def test_order_due_cards_breaks_ties_by_id() -> None:
    cards = [_card("z", -1), _card("m", -1)]

    assert [card.id for card in order_due_cards(cards, "learner-1", NOW)] == ["m", "z"]


def test_order_due_cards_drops_future_foreign_and_duplicate_cards() -> None:
    cards = [
        _card("due", -1),
        _card("due", -1),
        _card("boundary", 0),
        _card("future", 1),
        _card("foreign", -5, owner="learner-2"),
        _card("other-deck", -3, deck="spanish"),
    ]

    everything = order_due_cards(cards, "learner-1", NOW)
    french = order_due_cards(cards, "learner-1", NOW, deck_id="french")

    assert [card.id for card in everything] == ["other-deck", "due", "boundary"]
    assert [card.id for card in french] == ["due", "boundary"]


def test_order_due_cards_accepts_naive_utc_timestamps() -> None:
    naive = replace(_card("naive", -1), next_review_at=(NOW - timedelta(hours=1)).replace(tzinfo=None))

    assert [card.id for card in order_due_cards([naive], "learner-1", NOW)] == ["naive"]


@pytest.mark.asyncio
async def test_select_due_cards_enforces_policy_over_store() -> None:
    store = _UnorderedStore([_card("late", -1), _card("early", -48), _card("later", 2)])

    cards = await select_due_cards(store, "learner-1", NOW, deck_id="french")

    assert [card.id for card in cards] == ["early", "late"]
    assert store.calls == [("learner-1", NOW, "french")]


@pytest.mark.asyncio
async def test_select_due_cards_returns_empty_list_when_nothing_is_due() -> None:
    store = _UnorderedStore([_card("tomorrow", 24)])

    assert await select_due_cards(store, "learner-1", NOW) == []
