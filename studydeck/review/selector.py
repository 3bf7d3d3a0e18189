"""Due-card selection policy shared by every card store."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from studydeck.db.flashcards import Card, ensure_utc
from studydeck.review.gateway import CardStore


def order_due_cards(
    cards: Iterable[Card],
    owner_id: str,
    now: datetime,
    deck_id: Optional[str] = None,
) -> list[Card]:
    """Filter ``cards`` to the owner's due ones and sort them oldest-due first.

    Stores are not trusted to order or de-duplicate their results; the first
    occurrence of a card id wins.
    """
    now = ensure_utc(now)
    seen: set[str] = set()
    due: list[Card] = []
    for card in cards:
        if card.id in seen:
            continue
        if card.owner_id != owner_id:
            continue
        if deck_id is not None and card.deck_id != deck_id:
            continue
        if ensure_utc(card.next_review_at) > now:
            continue
        seen.add(card.id)
        due.append(card)
    due.sort(key=lambda card: (ensure_utc(card.next_review_at), card.id))
    return due


async def select_due_cards(
    store: CardStore,
    owner_id: str,
    now: datetime,
    deck_id: Optional[str] = None,
) -> list[Card]:
    """Fetch the owner's due cards from ``store`` in review order.

    An empty list means nothing is due. Storage failures propagate as
    :class:`~studydeck.review.gateway.DueCardFetchError`.
    """
    cards = await store.fetch_due_cards(owner_id, now, deck_id)
    return order_due_cards(cards, owner_id, now, deck_id)
