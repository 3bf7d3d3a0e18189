"""Review session state machine.

A session captures the learner's due cards once, then walks them in order:
each card is presented, revealed, rated, scheduled with SM-2 and committed
before the next one is shown. Storage failures never advance the session;
they park it in ``FAILED`` with the failing card retained so the rating can
be retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from studydeck.db.flashcards import Card
from studydeck.review.gateway import CardStore
from studydeck.review.selector import select_due_cards
from studydeck.review.srs import ReviewSchedule, calculate_next_schedule, validate_quality


LOGGER = logging.getLogger(__name__)

DEFAULT_COMMIT_TIMEOUT_SECONDS = 10.0

Scheduler = Callable[..., ReviewSchedule]
Clock = Callable[[], datetime]


class SessionPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PRESENTING = "presenting"
    FLIPPED = "flipped"
    SUBMITTING = "submitting"
    COMPLETE = "complete"
    FAILED = "failed"


_CARD_PHASES = {SessionPhase.PRESENTING, SessionPhase.FLIPPED, SessionPhase.SUBMITTING}


class InvalidTransitionError(RuntimeError):
    """Raised when an action is not allowed in the session's current phase."""


@dataclass(frozen=True, slots=True)
class SessionState:
    """Snapshot of where a session is; ``index`` is set while a card is in play."""

    phase: SessionPhase
    index: Optional[int] = None


@dataclass(frozen=True, slots=True)
class SessionFailure:
    """Why a session entered ``FAILED``.

    ``index`` is None when loading failed and the position of the card whose
    commit failed otherwise.
    """

    phase: SessionPhase
    error: BaseException
    index: Optional[int] = None

    @property
    def retryable(self) -> bool:
        return self.index is not None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReviewSession:
    """Drives one sitting of reviews for a single learner."""

    def __init__(
        self,
        store: CardStore,
        owner_id: str,
        *,
        deck_id: Optional[str] = None,
        scheduler: Scheduler = calculate_next_schedule,
        commit_timeout: float = DEFAULT_COMMIT_TIMEOUT_SECONDS,
        clock: Clock = _utcnow,
    ) -> None:
        if commit_timeout <= 0:
            raise ValueError("commit_timeout must be positive.")
        self._store = store
        self._owner_id = owner_id
        self._deck_id = deck_id
        self._scheduler = scheduler
        self._commit_timeout = commit_timeout
        self._clock = clock

        self._phase = SessionPhase.IDLE
        self._cards: tuple[Card, ...] = ()
        self._index = 0
        self._flipped = False
        self._reviewed = 0
        self._failure: Optional[SessionFailure] = None
        self._last_schedule: Optional[ReviewSchedule] = None
        self._inflight: Optional[asyncio.Task] = None
        self._abandoned = False
        self._commits: set[asyncio.Task] = set()

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def deck_id(self) -> Optional[str]:
        return self._deck_id

    @property
    def commit_timeout(self) -> float:
        return self._commit_timeout

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def state(self) -> SessionState:
        if self._phase in _CARD_PHASES:
            return SessionState(self._phase, self._index)
        if self._phase is SessionPhase.FAILED and self._failure is not None:
            return SessionState(self._phase, self._failure.index)
        return SessionState(self._phase)

    @property
    def cards(self) -> tuple[Card, ...]:
        return self._cards

    @property
    def total(self) -> int:
        return len(self._cards)

    @property
    def position(self) -> Optional[int]:
        """Zero-based index of the card in play, if any."""
        return self.state.index

    @property
    def current_card(self) -> Optional[Card]:
        index = self.position
        if index is None:
            return None
        return self._cards[index]

    @property
    def is_flipped(self) -> bool:
        return self._flipped

    @property
    def reviewed_count(self) -> int:
        return self._reviewed

    @property
    def remaining(self) -> int:
        return max(0, self.total - self._reviewed)

    @property
    def failure(self) -> Optional[SessionFailure]:
        return self._failure

    @property
    def last_schedule(self) -> Optional[ReviewSchedule]:
        return self._last_schedule

    @property
    def is_abandoned(self) -> bool:
        return self._abandoned

    @property
    def is_finished(self) -> bool:
        """True once the session can make no further progress."""
        if self._phase is SessionPhase.COMPLETE:
            return True
        if self._phase is SessionPhase.FAILED:
            return self._failure is None or not self._failure.retryable
        return self._abandoned

    async def start(self) -> SessionPhase:
        """Load the due cards and present the first one."""
        if self._phase is not SessionPhase.IDLE:
            raise InvalidTransitionError(f"Cannot start a session that is {self._phase.value}.")
        if self._abandoned:
            raise InvalidTransitionError("Cannot start an abandoned session.")

        self._phase = SessionPhase.LOADING
        now = self._clock()
        try:
            cards = await select_due_cards(self._store, self._owner_id, now, self._deck_id)
        except Exception as exc:
            LOGGER.warning("Could not load due cards for %s.", self._owner_id, exc_info=True)
            if not self._abandoned:
                self._failure = SessionFailure(SessionPhase.LOADING, exc)
                self._phase = SessionPhase.FAILED
            return self._phase

        if self._abandoned:
            return self._phase

        self._cards = tuple(cards)
        if not self._cards:
            LOGGER.info("No cards due for %s.", self._owner_id)
            self._phase = SessionPhase.COMPLETE
            return self._phase

        LOGGER.info("Started review session for %s: %d cards due.", self._owner_id, len(self._cards))
        self._index = 0
        self._flipped = False
        self._phase = SessionPhase.PRESENTING
        return self._phase

    def reveal(self) -> None:
        """Show the back of the current card."""
        self._require(SessionPhase.PRESENTING, "reveal a card")
        self._flipped = True
        self._phase = SessionPhase.FLIPPED

    def hide(self) -> None:
        """Turn the current card back to its front."""
        self._require(SessionPhase.FLIPPED, "hide a card")
        self._flipped = False
        self._phase = SessionPhase.PRESENTING

    async def rate(self, quality: int) -> SessionPhase:
        """Rate the revealed card and commit its new schedule.

        A rating that arrives while another one for the same card is still
        being committed is dropped. After a failed commit, rating again
        retries the same card once the earlier commit has settled, so two
        writes for one card never overlap.
        """
        if self._phase is SessionPhase.SUBMITTING:
            LOGGER.warning(
                "Ignoring rating for card %s: a submission is already in flight.",
                self._cards[self._index].id,
            )
            return self._phase

        retrying = self._phase is SessionPhase.FAILED and self._failure is not None and self._failure.retryable
        if retrying and self._abandoned:
            raise InvalidTransitionError("Cannot rate a card in an abandoned session.")
        if not retrying:
            self._require(SessionPhase.FLIPPED, "rate a card")

        validate_quality(quality)
        index = self._index
        card = self._cards[index]
        schedule = self._schedule_for(card, quality)

        self._phase = SessionPhase.SUBMITTING
        self._failure = None
        try:
            await self._settle_previous_commit(card)
            commit = asyncio.ensure_future(self._store.commit_review(self._owner_id, card.id, schedule))
            self._inflight = commit
            self._commits.add(commit)
            commit.add_done_callback(self._commit_finished)
            await asyncio.wait_for(asyncio.shield(commit), timeout=self._commit_timeout)
        except asyncio.CancelledError:
            # the caller went away; let the shielded commit land on its own
            self._abandoned = True
            raise
        except asyncio.TimeoutError as exc:
            LOGGER.warning(
                "Commit for card %s timed out after %.1fs.", card.id, self._commit_timeout
            )
            return self._commit_failed(index, exc)
        except Exception as exc:
            LOGGER.warning("Commit for card %s failed.", card.id, exc_info=True)
            return self._commit_failed(index, exc)

        self._last_schedule = schedule
        if self._abandoned:
            return self._phase

        self._reviewed += 1
        if index == len(self._cards) - 1:
            LOGGER.info(
                "Review session for %s complete: %d of %d cards reviewed.",
                self._owner_id,
                self._reviewed,
                len(self._cards),
            )
            self._phase = SessionPhase.COMPLETE
        else:
            self._index = index + 1
            self._flipped = False
            self._phase = SessionPhase.PRESENTING
        return self._phase

    def abandon(self) -> None:
        """Stop the session; commits already in flight still run to completion."""
        self._abandoned = True

    async def drain(self) -> None:
        """Wait for every commit this session started, including timed-out ones."""
        if self._commits:
            await asyncio.gather(*list(self._commits), return_exceptions=True)

    def _require(self, phase: SessionPhase, action: str) -> None:
        if self._abandoned:
            raise InvalidTransitionError(f"Cannot {action} in an abandoned session.")
        if self._phase is not phase:
            raise InvalidTransitionError(f"Cannot {action} while the session is {self._phase.value}.")

    def _schedule_for(self, card: Card, quality: int) -> ReviewSchedule:
        # always from the state captured at load, so a retry never compounds
        return self._scheduler(
            score=quality,
            current_easiness=card.ease_factor,
            current_interval=card.interval,
            current_repetition=card.repetitions,
            now=self._clock(),
        )

    async def _settle_previous_commit(self, card: Card) -> None:
        """Wait for a timed-out commit of this card before writing it again."""
        previous = self._inflight
        if previous is None or previous.done():
            return
        LOGGER.info("Waiting for the earlier commit of card %s before retrying.", card.id)
        done, _ = await asyncio.wait({previous}, timeout=self._commit_timeout)
        if not done:
            raise asyncio.TimeoutError()

    def _commit_failed(self, index: int, error: BaseException) -> SessionPhase:
        if self._abandoned:
            return self._phase
        self._failure = SessionFailure(SessionPhase.SUBMITTING, error, index)
        self._flipped = True
        self._phase = SessionPhase.FAILED
        return self._phase

    def _commit_finished(self, task: asyncio.Task) -> None:
        self._commits.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            LOGGER.debug("Background commit finished with %r.", error)
