"""
deckloader.session
---------

This module defines the StudySession class, which runs a review session over a decoded deck.
"""

from __future__ import annotations
from collections import deque
from collections.abc import Sequence
from datetime import date
import logging
from deckloader.card_state import CardState
from deckloader.errors import PersistenceUnavailable
from deckloader.models import CardRecord
from deckloader.quality import PASSING_QUALITY, Quality
from deckloader.review_log import ReviewLog
from deckloader.scheduler import DeckStats, Scheduler
from deckloader.storage import StudyStore, generate_deck_id

logger = logging.getLogger(__name__)


class StudySession:
    """
    A review session over the cards of a deck.

    The session queues the cards due on `today`, most overdue first. Every answer
    is saved to the store straight away. A failed card is put back at the end of
    the queue, so it comes up again later in the same session.

    If the store can't be read or written, the session logs a warning and carries
    on with the states it holds in memory.

    Attributes:
        deck_id: The key the deck's study data is saved under.
        scheduler: The scheduler applied to answers.
        today: The date reviews are recorded on.
        card_states: The state of every card of the deck, keyed by card id.
        review_logs: The reviews made during this session, in order.
        reviewed: The number of answers given this session.
        correct: The number of passing answers given this session.
        persistence_available: False once the store has failed.
    """

    def __init__(
        self,
        cards: Sequence[CardRecord],
        scheduler: Scheduler | None = None,
        store: StudyStore | None = None,
        deck_id: str | None = None,
        today: date | None = None,
    ) -> None:
        self.scheduler = scheduler if scheduler is not None else Scheduler()
        self.deck_id = deck_id if deck_id is not None else generate_deck_id(cards)
        self.today = today if today is not None else date.today()
        self._store = store
        self._cards = {card.note_id: card for card in cards}

        self.persistence_available = store is not None
        self.card_states = self._load_states()
        self.review_logs: list[ReviewLog] = []
        self.reviewed = 0
        self.correct = 0
        self._queue = self._build_queue()

    @property
    def current(self) -> CardRecord | None:
        if not self._queue:
            return None
        return self._cards[self._queue[0]]

    @property
    def current_state(self) -> CardState | None:
        if not self._queue:
            return None
        return self.card_states[self._queue[0]]

    @property
    def remaining(self) -> int:
        return len(self._queue)

    @property
    def is_complete(self) -> bool:
        return not self._queue

    @property
    def accuracy(self) -> float:
        if self.reviewed == 0:
            return 0.0
        return self.correct / self.reviewed

    def stats(self) -> DeckStats:
        return self.scheduler.get_stats(self.card_states, self.today)

    def preview_intervals(self) -> dict[Quality, int]:
        card_state = self.current_state
        if card_state is None:
            return {}
        return self.scheduler.preview_intervals(card_state, self.today)

    def answer(self, quality: Quality | int) -> CardState:
        """
        Answers the current card and moves on to the next.

        Args:
            quality: The grade of the answer, from 0 to 5.

        Returns:
            CardState: The new state of the answered card.

        Raises:
            IndexError: If the session is complete.
            ValueError: If `quality` is not an integer between 0 and 5.
        """

        if not self._queue:
            raise IndexError("No cards left to review in this session")

        card_id = self._queue[0]
        card_state, review_log = self.scheduler.review_card(
            self.card_states[card_id], quality, self.today
        )
        self._queue.popleft()

        self.card_states[card_id] = card_state
        self.review_logs.append(review_log)
        self.reviewed += 1
        if quality >= PASSING_QUALITY:
            self.correct += 1
        else:
            self._queue.append(card_id)

        self._save()
        return card_state

    def reset(self) -> None:
        """
        Forgets every review of the deck and starts the session over.
        """

        self.card_states = {
            card_id: self.scheduler.new_card_state(card_id, self.today)
            for card_id in self._cards
        }
        self.review_logs = []
        self.reviewed = 0
        self.correct = 0
        self._queue = self._build_queue()
        self._save()

    def _load_states(self) -> dict[str, CardState]:
        card_states: dict[str, CardState] = {}
        if self._store is not None:
            try:
                study_data = self._store.load(self.deck_id)
            except PersistenceUnavailable as exc:
                logger.warning(f"Starting {self.deck_id} without saved progress: {exc}")
                self.persistence_available = False
                study_data = None
            if study_data is not None:
                card_states = study_data.card_states

        for card_id in self._cards:
            if card_id not in card_states:
                card_states[card_id] = self.scheduler.new_card_state(card_id, self.today)
        return card_states

    def _build_queue(self) -> deque[str]:
        due = self.scheduler.get_due_cards(self.card_states, self.today)
        return deque(
            card_state.card_id for card_state in due if card_state.card_id in self._cards
        )

    def _save(self) -> None:
        if self._store is None or not self.persistence_available:
            return
        try:
            self._store.save(self.deck_id, self.card_states)
        except PersistenceUnavailable as exc:
            logger.warning(f"Continuing {self.deck_id} in memory only: {exc}")
            self.persistence_available = False


__all__ = ["StudySession"]
