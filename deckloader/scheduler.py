"""
deckloader.scheduler
---------

This module defines the Scheduler class as well as the constants used in its calculations.

Classes:
    Scheduler: The SM-2 spaced-repetition scheduler.
    DeckStats: Population statistics over a collection of card states.
"""

from __future__ import annotations
from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from copy import copy
from decimal import Decimal, ROUND_HALF_UP
import json
import math
from dataclasses import dataclass, asdict
from deckloader.card_state import CardState, DEFAULT_EASE, MATURE_INTERVAL
from deckloader.quality import Quality, MIN_QUALITY, MAX_QUALITY, PASSING_QUALITY
from deckloader.review_log import ReviewLog
from deckloader.state import State
from typing import TypedDict
from typing_extensions import Self

MIN_EASE = 1.3

# intervals for the first and second successful repetitions
FIRST_INTERVAL = 1
SECOND_INTERVAL = 6


class SchedulerDict(TypedDict):
    """
    JSON-serializable dictionary representation of a Scheduler object.
    """

    initial_ease: float
    minimum_ease: float
    mature_interval: int


@dataclass
class DeckStats:
    """
    Counts over a collection of card states.

    new, learning and mature partition the cards. due and overdue are counted
    independently of them, and every overdue card is also due.
    """

    total: int = 0
    new: int = 0
    learning: int = 0
    mature: int = 0
    due: int = 0
    overdue: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _round_ease(ease_factor: float) -> float:
    return float(Decimal(ease_factor).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def format_interval(interval: int) -> str:
    """
    Formats an interval in days as a short human readable label.

    Args:
        interval: The interval in days.

    Returns:
        str: A label such as "<1m", "4d", "2w", "3mo" or "1.5y".
    """

    if interval == 0:
        return "<1m"
    if interval < 7:
        return f"{interval}d"
    if interval < 30:
        return f"{_round_half_up(interval / 7)}w"
    if interval < 365:
        return f"{_round_half_up(interval / 30)}mo"
    return f"{interval / 365:.1f}y"


@dataclass(init=False)
class Scheduler:
    """
    The SM-2 scheduler.

    Enables the reviewing and future scheduling of cards according to the classic SM-2 algorithm.

    Attributes:
        initial_ease: The ease factor given to cards that have never been reviewed.
        minimum_ease: The lower bound of the ease factor.
        mature_interval: Cards with an interval of at least this many days count as mature.
    """

    initial_ease: float
    minimum_ease: float
    mature_interval: int

    def __init__(
        self,
        initial_ease: float = DEFAULT_EASE,
        minimum_ease: float = MIN_EASE,
        mature_interval: int = MATURE_INTERVAL,
    ) -> None:
        self._validate_parameters(
            initial_ease=initial_ease,
            minimum_ease=minimum_ease,
            mature_interval=mature_interval,
        )

        self.initial_ease = initial_ease
        self.minimum_ease = minimum_ease
        self.mature_interval = mature_interval

    def _validate_parameters(
        self, *, initial_ease: float, minimum_ease: float, mature_interval: int
    ) -> None:
        error_messages = []
        if minimum_ease <= 0:
            error_messages.append(f"minimum_ease = {minimum_ease} must be positive")
        if initial_ease < minimum_ease:
            error_messages.append(
                f"initial_ease = {initial_ease} is below minimum_ease = {minimum_ease}"
            )
        if mature_interval < 1:
            error_messages.append(
                f"mature_interval = {mature_interval} must be at least 1 day"
            )

        if len(error_messages) > 0:
            raise ValueError(
                "One or more parameters are invalid:\n" + "\n".join(error_messages)
            )

    def new_card_state(self, card_id: str, today: date | None = None) -> CardState:
        """
        Creates the state of a card that has never been reviewed. It is due on `today`.
        """

        return CardState(card_id=card_id, ease_factor=self.initial_ease, due_date=today)

    def review_card(
        self,
        card_state: CardState,
        quality: Quality | int,
        review_date: date | None = None,
    ) -> tuple[CardState, ReviewLog]:
        """
        Reviews a card with a given SM-2 grade on a given date.

        The passed card state is left untouched, so reviewing the same state with
        the same grade on the same date always gives the same result.

        Args:
            card_state: The state of the card being reviewed.
            quality: The grade of the answer, from 0 (blackout) to 5 (perfect recall).
            review_date: The date of the review. Defaults to today.

        Returns:
            tuple[CardState,ReviewLog]: A tuple containing the updated card state and its corresponding review log.

        Raises:
            ValueError: If `quality` is not an integer between 0 and 5.
        """

        quality = self._validate_quality(quality)

        card_state = copy(card_state)

        if review_date is None:
            review_date = date.today()

        lapse = MAX_QUALITY - quality
        next_ease = max(
            self.minimum_ease,
            card_state.ease_factor + (0.1 - lapse * (0.08 + lapse * 0.02)),
        )

        if quality < PASSING_QUALITY:
            # failed cards start over and are due again the same day
            card_state.repetition = 0
            next_interval = 0
        else:
            card_state.repetition += 1

            match card_state.repetition:
                case 1:
                    next_interval = FIRST_INTERVAL
                case 2:
                    next_interval = SECOND_INTERVAL
                case _:
                    next_interval = _round_half_up(card_state.interval * next_ease)

        card_state.ease_factor = _round_ease(next_ease)
        card_state.interval = next_interval
        card_state.due_date = review_date + timedelta(days=next_interval)
        card_state.last_review = review_date
        card_state.review_count += 1

        review_log = ReviewLog(
            card_id=card_state.card_id,
            quality=quality,
            review_date=review_date,
            interval=card_state.interval,
            ease_factor=card_state.ease_factor,
        )

        return card_state, review_log

    def preview_intervals(
        self, card_state: CardState, review_date: date | None = None
    ) -> dict[Quality, int]:
        """
        Returns the interval each answer button would assign to the card, without reviewing it.
        """

        return {
            quality: self.review_card(card_state, quality, review_date)[0].interval
            for quality in Quality
        }

    def reschedule_card(
        self, card_state: CardState, review_logs: list[ReviewLog]
    ) -> CardState:
        """
        Rebuilds a card's state by replaying its review logs with this scheduler.

        Args:
            card_state: The card to be rescheduled.
            review_logs: A list of that card's review logs (order doesn't matter).

        Returns:
            CardState: A new card state produced by replaying the review logs in date order.

        Raises:
            ValueError: If any of the review logs are for a card other than the one specified.
        """

        for review_log in review_logs:
            if review_log.card_id != card_state.card_id:
                raise ValueError(
                    f"ReviewLog card_id {review_log.card_id} does not match CardState card_id {card_state.card_id}"
                )

        # sorted() is stable, so same-day reviews keep their recorded order
        review_logs = sorted(review_logs, key=lambda log: log.review_date)

        rescheduled = CardState(
            card_id=card_state.card_id,
            ease_factor=self.initial_ease,
            due_date=card_state.due_date,
        )

        for review_log in review_logs:
            rescheduled, _ = self.review_card(
                card_state=rescheduled,
                quality=review_log.quality,
                review_date=review_log.review_date,
            )

        return rescheduled

    def get_due_cards(
        self,
        card_states: Iterable[CardState] | Mapping[str, CardState],
        today: date | None = None,
    ) -> list[CardState]:
        """
        Selects the cards due on or before `today`, most overdue first.

        Cards sharing a due date keep their input order.
        """

        if today is None:
            today = date.today()
        if isinstance(card_states, Mapping):
            card_states = card_states.values()

        due = [card_state for card_state in card_states if card_state.due_date <= today]
        return sorted(due, key=lambda card_state: card_state.due_date)

    def state_of(self, card_state: CardState) -> State:
        """
        The learning state of a card, using this scheduler's mature_interval.
        """

        return card_state.state_for(self.mature_interval)

    def get_stats(
        self,
        card_states: Iterable[CardState] | Mapping[str, CardState],
        today: date | None = None,
    ) -> DeckStats:
        if today is None:
            today = date.today()
        if isinstance(card_states, Mapping):
            card_states = card_states.values()

        stats = DeckStats()
        for card_state in card_states:
            stats.total += 1

            match self.state_of(card_state):
                case State.New:
                    stats.new += 1
                case State.Learning:
                    stats.learning += 1
                case State.Mature:
                    stats.mature += 1

            if card_state.due_date <= today:
                stats.due += 1
                if card_state.due_date < today:
                    stats.overdue += 1

        return stats

    def to_dict(
        self,
    ) -> SchedulerDict:
        """
        Returns a dictionary representation of the Scheduler object.

        Returns:
            SchedulerDict: A dictionary representation of the Scheduler object.
        """

        return {
            "initial_ease": self.initial_ease,
            "minimum_ease": self.minimum_ease,
            "mature_interval": self.mature_interval,
        }

    @classmethod
    def from_dict(cls, source_dict: SchedulerDict) -> Self:
        """
        Creates a Scheduler object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing Scheduler object.

        Returns:
            Self: A Scheduler object created from the provided dictionary.
        """

        return cls(
            initial_ease=source_dict["initial_ease"],
            minimum_ease=source_dict["minimum_ease"],
            mature_interval=source_dict["mature_interval"],
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the Scheduler object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the Scheduler object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        source_dict: SchedulerDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)

    def _validate_quality(self, quality: Quality | int) -> int:
        if isinstance(quality, bool) or not isinstance(quality, int):
            raise ValueError(f"quality must be an integer, got {quality!r}")
        if not MIN_QUALITY <= quality <= MAX_QUALITY:
            raise ValueError(
                f"quality = {quality} is out of bounds: ({MIN_QUALITY}, {MAX_QUALITY})"
            )
        return int(quality)


__all__ = ["Scheduler", "DeckStats", "format_interval"]
