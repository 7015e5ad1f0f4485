"""
deckloader.card_state
---------

This module defines the CardState class.

Classes:
    CardState: The scheduling state of a single card under the SM-2 algorithm.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date
import json
from typing import TypedDict
from typing_extensions import Self
from deckloader.state import State

DEFAULT_EASE = 2.5
MATURE_INTERVAL = 21


class CardStateDict(TypedDict):
    """
    JSON-serializable dictionary representation of a CardState object.
    """

    card_id: str
    ease_factor: float
    interval: int
    repetition: int
    due_date: str
    last_review: str | None
    review_count: int


@dataclass(init=False)
class CardState:
    """
    Represents the scheduling state of a card.

    A CardState is keyed by the note id of the card it schedules but never holds
    the card's content, so review history survives re-decoding the same deck.

    Attributes:
        card_id: The note id of the card, as an opaque string.
        ease_factor: The SM-2 easiness factor. Never below 1.3.
        interval: The current interval in whole days.
        repetition: The number of consecutive successful reviews.
        due_date: The date the card is next due.
        last_review: The date of the card's last review or None if it was never reviewed.
        review_count: The total number of reviews of the card.
    """

    card_id: str
    ease_factor: float
    interval: int
    repetition: int
    due_date: date
    last_review: date | None
    review_count: int

    def __init__(
        self,
        card_id: str,
        ease_factor: float = DEFAULT_EASE,
        interval: int = 0,
        repetition: int = 0,
        due_date: date | None = None,
        last_review: date | None = None,
        review_count: int = 0,
    ) -> None:
        self.card_id = str(card_id)
        self.ease_factor = ease_factor
        self.interval = interval
        self.repetition = repetition

        # new cards are due on the day they are created
        if due_date is None:
            due_date = date.today()
        self.due_date = due_date

        self.last_review = last_review
        self.review_count = review_count

    @property
    def state(self) -> State:
        """
        The learning state of the card, derived from its review count and interval.

        Cards count as mature from the default threshold of MATURE_INTERVAL days.
        Use Scheduler.state_of for a scheduler configured with another threshold.
        """

        return self.state_for(MATURE_INTERVAL)

    def state_for(self, mature_interval: int) -> State:
        if self.review_count == 0:
            return State.New
        if self.interval < mature_interval:
            return State.Learning
        return State.Mature

    def is_due(self, today: date | None = None) -> bool:
        if today is None:
            today = date.today()
        return self.due_date <= today

    def to_dict(self) -> CardStateDict:
        """
        Returns a JSON-serializable dictionary representation of the CardState object.

        This method is specifically useful for persisting CardState objects.

        Returns:
            A dictionary representation of the CardState object.
        """

        return {
            "card_id": self.card_id,
            "ease_factor": self.ease_factor,
            "interval": self.interval,
            "repetition": self.repetition,
            "due_date": self.due_date.isoformat(),
            "last_review": self.last_review.isoformat() if self.last_review else None,
            "review_count": self.review_count,
        }

    @classmethod
    def from_dict(cls, source_dict: CardStateDict) -> Self:
        """
        Creates a CardState object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing CardState object.

        Returns:
            A CardState object created from the provided dictionary.
        """

        return cls(
            card_id=str(source_dict["card_id"]),
            ease_factor=float(source_dict["ease_factor"]),
            interval=int(source_dict["interval"]),
            repetition=int(source_dict["repetition"]),
            due_date=date.fromisoformat(source_dict["due_date"]),
            last_review=(
                date.fromisoformat(source_dict["last_review"])
                if source_dict["last_review"]
                else None
            ),
            review_count=int(source_dict["review_count"]),
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the CardState object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the CardState object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a CardState object from a JSON-serialized string.

        Args:
            source_json: A JSON-serialized string of an existing CardState object.

        Returns:
            Self: A CardState object created from the JSON string.
        """

        source_dict: CardStateDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["CardState"]
