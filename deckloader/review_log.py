"""
deckloader.review_log
---------

This module defines the ReviewLog class.

Classes:
    ReviewLog: Represents the log entry of a card that has been reviewed.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import TypedDict
import json
from typing_extensions import Self


class ReviewLogDict(TypedDict):
    """
    JSON-serializable dictionary representation of a ReviewLog object.
    """

    card_id: str
    quality: int
    review_date: str
    interval: int
    ease_factor: float


@dataclass
class ReviewLog:
    """
    Represents the log entry of a CardState object that has been reviewed.

    Attributes:
        card_id: The id of the card being reviewed.
        quality: The SM-2 grade (0-5) given to the card during the review.
        review_date: The date of the review.
        interval: The interval in days assigned by the review.
        ease_factor: The ease factor after the review.
    """

    card_id: str
    quality: int
    review_date: date
    interval: int
    ease_factor: float

    def to_dict(
        self,
    ) -> ReviewLogDict:
        """
        Returns a dictionary representation of the ReviewLog object.

        Returns:
            A dictionary representation of the ReviewLog object.
        """

        return {
            "card_id": self.card_id,
            "quality": int(self.quality),
            "review_date": self.review_date.isoformat(),
            "interval": self.interval,
            "ease_factor": self.ease_factor,
        }

    @classmethod
    def from_dict(
        cls,
        source_dict: ReviewLogDict,
    ) -> Self:
        """
        Creates a ReviewLog object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing ReviewLog object.

        Returns:
            A ReviewLog object created from the provided dictionary.
        """

        return cls(
            card_id=str(source_dict["card_id"]),
            quality=int(source_dict["quality"]),
            review_date=date.fromisoformat(source_dict["review_date"]),
            interval=int(source_dict["interval"]),
            ease_factor=float(source_dict["ease_factor"]),
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the ReviewLog object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the ReviewLog object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        source_dict: ReviewLogDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["ReviewLog"]
