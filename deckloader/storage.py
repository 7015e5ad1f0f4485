"""
deckloader.storage
---------

This module persists study progress, keyed by deck id.

Classes:
    StudyData: The saved card states of one deck.
    StudyStore: The interface study data stores implement.
    MemoryStore: A store kept in memory.
    JsonFileStore: A store kept in a single JSON file.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import logging
import os
from pathlib import Path
import tempfile
from typing import TypedDict
from typing_extensions import Self
from deckloader.card_state import CardState, CardStateDict
from deckloader.errors import PersistenceUnavailable
from deckloader.models import CardRecord

logger = logging.getLogger(__name__)

DECK_ID_SAMPLE_SIZE = 5


def generate_deck_id(cards: Sequence[CardRecord]) -> str:
    """
    Derives a deck id from the first few note ids and the number of cards.

    Decoding the same package again gives the same id.
    """

    sample = "-".join(card.note_id for card in cards[:DECK_ID_SAMPLE_SIZE])
    return f"deck-{sample}-{len(cards)}"


class StudyDataDict(TypedDict):
    """
    JSON-serializable dictionary representation of a StudyData object.
    """

    card_states: dict[str, CardStateDict]
    updated_at: str | None


@dataclass
class StudyData:
    """
    The saved study progress of a deck.

    Attributes:
        card_states: The card states keyed by card id.
        updated_at: When the data was last saved.
    """

    card_states: dict[str, CardState] = field(default_factory=dict)
    updated_at: datetime | None = None

    def to_dict(self) -> StudyDataDict:
        return {
            "card_states": {
                card_id: card_state.to_dict()
                for card_id, card_state in self.card_states.items()
            },
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, source_dict: StudyDataDict) -> Self:
        return cls(
            card_states={
                str(card_id): CardState.from_dict(card_state)
                for card_id, card_state in source_dict["card_states"].items()
            },
            updated_at=(
                datetime.fromisoformat(source_dict["updated_at"])
                if source_dict.get("updated_at")
                else None
            ),
        )


class StudyStore(ABC):
    """
    Port for saving and loading study progress.

    Implementations:
        - MemoryStore: Keeps study data in memory, for tests and throwaway sessions.
        - JsonFileStore: Keeps the study data of every deck in one JSON file.
    """

    @abstractmethod
    def load(self, deck_id: str) -> StudyData | None:
        """
        Fetch the study data of a deck.

        Args:
            deck_id: The id of the deck, see generate_deck_id.

        Returns:
            The saved study data, or None if the deck has never been saved.

        Raises:
            PersistenceUnavailable: If the store can't be read.
        """
        pass

    @abstractmethod
    def save(self, deck_id: str, card_states: Mapping[str, CardState]) -> StudyData:
        """
        Replace the study data of a deck. Either all of it is written or none.

        Args:
            deck_id: The id of the deck.
            card_states: The card states keyed by card id.

        Returns:
            The study data as saved, stamped with the time of the save.

        Raises:
            PersistenceUnavailable: If the store can't be written.
        """
        pass


class MemoryStore(StudyStore):
    def __init__(self) -> None:
        self._decks: dict[str, StudyDataDict] = {}

    def load(self, deck_id: str) -> StudyData | None:
        source_dict = self._decks.get(deck_id)
        if source_dict is None:
            return None
        return StudyData.from_dict(source_dict)

    def save(self, deck_id: str, card_states: Mapping[str, CardState]) -> StudyData:
        study_data = StudyData(
            card_states=dict(card_states), updated_at=datetime.now(timezone.utc)
        )
        # stored serialized, so later changes to the states don't leak into the store
        self._decks[deck_id] = study_data.to_dict()
        return study_data


class JsonFileStore(StudyStore):
    """
    Keeps the study data of every deck in one JSON file.

    The file maps deck id to study data. Saves rewrite the whole file through a
    temporary file in the same directory, so a failed save leaves the previous
    contents in place.

    Attributes:
        path: The JSON file.
    """

    path: Path

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)

    def load(self, deck_id: str) -> StudyData | None:
        source_dict = self._read_all().get(deck_id)
        if source_dict is None:
            return None

        try:
            return StudyData.from_dict(source_dict)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise PersistenceUnavailable(
                f"The saved study data of {deck_id} is malformed", entry=str(self.path)
            ) from exc

    def save(self, deck_id: str, card_states: Mapping[str, CardState]) -> StudyData:
        all_data = self._read_all()

        study_data = StudyData(
            card_states=dict(card_states), updated_at=datetime.now(timezone.utc)
        )
        all_data[deck_id] = study_data.to_dict()

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(all_data, handle)
                os.replace(tmp_path, self.path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceUnavailable(
                "Study data could not be saved", entry=str(self.path)
            ) from exc

        logger.debug(f"Saved {len(card_states)} card states of {deck_id}")
        return study_data

    def _read_all(self) -> dict[str, StudyDataDict]:
        try:
            with self.path.open(encoding="utf-8") as handle:
                all_data = json.load(handle)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise PersistenceUnavailable(
                "Study data could not be read", entry=str(self.path)
            ) from exc

        if not isinstance(all_data, dict):
            raise PersistenceUnavailable(
                "Study data is not a JSON object", entry=str(self.path)
            )
        return all_data


__all__ = [
    "StudyData",
    "StudyStore",
    "MemoryStore",
    "JsonFileStore",
    "generate_deck_id",
]
