"""
deckloader.deck
---------

This module defines the Deck class, the result of decoding a package.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import json
from typing import TypedDict
from typing_extensions import Self
from deckloader.media import MediaBinding
from deckloader.models import CardRecord, CardRecordDict, NoteTypeSchema


class DeckDict(TypedDict):
    """
    JSON-serializable dictionary representation of a Deck object, without its media.
    """

    store_entry: str
    cards: list[CardRecordDict]
    note_types: dict[str, dict]
    media_index: dict[str, str]


@dataclass
class Deck:
    """
    A decoded package.

    The deck owns its media files. Release them with `release()`, or use the deck as
    a context manager, once the deck is no longer displayed.

    Attributes:
        cards: The notes of the package, ordered by note id.
        note_types: The note types of the package, keyed by id. Empty if they could not be read.
        media: The media files of the package, keyed by filename.
        media_index: The raw mapping from archive key to media filename.
        store_entry: The archive entry the collection database was read from.
    """

    cards: list[CardRecord]
    note_types: dict[str, NoteTypeSchema]
    media: MediaBinding = field(default_factory=MediaBinding)
    media_index: dict[str, str] = field(default_factory=dict)
    store_entry: str = ""

    def __post_init__(self) -> None:
        self._by_note_id = {card.note_id: card for card in self.cards}

    def __len__(self) -> int:
        return len(self.cards)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def release(self) -> None:
        self.media.release()

    def get_card(self, note_id: str) -> CardRecord | None:
        return self._by_note_id.get(str(note_id))

    def search(self, query: str) -> list[CardRecord]:
        """
        Returns the cards with a field containing `query`, ignoring case.

        A blank query matches every card.
        """

        if not query.strip():
            return list(self.cards)

        needle = query.lower()
        return [
            card
            for card in self.cards
            if any(needle in value.lower() for value in card.fields)
        ]

    def to_dict(self) -> DeckDict:
        return {
            "store_entry": self.store_entry,
            "cards": [card.to_dict() for card in self.cards],
            "note_types": {
                note_type_id: dict(note_type.to_dict())
                for note_type_id, note_type in self.note_types.items()
            },
            "media_index": dict(self.media_index),
        }

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns the cards, note types and media index of the deck as JSON.

        Media contents are not included.
        """

        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


__all__ = ["Deck"]
