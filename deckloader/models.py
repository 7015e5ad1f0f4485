"""
deckloader.models
---------

This module defines the records produced by decoding a package.

Classes:
    NoteTypeSchema: A note type and the ordered names of its fields.
    FieldSlot: One position of a card's fields, named and possibly empty.
    CardRecord: A decoded note with its field values.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import json
from typing import TypedDict
from typing_extensions import Self

FIELD_SEPARATOR = "\x1f"


def synthesized_field_name(index: int) -> str:
    return f"Field {index + 1}"


class NoteTypeSchemaDict(TypedDict):
    """
    JSON-serializable dictionary representation of a NoteTypeSchema object.
    """

    note_type_id: str
    name: str
    field_names: list[str]


@dataclass(frozen=True)
class NoteTypeSchema:
    """
    A note type definition.

    Attributes:
        note_type_id: The id of the note type, as an opaque string.
        name: The display name of the note type.
        field_names: The names of the note type's fields. Their order gives each field value its meaning.
    """

    note_type_id: str
    name: str
    field_names: tuple[str, ...]

    def to_dict(self) -> NoteTypeSchemaDict:
        return {
            "note_type_id": self.note_type_id,
            "name": self.name,
            "field_names": list(self.field_names),
        }

    @classmethod
    def from_dict(cls, source_dict: NoteTypeSchemaDict) -> Self:
        return cls(
            note_type_id=str(source_dict["note_type_id"]),
            name=source_dict["name"],
            field_names=tuple(source_dict["field_names"]),
        )


@dataclass(frozen=True)
class FieldSlot:
    """
    One position of a card's field list.

    A slot is absent when the note type names more fields than the note has values.
    Its value is then None and `present` is False, so an empty string always means
    an empty field.
    """

    index: int
    name: str
    value: str | None
    present: bool


class CardRecordDict(TypedDict):
    """
    JSON-serializable dictionary representation of a CardRecord object.
    """

    note_id: str
    note_type_id: str
    note_type_name: str | None
    deck_id: str
    fields: list[str]
    field_names: list[str]


@dataclass(frozen=True)
class CardRecord:
    """
    A decoded note.

    The ordered `fields` tuple is authoritative. `fields_by_name` is a convenience
    lookup built from it and the note type's field names, or from synthesized
    "Field N" names when the note type is unknown.

    Attributes:
        note_id: The id of the note, as an opaque string.
        note_type_id: The id of the note's note type.
        note_type_name: The name of the note type or None if the note type is unknown.
        deck_id: The id of the deck holding the note's cards.
        fields: The raw field values, in order. HTML and media references are kept verbatim.
        field_names: One name per position, covering the longer of the value list and the note type's name list.
    """

    note_id: str
    note_type_id: str
    note_type_name: str | None
    deck_id: str
    fields: tuple[str, ...]
    field_names: tuple[str, ...]
    fields_by_name: dict[str, str] = field(
        init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        fields_by_name: dict[str, str] = {}
        for name, value in zip(self.field_names, self.fields):
            # the first field wins when a note type repeats a name
            fields_by_name.setdefault(name, value)
        object.__setattr__(self, "fields_by_name", fields_by_name)

    def field_slots(self) -> list[FieldSlot]:
        slots = []
        for index in range(max(len(self.fields), len(self.field_names))):
            name = (
                self.field_names[index]
                if index < len(self.field_names)
                else synthesized_field_name(index)
            )
            present = index < len(self.fields)
            slots.append(
                FieldSlot(
                    index=index,
                    name=name,
                    value=self.fields[index] if present else None,
                    present=present,
                )
            )
        return slots

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.fields_by_name.get(name, default)

    def to_dict(self) -> CardRecordDict:
        """
        Returns a JSON-serializable dictionary representation of the CardRecord object.

        Returns:
            A dictionary representation of the CardRecord object.
        """

        return {
            "note_id": self.note_id,
            "note_type_id": self.note_type_id,
            "note_type_name": self.note_type_name,
            "deck_id": self.deck_id,
            "fields": list(self.fields),
            "field_names": list(self.field_names),
        }

    @classmethod
    def from_dict(cls, source_dict: CardRecordDict) -> Self:
        """
        Creates a CardRecord object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing CardRecord object.

        Returns:
            A CardRecord object created from the provided dictionary.
        """

        return cls(
            note_id=str(source_dict["note_id"]),
            note_type_id=str(source_dict["note_type_id"]),
            note_type_name=source_dict["note_type_name"],
            deck_id=str(source_dict["deck_id"]),
            fields=tuple(source_dict["fields"]),
            field_names=tuple(source_dict["field_names"]),
        )

    def to_json(self, indent: int | str | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        source_dict: CardRecordDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = [
    "NoteTypeSchema",
    "FieldSlot",
    "CardRecord",
    "FIELD_SEPARATOR",
    "synthesized_field_name",
]
