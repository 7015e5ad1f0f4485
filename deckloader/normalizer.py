"""
deckloader.normalizer
---------

This module joins note rows with their note types to build CardRecord objects.
"""

from __future__ import annotations
from collections.abc import Iterable, Mapping
from deckloader.models import CardRecord, NoteTypeSchema, synthesized_field_name
from deckloader.store import NoteRow


def resolve_field_names(
    field_count: int, note_type: NoteTypeSchema | None
) -> tuple[str, ...]:
    """
    Names each position of a note's field list.

    The note type's names are used where they exist and "Field N" is synthesized for
    the rest, so the result covers the longer of the two lists.
    """

    names = list(note_type.field_names) if note_type is not None else []
    for index in range(len(names), field_count):
        names.append(synthesized_field_name(index))
    return tuple(names)


def normalize_row(
    row: NoteRow, note_types: Mapping[str, NoteTypeSchema]
) -> CardRecord:
    note_type = note_types.get(row.note_type_id)
    return CardRecord(
        note_id=row.note_id,
        note_type_id=row.note_type_id,
        note_type_name=note_type.name if note_type is not None else None,
        deck_id=row.deck_id,
        fields=row.fields,
        field_names=resolve_field_names(len(row.fields), note_type),
    )


def normalize_rows(
    rows: Iterable[NoteRow], note_types: Mapping[str, NoteTypeSchema]
) -> list[CardRecord]:
    return [normalize_row(row, note_types) for row in rows]


__all__ = ["normalize_row", "normalize_rows", "resolve_field_names"]
