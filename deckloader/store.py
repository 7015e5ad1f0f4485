"""
deckloader.store
---------

This module reads notes and note types from the collection database of a package.

Classes:
    NoteRow: One note joined with its cards.
    StoreSession: A read-only session on a collection database.
"""

from __future__ import annotations
from collections.abc import Iterator, Mapping
import json
import logging
import os
from pathlib import Path
import sqlite3
import tempfile
from typing import NamedTuple
import pyzstd
from typing_extensions import Self
from deckloader.errors import (
    ArchiveCorrupt,
    SchemaParseFailed,
    StoreNotFound,
    StoreQueryFailed,
)
from deckloader.models import FIELD_SEPARATOR, NoteTypeSchema
from deckloader.stage import DecodeStage

logger = logging.getLogger(__name__)

# zstd compressed, written by Anki 2.1.50+
COMPRESSED_STORE_ENTRY = "collection.anki21b"
CURRENT_STORE_ENTRY = "collection.anki21"
LEGACY_STORE_ENTRY = "collection.anki2"
STORE_ENTRIES = (COMPRESSED_STORE_ENTRY, CURRENT_STORE_ENTRY, LEGACY_STORE_ENTRY)

CHUNK_SIZE = 500

NOTE_COUNT_QUERY = """
    SELECT COUNT(*) FROM (
        SELECT notes.id FROM notes
        JOIN cards ON notes.id = cards.nid
        GROUP BY notes.id
    )
"""

NOTE_ROWS_QUERY = """
    SELECT notes.id, notes.mid, notes.flds, MIN(cards.did)
    FROM notes
    JOIN cards ON notes.id = cards.nid
    GROUP BY notes.id
    ORDER BY notes.id
    LIMIT ? OFFSET ?
"""


class NoteRow(NamedTuple):
    note_id: str
    note_type_id: str
    fields: tuple[str, ...]
    deck_id: str


def split_fields(raw_fields: str) -> tuple[str, ...]:
    """
    Splits a note's field blob on the unit separator. N separators give N + 1 fields.
    """

    return tuple(raw_fields.split(FIELD_SEPARATOR))


def resolve_store_entry(entries: Mapping[str, bytes]) -> str:
    """
    Picks the collection database entry of an unpacked package.

    Raises:
        StoreNotFound: If the package holds none of the known collection entries.
    """

    for name in STORE_ENTRIES:
        if name in entries:
            return name

    raise StoreNotFound(
        f"The package has no collection database (expected {CURRENT_STORE_ENTRY} or {LEGACY_STORE_ENTRY})",
        stage=DecodeStage.LocateStore,
    )


def load_store_bytes(entries: Mapping[str, bytes], entry_name: str) -> bytes:
    """
    Returns the SQLite image held by a collection entry, decompressing it if needed.
    """

    data = entries[entry_name]
    if entry_name != COMPRESSED_STORE_ENTRY:
        return data

    try:
        return pyzstd.decompress(data)
    except pyzstd.ZstdError as exc:
        raise ArchiveCorrupt(
            "The collection database could not be decompressed",
            stage=DecodeStage.LoadEngine,
            entry=entry_name,
        ) from exc


def parse_note_types(raw_models: str | bytes | None) -> dict[str, NoteTypeSchema]:
    """
    Parses the note type JSON stored in the `models` column of the `col` table.

    Args:
        raw_models: The JSON object mapping note type id to note type definition.

    Returns:
        dict[str, NoteTypeSchema]: The note types keyed by id.

    Raises:
        SchemaParseFailed: If the JSON is missing or does not describe note types.
    """

    if not raw_models:
        raise SchemaParseFailed("The collection has no note type definitions")

    try:
        models = json.loads(raw_models)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise SchemaParseFailed("The note type definitions are not valid JSON") from exc

    if not isinstance(models, dict):
        raise SchemaParseFailed("The note type definitions are not a JSON object")

    note_types: dict[str, NoteTypeSchema] = {}
    try:
        for key, model in models.items():
            note_type_id = str(model.get("id", key))
            # "ord" is the field position; fall back to list order when it's missing
            fields = sorted(
                enumerate(model.get("flds", [])),
                key=lambda item: (item[1].get("ord", item[0]), item[0]),
            )
            note_types[note_type_id] = NoteTypeSchema(
                note_type_id=note_type_id,
                name=str(model.get("name", "")),
                field_names=tuple(str(fld["name"]) for _, fld in fields),
            )
    except (AttributeError, KeyError, TypeError) as exc:
        raise SchemaParseFailed("A note type definition is malformed") from exc

    return note_types


def _unicase(left: str, right: str) -> int:
    left, right = left.casefold(), right.casefold()
    return (left > right) - (left < right)


class StoreSession:
    """
    A read-only session on a collection database.

    The SQLite image is written to a temporary file, which is removed together with
    the connection by `close()`. Use the session as a context manager so it is
    released on every exit path:

        with StoreSession(data, entry_name) as session:
            note_types = session.note_types()
            for rows, fraction in session.iter_note_rows():
                ...

    Attributes:
        entry_name: The archive entry the database came from.
    """

    entry_name: str

    def __init__(self, data: bytes, entry_name: str) -> None:
        self.entry_name = entry_name
        self._data = data
        self._path: Path | None = None
        self._connection: sqlite3.Connection | None = None

    def __enter__(self) -> Self:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def open(self) -> Self:
        if self._connection is not None:
            return self

        fd, path = tempfile.mkstemp(suffix=".sqlite", prefix="deckloader-")
        self._path = Path(path)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(self._data)
            connection = sqlite3.connect(
                f"{self._path.as_uri()}?mode=ro", uri=True, check_same_thread=False
            )
        except (OSError, sqlite3.Error) as exc:
            self.close()
            raise StoreQueryFailed(
                "The collection database could not be opened",
                stage=DecodeStage.OpenStore,
                entry=self.entry_name,
            ) from exc

        # anki21b tables are declared with this collation
        connection.create_collation("unicase", _unicase)
        self._connection = connection
        logger.debug(f"Opened {self.entry_name} at {self._path}")
        return self

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._path is not None:
            self._path.unlink(missing_ok=True)
            self._path = None

    def note_types(self) -> dict[str, NoteTypeSchema]:
        """
        Reads the note types of the collection.

        Missing or malformed note types are not an error: a warning is logged and an
        empty mapping returned, and field names are synthesized downstream.
        """

        try:
            return self._read_note_types()
        except SchemaParseFailed as exc:
            logger.warning(f"Ignoring note types of {self.entry_name}: {exc}")
            return {}

    def _read_note_types(self) -> dict[str, NoteTypeSchema]:
        connection = self._require_connection()
        try:
            row = connection.execute("SELECT models FROM col LIMIT 1").fetchone()
        except sqlite3.Error as exc:
            raise SchemaParseFailed(
                "The collection metadata could not be read", entry=self.entry_name
            ) from exc

        raw_models = row[0] if row else None
        if raw_models and raw_models != "{}":
            return parse_note_types(raw_models)

        # newer collections keep note types in their own tables
        return self._read_note_type_tables()

    def _read_note_type_tables(self) -> dict[str, NoteTypeSchema]:
        connection = self._require_connection()
        try:
            names = connection.execute("SELECT id, name FROM notetypes").fetchall()
            fields = connection.execute(
                "SELECT ntid, name FROM fields ORDER BY ntid, ord"
            ).fetchall()
        except sqlite3.Error as exc:
            raise SchemaParseFailed(
                "The collection has no note type definitions", entry=self.entry_name
            ) from exc

        field_names: dict[str, list[str]] = {}
        for note_type_id, name in fields:
            field_names.setdefault(str(note_type_id), []).append(str(name))

        return {
            str(note_type_id): NoteTypeSchema(
                note_type_id=str(note_type_id),
                name=str(name),
                field_names=tuple(field_names.get(str(note_type_id), [])),
            )
            for note_type_id, name in names
        }

    def count_notes(self) -> int:
        connection = self._require_connection()
        try:
            (count,) = connection.execute(NOTE_COUNT_QUERY).fetchone()
        except sqlite3.Error as exc:
            raise self._query_failed() from exc
        return int(count)

    def iter_note_rows(
        self, chunk_size: int = CHUNK_SIZE
    ) -> Iterator[tuple[list[NoteRow], float]]:
        """
        Reads the notes of the collection in chunks, ordered by note id.

        Each note appears once however many cards it has. Paging stops at the first
        chunk shorter than `chunk_size`, so the result is the same for every chunk size.

        Args:
            chunk_size: The number of notes fetched per query.

        Yields:
            tuple[list[NoteRow], float]: A chunk of rows and the fraction of notes read so far.

        Raises:
            StoreQueryFailed: If the notes or cards tables can't be queried.
        """

        if chunk_size < 1:
            raise ValueError(f"chunk_size = {chunk_size} must be positive")

        connection = self._require_connection()
        total = self.count_notes()
        offset = 0

        while True:
            try:
                chunk = connection.execute(
                    NOTE_ROWS_QUERY, (chunk_size, offset)
                ).fetchall()
            except sqlite3.Error as exc:
                raise self._query_failed() from exc

            offset += len(chunk)
            if chunk:
                rows = [
                    NoteRow(
                        note_id=str(note_id),
                        note_type_id=str(note_type_id),
                        fields=split_fields(str(raw_fields)),
                        deck_id=str(deck_id),
                    )
                    for note_id, note_type_id, raw_fields, deck_id in chunk
                ]
                logger.debug(f"Read {offset} of {total} notes from {self.entry_name}")
                yield rows, min(offset / total, 1.0) if total else 1.0

            if len(chunk) < chunk_size:
                break

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise RuntimeError("StoreSession is not open")
        return self._connection

    def _query_failed(self) -> StoreQueryFailed:
        return StoreQueryFailed(
            "The notes of the collection could not be read",
            stage=DecodeStage.Query,
            entry=self.entry_name,
        )


__all__ = [
    "NoteRow",
    "StoreSession",
    "resolve_store_entry",
    "load_store_bytes",
    "parse_note_types",
    "split_fields",
    "STORE_ENTRIES",
    "CHUNK_SIZE",
]
