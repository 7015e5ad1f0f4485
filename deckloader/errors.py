"""
deckloader.errors
---------

This module defines the exceptions raised while decoding packages and persisting study data.

Fatal errors (InvalidInput, ArchiveCorrupt, StoreNotFound, StoreQueryFailed) abort
a decode. SchemaParseFailed, MediaIndexParseFailed and PersistenceUnavailable are
raised by the low level helpers and absorbed by their callers, which log them and
carry on with the affected feature disabled.
"""

from __future__ import annotations
from deckloader.stage import DecodeStage


class DeckLoaderError(Exception):
    """
    Base class of every error raised by deckloader.

    Attributes:
        summary: A human readable description of what went wrong.
        stage: The decode stage that failed, if the error was raised while decoding.
        entry: The archive entry involved, if any.
    """

    summary: str
    stage: DecodeStage | None
    entry: str | None

    def __init__(
        self,
        summary: str,
        *,
        stage: DecodeStage | None = None,
        entry: str | None = None,
    ) -> None:
        self.summary = summary
        self.stage = stage
        self.entry = entry
        super().__init__(summary)

    def __str__(self) -> str:
        context = []
        if self.stage is not None:
            context.append(f"stage: {self.stage.label}")
        if self.entry is not None:
            context.append(f"entry: {self.entry}")
        if self.__cause__ is not None:
            context.append(f"cause: {self.__cause__}")

        if not context:
            return self.summary
        return f"{self.summary} ({'; '.join(context)})"


class InvalidInput(DeckLoaderError):
    """The input is not an .apkg file or is too large. Raised before decoding starts."""


class ArchiveCorrupt(DeckLoaderError):
    """The input is not a valid ZIP archive or one of its entries can't be decompressed."""


class StoreNotFound(DeckLoaderError):
    """The archive has no collection database entry."""


class StoreQueryFailed(DeckLoaderError):
    """The collection database can't be opened or its notes can't be read."""


class SchemaParseFailed(DeckLoaderError):
    """The note type definitions are missing or malformed."""


class MediaIndexParseFailed(DeckLoaderError):
    """The media index entry can't be decoded."""


class PersistenceUnavailable(DeckLoaderError):
    """Study data could not be read from or written to its store."""


__all__ = [
    "DeckLoaderError",
    "InvalidInput",
    "ArchiveCorrupt",
    "StoreNotFound",
    "StoreQueryFailed",
    "SchemaParseFailed",
    "MediaIndexParseFailed",
    "PersistenceUnavailable",
]
