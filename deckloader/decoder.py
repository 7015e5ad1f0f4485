"""
deckloader.decoder
---------

This module defines the Decoder class, which turns an .apkg package into a Deck.

Classes:
    DecodeEvent: A progress checkpoint of a decode.
    Decoder: The package decoder.
"""

from __future__ import annotations
from collections.abc import Callable, Generator, Iterator
from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from typing import TypedDict, Union
from typing_extensions import Self
from deckloader.archive import MAX_PACKAGE_SIZE, read_archive, validate_package
from deckloader.deck import Deck
from deckloader.errors import InvalidInput
from deckloader.media import MediaBinding, load_media
from deckloader.normalizer import normalize_rows
from deckloader.stage import DecodeStage
from deckloader.store import (
    CHUNK_SIZE,
    StoreSession,
    load_store_bytes,
    resolve_store_entry,
)

logger = logging.getLogger(__name__)

ProgressSink = Callable[[DecodeStage, float], None]
PackageSource = Union[bytes, bytearray, memoryview, str, os.PathLike]


class DecoderDict(TypedDict):
    """
    JSON-serializable dictionary representation of a Decoder object.
    """

    max_package_size: int
    chunk_size: int
    media_dir: str | None


@dataclass(frozen=True)
class DecodeEvent:
    """
    A progress checkpoint of a decode.

    Attributes:
        stage: The stage being run.
        percent: How much of the stage is done, from 0 to 100.
        deck: The decoded deck. Only set on the final event.
    """

    stage: DecodeStage
    percent: float
    deck: Deck | None = None


@dataclass(init=False)
class Decoder:
    """
    The .apkg package decoder.

    Attributes:
        max_package_size: The largest accepted package, in bytes.
        chunk_size: The number of notes read from the collection per query.
        media_dir: The directory media files are written under, or None for the system temporary directory.
    """

    max_package_size: int
    chunk_size: int
    media_dir: Path | None

    def __init__(
        self,
        max_package_size: int = MAX_PACKAGE_SIZE,
        chunk_size: int = CHUNK_SIZE,
        media_dir: str | os.PathLike | None = None,
    ) -> None:
        self._validate_parameters(
            max_package_size=max_package_size, chunk_size=chunk_size
        )

        self.max_package_size = max_package_size
        self.chunk_size = chunk_size
        self.media_dir = Path(media_dir) if media_dir is not None else None

    def _validate_parameters(self, *, max_package_size: int, chunk_size: int) -> None:
        error_messages = []
        if max_package_size < 1:
            error_messages.append(
                f"max_package_size = {max_package_size} must be positive"
            )
        if chunk_size < 1:
            error_messages.append(f"chunk_size = {chunk_size} must be positive")

        if len(error_messages) > 0:
            raise ValueError(
                "One or more parameters are invalid:\n" + "\n".join(error_messages)
            )

    def decode(
        self,
        source: PackageSource,
        filename: str | None = None,
        progress: ProgressSink | None = None,
    ) -> Deck:
        """
        Decodes a package.

        Args:
            source: The package, as bytes or as a path to an .apkg file.
            filename: The name the package was uploaded under, if `source` is bytes.
            progress: Called with (stage, percent) at the start and end of every stage
                and after every chunk of notes.

        Returns:
            Deck: The decoded deck. The caller owns its media and must release it.

        Raises:
            InvalidInput: If the package is not an .apkg file, is too large or can't be read.
            ArchiveCorrupt: If the package is not a valid archive.
            StoreNotFound: If the package has no collection database.
            StoreQueryFailed: If the notes of the collection can't be read.
        """

        for event in self.iter_decode(source, filename):
            if progress is not None:
                progress(event.stage, event.percent)
            if event.deck is not None:
                return event.deck

        raise RuntimeError("Decoding finished without producing a deck")

    def iter_decode(
        self, source: PackageSource, filename: str | None = None
    ) -> Iterator[DecodeEvent]:
        """
        Decodes a package step by step.

        The package is validated before this returns. The returned iterator yields a
        DecodeEvent at every stage boundary and after every chunk of notes, and the
        last event carries the deck. Closing the iterator early cancels the decode
        and releases everything acquired so far.

        Raises:
            InvalidInput: If the package is not an .apkg file, is too large or can't be read.
        """

        if isinstance(source, (bytes, bytearray, memoryview)):
            data = bytes(source)
            validate_package(len(data), filename, self.max_package_size)
            return self._run(lambda: data)

        path = Path(source)
        try:
            size = path.stat().st_size
        except OSError as exc:
            raise InvalidInput(
                f"The package {path.name!r} can't be read", stage=DecodeStage.Read
            ) from exc

        validate_package(size, filename or path.name, self.max_package_size)

        def read_package() -> bytes:
            try:
                return path.read_bytes()
            except OSError as exc:
                raise InvalidInput(
                    f"The package {path.name!r} can't be read", stage=DecodeStage.Read
                ) from exc

        return self._run(read_package)

    def _run(self, read: Callable[[], bytes]) -> Iterator[DecodeEvent]:
        yield DecodeEvent(DecodeStage.Read, 0)
        data = read()
        yield DecodeEvent(DecodeStage.Read, 100)

        yield DecodeEvent(DecodeStage.Unpack, 0)
        entries = read_archive(data)
        del data
        yield DecodeEvent(DecodeStage.Unpack, 100)

        yield DecodeEvent(DecodeStage.LocateStore, 0)
        entry_name = resolve_store_entry(entries)
        media_index, media = load_media(entries, self.media_dir)

        try:
            yield DecodeEvent(DecodeStage.LocateStore, 100)
            deck = yield from self._read_store(entries, entry_name, media_index, media)
        except BaseException:
            media.release()
            raise

        logger.debug(
            f"Decoded {len(deck.cards)} notes, {len(deck.note_types)} note types and {len(media)} media files"
        )
        yield DecodeEvent(DecodeStage.Done, 100, deck)

    def _read_store(
        self,
        entries: dict[str, bytes],
        entry_name: str,
        media_index: dict[str, str],
        media: MediaBinding,
    ) -> Generator[DecodeEvent, None, Deck]:
        yield DecodeEvent(DecodeStage.LoadEngine, 0)
        store_bytes = load_store_bytes(entries, entry_name)
        entries.clear()
        yield DecodeEvent(DecodeStage.LoadEngine, 100)

        yield DecodeEvent(DecodeStage.OpenStore, 0)
        with StoreSession(store_bytes, entry_name) as session:
            del store_bytes
            yield DecodeEvent(DecodeStage.OpenStore, 100)

            yield DecodeEvent(DecodeStage.Query, 0)
            note_types = session.note_types()
            cards = []
            for rows, fraction in session.iter_note_rows(self.chunk_size):
                cards.extend(normalize_rows(rows, note_types))
                yield DecodeEvent(DecodeStage.Query, min(fraction * 100, 99))
            yield DecodeEvent(DecodeStage.Query, 100)

        return Deck(
            cards=cards,
            note_types=note_types,
            media=media,
            media_index=media_index,
            store_entry=entry_name,
        )

    def to_dict(self) -> DecoderDict:
        return {
            "max_package_size": self.max_package_size,
            "chunk_size": self.chunk_size,
            "media_dir": str(self.media_dir) if self.media_dir is not None else None,
        }

    @classmethod
    def from_dict(cls, source_dict: DecoderDict) -> Self:
        return cls(
            max_package_size=source_dict["max_package_size"],
            chunk_size=source_dict["chunk_size"],
            media_dir=source_dict["media_dir"],
        )

    def to_json(self, indent: int | str | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        source_dict: DecoderDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


def decode_package(
    source: PackageSource,
    filename: str | None = None,
    progress: ProgressSink | None = None,
) -> Deck:
    """
    Decodes a package with the default Decoder settings.
    """

    return Decoder().decode(source, filename=filename, progress=progress)


__all__ = ["Decoder", "DecodeEvent", "decode_package", "ProgressSink"]
