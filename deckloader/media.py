"""
deckloader.media
---------

This module binds the media files of a package to their filenames.

Classes:
    MediaHandle: A media file written out to disk, addressable by path or file URI.
    MediaBinding: The media files of one decoded deck, keyed by filename.
"""

from __future__ import annotations
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
import json
import logging
from pathlib import Path
import re
import shutil
import tempfile
import pyzstd
from deckloader.errors import MediaIndexParseFailed
from deckloader.stage import DecodeStage

logger = logging.getLogger(__name__)

MEDIA_INDEX_ENTRY = "media"

_SAFE_SUFFIX = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


def _is_media_key(key: str) -> bool:
    return key.isascii() and key.isdigit()


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    value = 0
    shift = 0
    while data[pos] & 0x80:
        value |= (data[pos] & 0x7F) << shift
        shift += 7
        pos += 1
    value |= (data[pos] & 0x7F) << shift
    return value, pos + 1


def _parse_protobuf_index(data: bytes) -> dict[str, str]:
    """
    Parses the zstd-compressed protobuf media index written by Anki 2.1.50+.

    The index is a repeated message. The position of each entry is its numeric key
    and field 1 of the entry is the filename.
    """

    decompressed = pyzstd.decompress(data)
    media_index: dict[str, str] = {}
    pos = 0
    entry_index = 0

    while pos < len(decompressed):
        if decompressed[pos] != 0x0A:
            raise ValueError(f"unexpected tag {decompressed[pos]:#x} at offset {pos}")
        outer_len, pos = _read_varint(decompressed, pos + 1)
        entry_end = pos + outer_len

        if pos < entry_end and decompressed[pos] == 0x0A:
            name_len, pos = _read_varint(decompressed, pos + 1)
            media_index[str(entry_index)] = decompressed[pos : pos + name_len].decode(
                "utf-8"
            )

        pos = entry_end
        entry_index += 1

    return media_index


def parse_media_index(data: bytes) -> dict[str, str]:
    """
    Parses the media index of a package.

    Older packages store a JSON object such as {"0": "cat.jpg", "1": "meow.mp3"};
    newer ones a zstd-compressed protobuf list of filenames.

    Args:
        data: The raw contents of the "media" archive entry.

    Returns:
        dict[str, str]: A mapping from numeric archive key to media filename.

    Raises:
        MediaIndexParseFailed: If the index is in neither format.
    """

    try:
        media_index = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        media_index = None

    if media_index is not None:
        if not isinstance(media_index, dict):
            raise MediaIndexParseFailed(
                "The media index is not a JSON object",
                stage=DecodeStage.LocateStore,
                entry=MEDIA_INDEX_ENTRY,
            )
        return {str(key): str(filename) for key, filename in media_index.items()}

    try:
        return _parse_protobuf_index(data)
    except (pyzstd.ZstdError, ValueError, IndexError, UnicodeDecodeError) as exc:
        raise MediaIndexParseFailed(
            "The media index could not be decoded",
            stage=DecodeStage.LocateStore,
            entry=MEDIA_INDEX_ENTRY,
        ) from exc


@dataclass(frozen=True)
class MediaHandle:
    """
    A media file of a decoded deck.

    Attributes:
        filename: The filename the deck's fields refer to the file by.
        path: Where the file's bytes were written. Valid until the deck is released.
    """

    filename: str
    path: Path

    @property
    def uri(self) -> str:
        return self.path.as_uri()

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


class MediaBinding(Mapping[str, MediaHandle]):
    """
    The media files of one decoded deck, keyed by filename.

    Every binding owns its own directory, even when two decodes read the same
    package. Call `release()` when the deck is discarded to delete the files.
    """

    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory
        self._handles: dict[str, MediaHandle] = {}
        self._released = False

    def __getitem__(self, filename: str) -> MediaHandle:
        return self._handles[filename]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def __repr__(self) -> str:
        return f"MediaBinding({sorted(self._handles)!r})"

    @property
    def directory(self) -> Path | None:
        return self._directory

    @property
    def released(self) -> bool:
        return self._released

    def add(self, key: str, filename: str, data: bytes) -> MediaHandle:
        if self._released:
            raise RuntimeError("MediaBinding has been released")
        if not _is_media_key(key):
            raise ValueError(f"media key {key!r} is not a number")
        if self._directory is None:
            self._directory = Path(tempfile.mkdtemp(prefix="deckloader-media-"))

        # files are stored under their numeric key, so neither keys nor filenames become paths
        suffix = Path(filename).suffix
        if not _SAFE_SUFFIX.match(suffix):
            suffix = ""
        path = self._directory / f"{key}{suffix}"
        path.write_bytes(data)

        handle = MediaHandle(filename=filename, path=path)
        self._handles[filename] = handle
        return handle

    def release(self) -> None:
        if self._released:
            return
        self._handles.clear()
        if self._directory is not None:
            shutil.rmtree(self._directory, ignore_errors=True)
        self._released = True


def bind_media(
    entries: Mapping[str, bytes],
    media_index: Mapping[str, str],
    directory: Path | None = None,
) -> MediaBinding:
    """
    Writes out every indexed media file present in the archive.

    Index keys that are not numbers or have no matching archive entry are skipped.

    Args:
        entries: The unpacked archive.
        media_index: A mapping from numeric archive key to filename.
        directory: A parent directory for the binding's files. Defaults to the system temporary directory.

    Returns:
        MediaBinding: The bound media files.
    """

    binding_dir = None
    if directory is not None:
        binding_dir = Path(tempfile.mkdtemp(prefix="deckloader-media-", dir=directory))
    binding = MediaBinding(binding_dir)

    skipped = 0
    try:
        for key, filename in media_index.items():
            if not _is_media_key(key):
                logger.warning(f"Skipping media {filename!r} with invalid key {key!r}")
                continue
            data = entries.get(key)
            if data is None:
                skipped += 1
                continue
            binding.add(key, filename, data)
    except OSError:
        binding.release()
        raise

    if skipped:
        logger.warning(f"{skipped} indexed media files are missing from the package")
    logger.debug(f"Bound {len(binding)} media files")
    return binding


def load_media(
    entries: Mapping[str, bytes], directory: Path | None = None
) -> tuple[dict[str, str], MediaBinding]:
    """
    Parses the media index of an unpacked archive and binds its files.

    A missing or unreadable index is not an error: the deck just has no media.

    Returns:
        tuple[dict[str, str], MediaBinding]: The media index and the bound files.
    """

    raw_index = entries.get(MEDIA_INDEX_ENTRY)
    if raw_index is None:
        return {}, MediaBinding()

    try:
        media_index = parse_media_index(raw_index)
    except MediaIndexParseFailed as exc:
        logger.warning(f"Ignoring media: {exc}")
        return {}, MediaBinding()

    return media_index, bind_media(entries, media_index, directory)


__all__ = [
    "MediaHandle",
    "MediaBinding",
    "parse_media_index",
    "bind_media",
    "load_media",
    "MEDIA_INDEX_ENTRY",
]
