"""
deckloader.archive
---------

This module reads the ZIP container of an .apkg package.

An .apkg file is a ZIP archive holding a collection database
(collection.anki21b, collection.anki21 or collection.anki2), a media index named
"media" and one entry per media file, named by its numeric key.
"""

from __future__ import annotations
import io
import logging
import zipfile
import zlib
from deckloader.errors import ArchiveCorrupt, InvalidInput
from deckloader.stage import DecodeStage

logger = logging.getLogger(__name__)

PACKAGE_SUFFIX = ".apkg"
MAX_PACKAGE_SIZE = 300 * 1024 * 1024


def validate_package(
    size: int, filename: str | None = None, max_size: int = MAX_PACKAGE_SIZE
) -> None:
    """
    Checks a package before decoding starts.

    Args:
        size: The size of the package in bytes.
        filename: The name the package was uploaded under, if known.
        max_size: The largest accepted package, in bytes.

    Raises:
        InvalidInput: If the filename does not end in .apkg or the package is larger than `max_size`.
    """

    if filename is not None and not filename.lower().endswith(PACKAGE_SUFFIX):
        raise InvalidInput(
            f"Only {PACKAGE_SUFFIX} files can be loaded, got {filename!r}",
            stage=DecodeStage.Read,
        )

    if size > max_size:
        raise InvalidInput(
            f"Package is {size / 1024 / 1024:.2f} MB, the limit is {max_size / 1024 / 1024:.0f} MB",
            stage=DecodeStage.Read,
        )


def read_archive(data: bytes) -> dict[str, bytes]:
    """
    Decompresses every file entry of a ZIP archive held in memory.

    Args:
        data: The raw bytes of the archive.

    Returns:
        dict[str, bytes]: A mapping from entry name to decompressed contents.

    Raises:
        ArchiveCorrupt: If `data` is not a ZIP archive or an entry fails its integrity check.
    """

    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, OSError, ValueError) as exc:
        raise ArchiveCorrupt(
            "The file is not a valid .apkg archive", stage=DecodeStage.Unpack
        ) from exc

    entries: dict[str, bytes] = {}
    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            try:
                # ZipFile.read checks the CRC of the entry
                entries[info.filename] = archive.read(info)
            except (
                zipfile.BadZipFile,
                zlib.error,
                EOFError,
                NotImplementedError,
                OSError,
            ) as exc:
                raise ArchiveCorrupt(
                    "An archive entry could not be decompressed",
                    stage=DecodeStage.Unpack,
                    entry=info.filename,
                ) from exc

    logger.debug(f"Unpacked {len(entries)} archive entries")
    return entries


__all__ = ["read_archive", "validate_package", "MAX_PACKAGE_SIZE", "PACKAGE_SUFFIX"]
