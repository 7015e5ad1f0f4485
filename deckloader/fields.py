"""
deckloader.fields
---------

This module finds the media a field refers to and reduces field markup to plain text.

Fields reference images with HTML tags (<img src="cat.jpg">) and audio with
sound directives ([sound:meow.mp3]).
"""

from __future__ import annotations
from enum import Enum
import re
from typing import NamedTuple

# tag names are case-insensitive in HTML, the sound directive is always lowercase
_IMAGE_PATTERN = r"""(?i:<img\s[^>]*?src\s*=\s*["']([^"']+)["'][^>]*?>)"""
_SOUND_PATTERN = r"\[sound:([^\]]+)\]"

RE_MEDIA_REF = re.compile(f"{_IMAGE_PATTERN}|{_SOUND_PATTERN}")
RE_SOUND_REF = re.compile(_SOUND_PATTERN)
RE_HTML_TAG = re.compile(r"<[^>]+>")


class MediaKind(Enum):
    Image = "image"
    Audio = "audio"


class MediaRef(NamedTuple):
    kind: MediaKind
    filename: str


def extract_media_refs(field: str) -> list[MediaRef]:
    """
    Lists every image and audio reference of a field, in document order.

    Args:
        field: The raw field value.

    Returns:
        list[MediaRef]: One entry per reference. Repeated references are reported each time.
    """

    refs = []
    for match in RE_MEDIA_REF.finditer(field):
        image, audio = match.groups()
        if image is not None:
            refs.append(MediaRef(MediaKind.Image, image))
        else:
            refs.append(MediaRef(MediaKind.Audio, audio))
    return refs


def strip_html(field: str) -> str:
    """
    Removes sound directives and every HTML tag from a field.

    The remaining text is returned as is: entities are not decoded and whitespace is not trimmed.
    """

    return RE_HTML_TAG.sub("", RE_SOUND_REF.sub("", field))


__all__ = ["MediaKind", "MediaRef", "extract_media_refs", "strip_html"]
