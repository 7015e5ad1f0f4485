"""
deckloader
---------

Deckloader decodes Anki .apkg packages into decks of notes, note types and media,
and schedules their review with the SM-2 spaced repetition algorithm.
"""

from deckloader.decoder import Decoder, DecodeEvent, decode_package
from deckloader.deck import Deck
from deckloader.stage import DecodeStage
from deckloader.models import CardRecord, FieldSlot, NoteTypeSchema
from deckloader.media import MediaBinding, MediaHandle
from deckloader.fields import MediaKind, MediaRef, extract_media_refs, strip_html
from deckloader.scheduler import Scheduler, DeckStats, format_interval
from deckloader.card_state import CardState
from deckloader.state import State
from deckloader.quality import Quality
from deckloader.review_log import ReviewLog
from deckloader.storage import (
    StudyData,
    StudyStore,
    MemoryStore,
    JsonFileStore,
    generate_deck_id,
)
from deckloader.session import StudySession
from deckloader.errors import (
    DeckLoaderError,
    InvalidInput,
    ArchiveCorrupt,
    StoreNotFound,
    StoreQueryFailed,
    SchemaParseFailed,
    MediaIndexParseFailed,
    PersistenceUnavailable,
)
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from deckloader.progress import TqdmProgress


# lazy load the TqdmProgress module due to its optional dependency
def __getattr__(name: str) -> type:
    if name == "TqdmProgress":
        global TqdmProgress
        from deckloader.progress import TqdmProgress

        return TqdmProgress
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "Decoder",
    "DecodeEvent",
    "DecodeStage",
    "decode_package",
    "Deck",
    "CardRecord",
    "FieldSlot",
    "NoteTypeSchema",
    "MediaBinding",
    "MediaHandle",
    "MediaKind",
    "MediaRef",
    "extract_media_refs",
    "strip_html",
    "Scheduler",
    "DeckStats",
    "format_interval",
    "CardState",
    "State",
    "Quality",
    "ReviewLog",
    "StudyData",
    "StudyStore",
    "MemoryStore",
    "JsonFileStore",
    "generate_deck_id",
    "StudySession",
    "DeckLoaderError",
    "InvalidInput",
    "ArchiveCorrupt",
    "StoreNotFound",
    "StoreQueryFailed",
    "SchemaParseFailed",
    "MediaIndexParseFailed",
    "PersistenceUnavailable",
    "TqdmProgress",
]
