"""Public package surface for Scrapi Webtoons."""
from .base36 import InvalidDigit
from .client import (
    BASE_URL,
    DEFAULT_USER_AGENT,
    EpisodeRef,
    Page,
    PageFetcher,
    PinMode,
    WebtoonsFetcher,
    build_session,
    fetch_json,
)
from .engine import PaginationEngine, PostStream, ReplyResolver, StreamState
from .errors import (
    IdFormatError,
    InvalidScopeLetter,
    MissingMarker,
    NonNumericComponent,
    PageFetchError,
    RateLimitedError,
    RecordDecodeError,
    StickerFormatError,
    UnknownFlareError,
    WrongSegmentCount,
    ZeroSequence,
)
from .export import ExportOptions, flatten_post_record, format_timestamp, process_episode
from .ids import EntityId, Scope
from .models import (
    Giphy,
    PinnedSet,
    PostBody,
    Poster,
    PostRecord,
    Posts,
    PostSet,
    Reaction,
    Sticker,
    WebtoonLinks,
)

__version__ = "0.1.0"

__all__ = [
    "BASE_URL",
    "DEFAULT_USER_AGENT",
    "EntityId",
    "EpisodeRef",
    "ExportOptions",
    "Giphy",
    "IdFormatError",
    "InvalidDigit",
    "InvalidScopeLetter",
    "MissingMarker",
    "NonNumericComponent",
    "Page",
    "PageFetchError",
    "PageFetcher",
    "PaginationEngine",
    "PinMode",
    "PinnedSet",
    "PostBody",
    "PostRecord",
    "PostSet",
    "PostStream",
    "Poster",
    "Posts",
    "RateLimitedError",
    "Reaction",
    "RecordDecodeError",
    "ReplyResolver",
    "Scope",
    "Sticker",
    "StickerFormatError",
    "StreamState",
    "UnknownFlareError",
    "WebtoonLinks",
    "WebtoonsFetcher",
    "WrongSegmentCount",
    "ZeroSequence",
    "build_session",
    "fetch_json",
    "flatten_post_record",
    "format_timestamp",
    "process_episode",
    "__version__",
]
