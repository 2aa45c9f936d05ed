"""Exception hierarchy for Scrapi Webtoons."""
from __future__ import annotations


class IdFormatError(ValueError):
    """Raised when a post id does not follow the ``GW-epicom`` layout."""

    stage = "format"

    def __init__(self, text: str, context: str) -> None:
        super().__init__(f"failed to parse `{text}` into `EntityId`: {context}")
        self.text = text
        self.context = context


class MissingMarker(IdFormatError):
    stage = "marker"


class WrongSegmentCount(IdFormatError):
    stage = "segments"


class InvalidScopeLetter(IdFormatError):
    stage = "scope"


class NonNumericComponent(IdFormatError):
    stage = "number"


class ZeroSequence(IdFormatError):
    stage = "sequence"


class PageFetchError(RuntimeError):
    """Raised when a page of posts cannot be fetched or decoded."""


class RateLimitedError(PageFetchError):
    """The server kept throttling; the same cursor can be retried later."""


class RecordDecodeError(PageFetchError):
    """A raw post record is missing data the model requires."""


class UnknownFlareError(ValueError):
    """A post section carries a discriminant this library does not know."""


class StickerFormatError(ValueError):
    """A sticker id could not be split into pack, version and number."""

    def __init__(self, sticker_id: str, context: str) -> None:
        super().__init__(f"Failed to parse `{sticker_id}` into `Sticker`: {context}")
        self.sticker_id = sticker_id


__all__ = [
    "IdFormatError",
    "InvalidScopeLetter",
    "MissingMarker",
    "NonNumericComponent",
    "PageFetchError",
    "RateLimitedError",
    "RecordDecodeError",
    "StickerFormatError",
    "UnknownFlareError",
    "WrongSegmentCount",
    "ZeroSequence",
]
