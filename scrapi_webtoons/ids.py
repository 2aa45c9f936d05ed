"""Post id codec.

Ids look like ``GW-epicom:0-w_95_1-1d-z``:

* ``GW-epicom`` is a namespace marker (``epicom`` = episode comment).
* ``0`` is an undocumented tag that is kept for round-tripping.
* ``w_95_1`` is the page id: scope letter, webtoon id and episode number.
* ``1d`` is the base36 position of the top-level post within the episode.
* ``z`` is present only for replies and is the base36 position of the reply
  under its post.

Both positions start at 1 and grow chronologically, which gives ids of the
same episode a total order.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from . import base36
from .errors import (
    InvalidScopeLetter,
    MissingMarker,
    NonNumericComponent,
    WrongSegmentCount,
    ZeroSequence,
)

MARKER = "GW-epicom"
_NUMBER_RE = re.compile(r"[0-9]+")
_LEGACY_PREFIX_RE = re.compile(r"[0-9]+:[0-9]+:")


class Scope(str, Enum):
    """Content category of a webtoon, encoded as a single letter."""

    ORIGINAL = "w"
    CANVAS = "c"

    @classmethod
    def from_letter(cls, letter: str) -> "Scope":
        for scope in cls:
            if scope.value == letter:
                return scope
        raise ValueError(f"unknown scope letter: {letter!r}")


def _parse_number(text: str, part: str, label: str) -> int:
    if not _NUMBER_RE.fullmatch(part):
        raise NonNumericComponent(text, f"{label} `{part}` is not a non-negative integer")
    return int(part)


def _parse_position(text: str, part: str, label: str) -> int:
    try:
        value = base36.decode(part)
    except base36.InvalidDigit as exc:
        raise NonNumericComponent(text, f"{label} `{part}` is not base36: {exc}") from exc
    if value == 0:
        raise ZeroSequence(text, f"{label} `{part}` decodes to 0, positions start at 1")
    return value


@dataclass(frozen=True, slots=True)
class EntityId:
    """Identifier of a top-level post or a reply on one episode."""

    tag: int
    scope: Scope
    webtoon: int
    episode: int
    sequence: int
    sub_sequence: int | None = None

    def __post_init__(self) -> None:
        if self.tag < 0 or self.webtoon < 0 or self.episode < 0:
            raise ValueError("tag, webtoon and episode must be non-negative")
        if self.sequence < 1:
            raise ValueError(f"sequence must be at least 1, got {self.sequence}")
        if self.sub_sequence is not None and self.sub_sequence < 1:
            raise ValueError(f"sub_sequence must be at least 1, got {self.sub_sequence}")

    @classmethod
    def parse(cls, text: str) -> "EntityId":
        start = text.find(MARKER)
        if start == -1:
            raise MissingMarker(text, f"`{MARKER}` does not appear in the id")
        # Some responses prefix the id with an unexplained `<int>:<int>:`.
        prefix = text[:start]
        if prefix and not _LEGACY_PREFIX_RE.fullmatch(prefix):
            raise WrongSegmentCount(text, f"`{prefix}` before `{MARKER}` is not a `<int>:<int>:` prefix")
        canonical = text[start:]

        namespace_parts = canonical.split(":")
        if len(namespace_parts) != 2:
            raise WrongSegmentCount(
                text,
                f"splitting on `:` should yield 2 parts, but yielded {len(namespace_parts)}",
            )
        if namespace_parts[0] != MARKER:
            raise MissingMarker(text, f"namespace `{namespace_parts[0]}` is not `{MARKER}`")
        data = namespace_parts[1]

        parts = data.split("-")
        if not 3 <= len(parts) <= 4:
            raise WrongSegmentCount(
                text,
                f"splitting on `-` should yield 3 or 4 parts, but yielded {len(parts)}",
            )

        tag = _parse_number(text, parts[0], "tag")

        page_parts = parts[1].split("_")
        if len(page_parts) != 3:
            raise WrongSegmentCount(
                text,
                f"page id should consist of 3 parts, (w|c)_(\\d+)_(\\d+), but `{parts[1]}` has {len(page_parts)}",
            )
        letter, webtoon_part, episode_part = page_parts
        try:
            scope = Scope.from_letter(letter)
        except ValueError as exc:
            raise InvalidScopeLetter(text, f"`{letter}` is neither `w` nor `c`") from exc

        webtoon = _parse_number(text, webtoon_part, "webtoon id")
        episode = _parse_number(text, episode_part, "episode number")
        sequence = _parse_position(text, parts[2], "post position")
        sub_sequence = None
        if len(parts) == 4:
            sub_sequence = _parse_position(text, parts[3], "reply position")

        return cls(
            tag=tag,
            scope=scope,
            webtoon=webtoon,
            episode=episode,
            sequence=sequence,
            sub_sequence=sub_sequence,
        )

    def format(self) -> str:
        text = (
            f"{MARKER}:{self.tag}-{self.scope.value}_{self.webtoon}_{self.episode}"
            f"-{base36.encode(self.sequence)}"
        )
        if self.sub_sequence is not None:
            text += f"-{base36.encode(self.sub_sequence)}"
        return text

    def __str__(self) -> str:
        return self.format()

    @property
    def page_id(self) -> str:
        return f"{self.scope.value}_{self.webtoon}_{self.episode}"

    @property
    def is_reply(self) -> bool:
        return self.sub_sequence is not None

    @property
    def is_comment(self) -> bool:
        return self.sub_sequence is None

    def parent(self) -> "EntityId":
        """Return the id of the top-level post this id belongs to."""
        if self.sub_sequence is None:
            return self
        return EntityId(
            tag=self.tag,
            scope=self.scope,
            webtoon=self.webtoon,
            episode=self.episode,
            sequence=self.sequence,
        )

    def sort_key(self) -> tuple[int, bool, int]:
        return (self.sequence, self.sub_sequence is not None, self.sub_sequence or 0)

    def compare(self, other: "EntityId") -> int | None:
        """Chronological comparison of two ids.

        Returns -1, 0 or 1, or ``None`` when the ids belong to different
        episodes and have no meaningful order. ``tag`` is ignored.
        """
        if (self.scope, self.webtoon, self.episode) != (other.scope, other.webtoon, other.episode):
            return None
        mine = self.sort_key()
        theirs = other.sort_key()
        if mine < theirs:
            return -1
        if mine > theirs:
            return 1
        return 0

    def _ordered(self, other: object) -> int:
        if not isinstance(other, EntityId):
            return NotImplemented
        result = self.compare(other)
        if result is None:
            raise TypeError(f"{self} and {other} belong to different episodes and cannot be ordered")
        return result

    def __lt__(self, other: object) -> bool:
        result = self._ordered(other)
        return result if result is NotImplemented else result < 0

    def __le__(self, other: object) -> bool:
        result = self._ordered(other)
        return result if result is NotImplemented else result <= 0

    def __gt__(self, other: object) -> bool:
        result = self._ordered(other)
        return result if result is NotImplemented else result > 0

    def __ge__(self, other: object) -> bool:
        result = self._ordered(other)
        return result if result is NotImplemented else result >= 0


__all__ = ["EntityId", "MARKER", "Scope"]
