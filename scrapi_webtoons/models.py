"""Typed comment and reply records built from raw API posts."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Iterator

from .errors import RecordDecodeError, StickerFormatError, UnknownFlareError
from .ids import EntityId

logger = logging.getLogger(__name__)

BASE_URL = "https://www.webtoons.com"
MAX_PINNED = 3
_NUMBER_RE = re.compile(r"[0-9]+")


class Reaction(Enum):
    """Reaction of the session user to a post. Mutually exclusive."""

    UPVOTE = "upvote"
    DOWNVOTE = "downvote"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class Giphy:
    giphy_id: str

    @property
    def thumbnail(self) -> str:
        return f"https://media2.giphy.com/media/{self.giphy_id}/giphy_s.gif"

    @property
    def render(self) -> str:
        return f"https://media1.giphy.com/media/{self.giphy_id}/giphy.gif"


@dataclass(frozen=True, slots=True)
class Sticker:
    """A sticker such as ``wt_001-v2-1`` (the version part is optional)."""

    pack: str
    pack_number: int
    number: int
    version: int | None = None

    @property
    def pack_id(self) -> str:
        return f"{self.pack}_{self.pack_number:03d}"

    @property
    def sticker_id(self) -> str:
        if self.version is None:
            return f"{self.pack_id}-{self.number}"
        return f"{self.pack_id}-v{self.version}-{self.number}"

    @classmethod
    def from_id(cls, sticker_id: str) -> "Sticker":
        pack, sep, rest = sticker_id.partition("_")
        if not sep:
            raise StickerFormatError(sticker_id, "expected a `_` between pack and number")
        parts = rest.split("-")
        if len(parts) not in (2, 3):
            raise StickerFormatError(sticker_id, f"expected 2 or 3 `-` parts, got {len(parts)}")

        def number(part: str, label: str) -> int:
            if not _NUMBER_RE.fullmatch(part):
                raise StickerFormatError(sticker_id, f"{label} `{part}` is not a number")
            return int(part)

        pack_number = number(parts[0], "pack number")
        version = None
        if len(parts) == 3:
            if not parts[1].startswith("v"):
                raise StickerFormatError(sticker_id, f"version `{parts[1]}` must start with `v`")
            version = number(parts[1][1:], "version")
        return cls(pack=pack, pack_number=pack_number, number=number(parts[-1], "sticker number"), version=version)


@dataclass(frozen=True, slots=True)
class WebtoonLinks:
    """Webtoons referenced by a post, as episode-list paths."""

    paths: tuple[str, ...]

    @property
    def urls(self) -> list[str]:
        return [f"{BASE_URL}{path}" for path in self.paths]


Flare = Giphy | Sticker | WebtoonLinks


def _giphy_from_section(data: dict[str, Any]) -> Giphy:
    return Giphy(giphy_id=str(data["giphyId"]))


def _sticker_from_section(data: dict[str, Any]) -> Sticker:
    return Sticker.from_id(str(data["stickerId"]))


def _links_from_section(data: dict[str, Any]) -> WebtoonLinks:
    return WebtoonLinks(paths=(str(data["info"]["extra"]["episodeListPath"]),))


FLARE_BUILDERS: dict[str, Callable[[dict[str, Any]], Flare]] = {
    "GIPHY": _giphy_from_section,
    "STICKER": _sticker_from_section,
    "CONTENT_META": _links_from_section,
}
SUPER_LIKE = "SUPER_LIKE"


def parse_sections(sections: Iterable[dict[str, Any]]) -> tuple[Flare | None, int | None]:
    """Map a post's section group to its flare and super like count."""
    flares: list[Flare] = []
    super_like: int | None = None
    for section in sections:
        kind = section.get("sectionType")
        data = section.get("data") or {}
        if kind == SUPER_LIKE:
            super_like = int(data.get("superLikeCount", 0))
            continue
        builder = FLARE_BUILDERS.get(kind)
        if builder is None:
            raise UnknownFlareError(f"Unknown post section type: {kind!r}")
        try:
            flares.append(builder(data))
        except (KeyError, TypeError) as exc:
            raise RecordDecodeError(f"Section {kind} is missing data: {exc}") from exc

    if not flares:
        return None, super_like
    if len(flares) == 1:
        return flares[0], super_like
    # Only webtoon links can appear more than once.
    if not all(isinstance(flare, WebtoonLinks) for flare in flares):
        raise RecordDecodeError(f"Only CONTENT_META sections may repeat, got {flares!r}")
    paths = tuple(path for flare in flares for path in flare.paths)
    return WebtoonLinks(paths=paths), super_like


@dataclass(frozen=True, slots=True)
class PostBody:
    contents: str
    is_spoiler: bool = False
    flare: Flare | None = None


@dataclass(frozen=True, slots=True)
class Poster:
    cuid: str
    username: str
    profile_url: str = ""
    is_creator: bool = False
    is_page_owner: bool = False
    is_blocked: bool = False
    super_like: int | None = None

    @property
    def did_super_like_episode(self) -> bool:
        return self.super_like is not None


def _from_millis(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def _require(raw: dict[str, Any], key: str) -> Any:
    value = raw.get(key)
    if value is None:
        raise RecordDecodeError(f"Post record is missing `{key}`: {raw.get('id')!r}")
    return value


@dataclass(frozen=True, slots=True, eq=False)
class PostRecord:
    """A comment or a reply.

    Two records are equal when their ids are equal; every other field is
    content that may change between observations of the same post.
    """

    id: EntityId
    parent_id: EntityId
    created_at: datetime
    deleted: bool = False
    reply_count: int = 0
    pinned: bool = False
    body: PostBody = field(default_factory=lambda: PostBody(contents=""))
    poster: Poster | None = None
    upvotes: int = 0
    downvotes: int = 0
    reaction: Reaction = Reaction.NONE
    updated_at: datetime | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PostRecord):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def is_comment(self) -> bool:
        return self.id == self.parent_id

    @property
    def is_reply(self) -> bool:
        return not self.is_comment

    def with_pinned(self, pinned: bool = True) -> "PostRecord":
        return replace(self, pinned=pinned)

    @classmethod
    def from_raw(cls, raw: dict[str, Any], *, pinned: bool = False) -> "PostRecord":
        post_id = EntityId.parse(str(_require(raw, "id")))
        parent_id = EntityId.parse(str(_require(raw, "rootId")))
        try:
            created_at = _from_millis(_require(raw, "createdAt"))
            updated_at = _from_millis(raw["updatedAt"]) if raw.get("updatedAt") is not None else None
        except (TypeError, ValueError, OverflowError) as exc:
            raise RecordDecodeError(f"Post {post_id} has an invalid timestamp: {exc}") from exc

        upvotes = downvotes = 0
        liked = disliked = False
        reactions = raw.get("reactions") or []
        if reactions:
            for emotion in reactions[0].get("emotions") or []:
                if emotion.get("emotionId") == "like":
                    upvotes = int(emotion.get("count", 0))
                    liked = bool(emotion.get("reacted"))
                elif emotion.get("emotionId") == "dislike":
                    downvotes = int(emotion.get("count", 0))
                    disliked = bool(emotion.get("reacted"))
        if liked:
            reaction = Reaction.UPVOTE
        elif disliked:
            reaction = Reaction.DOWNVOTE
        else:
            reaction = Reaction.NONE

        sections = (raw.get("sectionGroup") or {}).get("sections") or []
        flare, super_like = parse_sections(sections)
        settings = raw.get("settings") or {}

        poster = None
        created_by = raw.get("createdBy")
        if isinstance(created_by, dict):
            restriction = created_by.get("restriction") or {}
            poster = Poster(
                cuid=str(created_by.get("cuid") or ""),
                username=str(created_by.get("name") or ""),
                profile_url=str(created_by.get("profileUrl") or ""),
                is_creator=bool(created_by.get("isCreator")),
                is_page_owner=bool(created_by.get("isPageOwner")),
                is_blocked=bool(restriction.get("isWritePostRestricted")),
                super_like=super_like,
            )

        return cls(
            id=post_id,
            parent_id=parent_id,
            created_at=created_at,
            deleted=raw.get("status") == "DELETE",
            reply_count=int(raw.get("childPostCount") or 0),
            pinned=pinned,
            body=PostBody(
                contents=str(raw.get("body") or ""),
                is_spoiler=settings.get("spoilerFilter") == "ON",
                flare=flare,
            ),
            poster=poster,
            upvotes=upvotes,
            downvotes=downvotes,
            reaction=reaction,
            updated_at=updated_at,
        )


class PostSet:
    """Working set of records keyed by id.

    ``add`` keeps the first record seen for an id, ``replace`` keeps the
    latest.
    """

    def __init__(self) -> None:
        self._records: dict[EntityId, PostRecord] = {}

    def add(self, record: PostRecord) -> bool:
        if record.id in self._records:
            return False
        self._records[record.id] = record
        return True

    def replace(self, record: PostRecord) -> None:
        self._records.pop(record.id, None)
        self._records[record.id] = record

    def get(self, post_id: EntityId) -> PostRecord | None:
        return self._records.get(post_id)

    def values(self) -> list[PostRecord]:
        return list(self._records.values())

    def __contains__(self, item: object) -> bool:
        if isinstance(item, PostRecord):
            item = item.id
        return item in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[PostRecord]:
        return iter(self._records.values())


class PinnedSet:
    """The (at most three) top comments of an episode, in server order."""

    __slots__ = ("_ids",)

    def __init__(self, ids: Iterable[EntityId] = ()) -> None:
        ids = tuple(ids)
        if len(ids) > MAX_PINNED:
            logger.warning("Received %d pinned posts, keeping the first %d", len(ids), MAX_PINNED)
            ids = ids[:MAX_PINNED]
        self._ids = ids

    @classmethod
    def from_records(cls, records: Iterable[PostRecord]) -> "PinnedSet":
        return cls(record.id for record in records)

    @property
    def ids(self) -> tuple[EntityId, ...]:
        return self._ids

    def __contains__(self, item: object) -> bool:
        return item in self._ids

    def __iter__(self) -> Iterator[EntityId]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PinnedSet):
            return NotImplemented
        return self._ids == other._ids

    def __repr__(self) -> str:
        return f"PinnedSet({[str(post_id) for post_id in self._ids]!r})"


class Posts:
    """Ordered collection of records returned by bulk retrieval."""

    def __init__(self, records: Iterable[PostRecord] = ()) -> None:
        self._records = list(records)

    def __iter__(self) -> Iterator[PostRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> PostRecord:
        return self._records[index]

    def __repr__(self) -> str:
        return f"Posts({len(self._records)} records)"

    def filter(self, predicate: Callable[[PostRecord], bool]) -> "Posts":
        return Posts(record for record in self._records if predicate(record))

    def ids(self) -> list[EntityId]:
        return [record.id for record in self._records]

    def sort_by_newest(self) -> None:
        self._records.sort(key=_chronological_key, reverse=True)

    def sort_by_oldest(self) -> None:
        self._records.sort(key=_chronological_key)

    def sort_by_upvotes(self) -> None:
        self._records.sort(key=lambda record: record.upvotes, reverse=True)


def _chronological_key(record: PostRecord) -> tuple[datetime, tuple[int, bool, int]]:
    # Posts can share a timestamp; the id position breaks the tie.
    return (record.created_at, record.id.sort_key())


__all__ = [
    "BASE_URL",
    "FLARE_BUILDERS",
    "Flare",
    "Giphy",
    "MAX_PINNED",
    "PinnedSet",
    "PostBody",
    "PostRecord",
    "PostSet",
    "Poster",
    "Posts",
    "Reaction",
    "Sticker",
    "WebtoonLinks",
    "parse_sections",
]
