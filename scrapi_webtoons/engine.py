"""Comment pagination: bulk collection, lazy streaming and reply resolution."""
from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Iterator

from .client import MAX_PAGE_SIZE, EpisodeRef, Page, PageFetcher, PinMode
from .errors import PageFetchError
from .ids import EntityId
from .models import PinnedSet, PostRecord, Posts, PostSet

logger = logging.getLogger(__name__)

# The pinned view returns every top comment regardless of page size.
PIN_PAGE_SIZE = 1


def _paginate(fetch: Callable[[str | None], Page]) -> Iterator[Page]:
    """Yield pages from ``fetch`` until the server stops returning a cursor."""
    cursor: str | None = None
    seen: set[str] = set()
    while True:
        page = fetch(cursor)
        yield page
        if page.next_cursor is None:
            return
        if cursor is not None:
            seen.add(cursor)
        if page.next_cursor in seen:
            raise PageFetchError(f"Pagination cursor {page.next_cursor!r} was already visited")
        cursor = page.next_cursor


def _decode(raws: list[dict]) -> list[PostRecord]:
    return [PostRecord.from_raw(raw) for raw in raws]


class StreamState(Enum):
    NOT_STARTED = "not_started"
    STREAMING = "streaming"
    EXHAUSTED = "exhausted"


class PostStream:
    """Lazily walks an episode's top-level comments, newest first.

    Only one page of records is held at a time. A record repeated from the
    previous page is skipped. Records are never marked as pinned; use
    :meth:`is_pinned`, which consults the pinned set fetched on the first
    call to :meth:`next`.

    A stream serves a single consumer. Concurrent calls to :meth:`next`
    must be serialised by the caller. If a fetch fails, the exception
    propagates and the stream keeps its previous state and cursor, so the
    next call retries the same page.
    """

    def __init__(self, fetcher: PageFetcher, episode: EpisodeRef, *, page_size: int = MAX_PAGE_SIZE) -> None:
        self._fetcher = fetcher
        self._episode = episode
        self._page_size = page_size
        self._state = StreamState.NOT_STARTED
        # Tail is the next record to emit.
        self._buffer: list[PostRecord] = []
        self._cursor: str | None = None
        self._visited: set[str] = set()
        # Ids of the last loaded page; adjacent pages may overlap.
        self._previous_ids: frozenset[EntityId] = frozenset()
        self._pinned: PinnedSet | None = None

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def pinned(self) -> PinnedSet | None:
        return self._pinned

    def is_pinned(self, post_id: EntityId) -> bool:
        """Whether ``post_id`` is a top comment. Always ``False`` before the first :meth:`next`."""
        return self._pinned is not None and post_id in self._pinned

    def _load(self, cursor: str | None) -> None:
        page = self._fetcher.fetch_page(self._episode, cursor, self._page_size, PinMode.NONE)
        if page.next_cursor is not None and (page.next_cursor == cursor or page.next_cursor in self._visited):
            raise PageFetchError(f"Pagination cursor {page.next_cursor!r} was already visited")
        decoded = _decode(page.records)
        fresh: list[PostRecord] = []
        seen: set[EntityId] = set(self._previous_ids)
        for record in decoded:
            if record.id not in seen:
                seen.add(record.id)
                fresh.append(record)
        fresh.reverse()

        self._buffer = fresh
        self._cursor = page.next_cursor
        if decoded:
            self._previous_ids = frozenset(record.id for record in decoded)
        if cursor is not None:
            self._visited.add(cursor)

    def next(self) -> PostRecord | None:
        """Return the next record, or ``None`` once every page is consumed."""
        while True:
            if self._state is StreamState.EXHAUSTED:
                return None

            if self._state is StreamState.NOT_STARTED:
                if self._pinned is None:
                    page = self._fetcher.fetch_page(self._episode, None, PIN_PAGE_SIZE, PinMode.DISTINCT)
                    self._pinned = PinnedSet.from_records(_decode(page.pinned))
                self._load(None)
                self._state = StreamState.STREAMING
                continue

            if self._buffer:
                return self._buffer.pop()

            if self._cursor is None:
                self._state = StreamState.EXHAUSTED
                logger.debug("Comment stream for %s exhausted", self._episode)
                return None

            self._load(self._cursor)

    def last(self) -> PostRecord | None:
        """Drain the stream and return its final record (the oldest comment)."""
        last: PostRecord | None = None
        while True:
            record = self.next()
            if record is None:
                return last
            last = record

    def __iter__(self) -> "PostStream":
        return self

    def __next__(self) -> PostRecord:
        record = self.next()
        if record is None:
            raise StopIteration
        return record


class PaginationEngine:
    """Retrieves the top-level comments of one episode."""

    def __init__(self, fetcher: PageFetcher, episode: EpisodeRef, *, page_size: int = MAX_PAGE_SIZE) -> None:
        self.fetcher = fetcher
        self.episode = episode
        self.page_size = page_size

    def _pages(self) -> Iterator[Page]:
        return _paginate(
            lambda cursor: self.fetcher.fetch_page(self.episode, cursor, self.page_size, PinMode.NONE)
        )

    def _fetch_pinned(self) -> tuple[PinnedSet, list[PostRecord]]:
        page = self.fetcher.fetch_page(self.episode, None, PIN_PAGE_SIZE, PinMode.DISTINCT)
        records = [PostRecord.from_raw(raw, pinned=True) for raw in page.pinned]
        pinned = PinnedSet.from_records(records)
        return pinned, [record for record in records if record.id in pinned]

    def collect(self) -> Posts:
        """Fetch every comment, deduplicated and sorted newest first.

        Normal pages do not say which comments are pinned, so the pinned view
        is consulted and its records overwrite (or add to) the collected ones.
        """
        initial_pinned, _ = self._fetch_pinned()

        posts = PostSet()
        pages = 0
        duplicates = 0
        for page in self._pages():
            pages += 1
            for record in _decode(page.records):
                if not posts.add(record):
                    duplicates += 1
        if duplicates:
            logger.debug("Ignored %d duplicate post(s) across pages of %s", duplicates, self.episode)

        pinned, pinned_records = self._fetch_pinned()
        if pinned != initial_pinned:
            logger.debug("Pinned posts of %s changed while paginating: %r -> %r", self.episode, initial_pinned, pinned)
        for record in pinned_records:
            if record.id not in posts:
                logger.debug("Pinned post %s was not in the paginated results", record.id)
            posts.replace(record)

        result = Posts(posts)
        result.sort_by_newest()
        logger.info(
            "Collected %d comment(s) for %s across %d page(s) (pinned=%d)",
            len(result),
            self.episode,
            pages,
            len(pinned_records),
        )
        return result

    def stream(self) -> PostStream:
        return PostStream(self.fetcher, self.episode, page_size=self.page_size)

    def collect_until_id(self, post_id: EntityId) -> Posts:
        """Fetch comments newer than ``post_id``, newest first.

        If ``post_id`` was deleted without replies it never shows up and every
        page is scanned.
        """
        posts = PostSet()
        for page in self._pages():
            for record in _decode(page.records):
                if record.id == post_id:
                    return self._finish(posts)
                posts.add(record)
        logger.info("Post %s not found on %s; returning all comments", post_id, self.episode)
        return self._finish(posts)

    def collect_since(self, since: datetime) -> Posts:
        """Fetch comments created at or after ``since``, newest first."""
        posts = PostSet()
        for page in self._pages():
            for record in _decode(page.records):
                if record.created_at < since:
                    return self._finish(posts)
                posts.add(record)
        return self._finish(posts)

    @staticmethod
    def _finish(posts: PostSet) -> Posts:
        result = Posts(posts)
        result.sort_by_newest()
        return result


class ReplyResolver:
    """Retrieves the replies of a comment, oldest first."""

    def __init__(self, fetcher: PageFetcher, *, page_size: int = MAX_PAGE_SIZE) -> None:
        self.fetcher = fetcher
        self.page_size = page_size

    def resolve(self, parent: PostRecord) -> Posts:
        if parent.reply_count == 0:
            return Posts()

        replies = PostSet()
        for page in _paginate(lambda cursor: self.fetcher.fetch_replies(parent.id, cursor, self.page_size)):
            for record in _decode(page.records):
                replies.replace(record)

        result = Posts(replies)
        result.sort_by_oldest()
        logger.debug("Resolved %d of %d declared repl(ies) for %s", len(result), parent.reply_count, parent.id)
        return result


__all__ = [
    "PIN_PAGE_SIZE",
    "PaginationEngine",
    "PostStream",
    "ReplyResolver",
    "StreamState",
]
