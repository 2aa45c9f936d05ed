"""Page fetching for the webtoons.com community (comment) API."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import requests

from .errors import PageFetchError, RateLimitedError
from .ids import EntityId, Scope

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
BASE_URL = "https://www.webtoons.com"
API_ROOT = f"{BASE_URL}/p/api/community"
MAX_PAGE_SIZE = 100
SERVICE_TICKET = "epicom"
RATE_LIMIT_WAIT_SECONDS = 60
MAX_RATE_LIMIT_WAITS = 5


class PinMode(Enum):
    """How the API should represent pinned (top) comments."""

    NONE = "none"
    DISTINCT = "distinct"


@dataclass(frozen=True, slots=True)
class EpisodeRef:
    """One episode of a webtoon, the unit whose comments are paginated."""

    scope: Scope
    webtoon: int
    episode: int

    @property
    def page_id(self) -> str:
        return f"{self.scope.value}_{self.webtoon}_{self.episode}"

    def __str__(self) -> str:
        return self.page_id


@dataclass(slots=True)
class Page:
    """One page of raw post records as returned by the API."""

    records: list[dict[str, Any]]
    next_cursor: str | None = None
    pinned: list[dict[str, Any]] = field(default_factory=list)
    active_post_count: int = 0
    active_root_post_count: int = 0


class PageFetcher(Protocol):
    def fetch_page(
        self,
        episode: EpisodeRef,
        cursor: str | None,
        page_size: int,
        pin_mode: PinMode,
    ) -> Page:
        """Fetch one page of top-level posts. ``pinned`` is only filled for ``PinMode.DISTINCT``."""

    def fetch_replies(self, post_id: EntityId, cursor: str | None, page_size: int) -> Page:
        """Fetch one page of replies to ``post_id``, oldest first."""


def clamp_page_size(page_size: int) -> int:
    return max(1, min(int(page_size), MAX_PAGE_SIZE))


def build_session(user_agent: str, verify: bool, session_token: str | None = None) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": user_agent,
            "Accept": "application/json, text/javascript, */*; q=0.01",
            "Accept-Language": "en-US,en;q=0.8",
            "Referer": f"{BASE_URL}/",
            "Connection": "keep-alive",
            "Service-Ticket-Id": SERVICE_TICKET,
        }
    )
    if session_token:
        session.cookies.set("NEO_SES", session_token, domain=".webtoons.com")
    session.verify = verify
    return session


def fetch_json(
    session: requests.Session,
    url: str,
    *,
    params: dict | None = None,
    retries: int = 3,
    backoff: float = 1.0,
    max_rate_limit_waits: int = MAX_RATE_LIMIT_WAITS,
) -> Any:
    last_exc: Exception | None = None
    attempt = 0
    rate_limit_waits = 0
    wait_seconds = RATE_LIMIT_WAIT_SECONDS
    while attempt < retries:
        try:
            response = session.get(url, params=params, timeout=30)
        except requests.exceptions.RequestException as exc:
            attempt += 1
            last_exc = exc
            if attempt >= retries:
                break
            wait_time = backoff * (2 ** (attempt - 1))
            logger.warning(
                "Request error fetching %s (attempt %d/%d): %s; retrying in %.1f seconds",
                url,
                attempt,
                retries,
                exc,
                wait_time,
            )
            time.sleep(wait_time)
            continue

        if response.status_code == 429:
            if rate_limit_waits >= max_rate_limit_waits:
                raise RateLimitedError(
                    f"Still rate limited fetching {url!r} after {rate_limit_waits} wait(s)"
                )
            rate_limit_waits += 1
            logger.warning(
                "Rate limited fetching %s; waiting %d seconds before retrying.",
                url,
                wait_seconds,
            )
            time.sleep(wait_seconds)
            wait_seconds += RATE_LIMIT_WAIT_SECONDS
            continue

        attempt += 1

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            last_exc = exc
            if attempt >= retries:
                break
            wait_time = backoff * (2 ** (attempt - 1))
            logger.warning(
                "HTTP error fetching %s (attempt %d/%d): %s; retrying in %.1f seconds",
                url,
                attempt,
                retries,
                exc,
                wait_time,
            )
            time.sleep(wait_time)
            continue

        try:
            return response.json()
        except ValueError as exc:
            last_exc = exc
            if attempt >= retries:
                break
            wait_time = backoff * (2 ** (attempt - 1))
            logger.warning(
                "Failed to decode JSON from %s (attempt %d/%d): %s; retrying in %.1f seconds",
                url,
                attempt,
                retries,
                exc,
                wait_time,
            )
            time.sleep(wait_time)
            continue
    raise PageFetchError(f"Failed to fetch {url!r}: {last_exc}") from last_exc


def parse_page(payload: Any, *, url: str = "") -> Page:
    """Turn an API envelope into a :class:`Page`."""
    if not isinstance(payload, dict) or payload.get("status") != "success":
        status = payload.get("status") if isinstance(payload, dict) else type(payload).__name__
        raise PageFetchError(f"Unexpected response from {url!r}: status={status!r}")
    result = payload.get("result")
    if not isinstance(result, dict):
        raise PageFetchError(f"Response from {url!r} has no `result` object")

    pagination = result.get("pagination") or {}
    next_cursor = pagination.get("next") or None
    return Page(
        records=list(result.get("posts") or []),
        next_cursor=str(next_cursor) if next_cursor else None,
        pinned=list(result.get("tops") or []),
        active_post_count=int(result.get("activePostCount") or 0),
        active_root_post_count=int(result.get("activeRootPostCount") or 0),
    )


class WebtoonsFetcher:
    """:class:`PageFetcher` backed by a ``requests`` session."""

    def __init__(
        self,
        session: requests.Session,
        *,
        delay: float = 0.0,
        retries: int = 3,
        backoff: float = 1.0,
    ) -> None:
        self.session = session
        self.delay = max(0.0, delay)
        self.retries = retries
        self.backoff = backoff
        self.requests_made = 0

    def _get_page(self, url: str, params: dict[str, Any]) -> Page:
        if self.delay and self.requests_made:
            time.sleep(self.delay)
        self.requests_made += 1
        payload = fetch_json(
            self.session,
            url,
            params=params,
            retries=self.retries,
            backoff=self.backoff,
        )
        return parse_page(payload, url=url)

    def fetch_page(
        self,
        episode: EpisodeRef,
        cursor: str | None,
        page_size: int,
        pin_mode: PinMode,
    ) -> Page:
        size = clamp_page_size(page_size)
        if pin_mode is PinMode.DISTINCT:
            # The pinned view is first-page only and ignores cursors.
            url = f"{API_ROOT}/v1/page/{episode.page_id}/posts/search"
            params = {
                "pinRepresentation": PinMode.DISTINCT.value,
                "prevSize": 0,
                "nextSize": size,
            }
        else:
            url = f"{API_ROOT}/v2/posts"
            params = {
                "pageId": episode.page_id,
                "pinRepresentation": PinMode.NONE.value,
                "prevSize": 0,
                "nextSize": size,
                "cursor": cursor or "",
                "withCursor": "true",
            }
        page = self._get_page(url, params)
        logger.debug(
            "Fetched %d post(s) for %s (cursor=%s, pin=%s, next=%s)",
            len(page.records),
            episode,
            cursor,
            pin_mode.value,
            page.next_cursor,
        )
        return page

    def fetch_replies(self, post_id: EntityId, cursor: str | None, page_size: int) -> Page:
        url = f"{API_ROOT}/v2/post/{post_id.format()}/child-posts"
        params = {
            "sort": "oldest",
            "displayBlindCommentAsService": "false",
            "prevSize": 0,
            "nextSize": clamp_page_size(page_size),
            "cursor": cursor or "",
            "withCursor": "false",
        }
        page = self._get_page(url, params)
        logger.debug(
            "Fetched %d repl(ies) for %s (cursor=%s, next=%s)",
            len(page.records),
            post_id,
            cursor,
            page.next_cursor,
        )
        return page

    def comments_and_replies(self, episode: EpisodeRef) -> tuple[int, int]:
        """Return the active ``(comments, replies)`` counts of an episode."""
        page = self.fetch_page(episode, None, 1, PinMode.NONE)
        comments = page.active_root_post_count
        return comments, max(page.active_post_count - comments, 0)

    def episode_exists(self, episode: EpisodeRef) -> bool:
        params = {
            "pageId": episode.page_id,
            "pinRepresentation": PinMode.NONE.value,
            "prevSize": 0,
            "nextSize": 1,
            "cursor": "",
            "withCursor": "true",
        }
        try:
            response = self.session.get(f"{API_ROOT}/v2/posts", params=params, timeout=30)
        except requests.exceptions.RequestException as exc:
            raise PageFetchError(f"Failed to check {episode}: {exc}") from exc
        return response.status_code != 404


__all__ = [
    "API_ROOT",
    "BASE_URL",
    "DEFAULT_USER_AGENT",
    "EpisodeRef",
    "MAX_PAGE_SIZE",
    "Page",
    "PageFetcher",
    "PinMode",
    "WebtoonsFetcher",
    "build_session",
    "clamp_page_size",
    "fetch_json",
    "parse_page",
]
