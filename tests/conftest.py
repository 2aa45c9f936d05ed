from __future__ import annotations

from typing import Any

import pytest

from scrapi_webtoons import base36
from scrapi_webtoons.client import EpisodeRef, Page, PinMode
from scrapi_webtoons.ids import EntityId, Scope

EPISODE = EpisodeRef(scope=Scope.ORIGINAL, webtoon=95, episode=1)
BASE_MILLIS = 1_700_000_000_000


def make_raw(
    sequence: int,
    *,
    reply: int | None = None,
    created: int | None = None,
    body: str | None = None,
    child_count: int = 0,
    status: str = "SERVICE",
    likes: int = 0,
    dislikes: int = 0,
    sections: list[dict[str, Any]] | None = None,
    page_id: str = "w_95_1",
) -> dict[str, Any]:
    """Build a raw API post in the upstream camelCase layout."""
    root_id = f"GW-epicom:0-{page_id}-{base36.encode(sequence)}"
    post_id = root_id if reply is None else f"{root_id}-{base36.encode(reply)}"
    if created is None:
        created = BASE_MILLIS + sequence * 60_000 + (reply or 0) * 1_000
    return {
        "id": post_id,
        "rootId": root_id,
        "body": body if body is not None else f"post {sequence}/{reply}",
        "createdAt": created,
        "updatedAt": created,
        "status": status,
        "childPostCount": child_count,
        "isPinned": False,
        "settings": {"reaction": "ON", "reply": "ON", "spoilerFilter": "OFF"},
        "reactions": [
            {
                "contentId": post_id,
                "reactionId": "post_like",
                "emotions": [
                    {"emotionId": "like", "count": likes, "reacted": False},
                    {"emotionId": "dislike", "count": dislikes, "reacted": False},
                ],
            }
        ],
        "sectionGroup": {"sections": sections or [], "totalCount": len(sections or [])},
        "createdBy": {
            "cuid": f"cuid-{sequence}",
            "name": f"reader{sequence}",
            "profileUrl": f"/p/community/reader{sequence}",
            "isCreator": False,
            "isPageOwner": False,
            "restriction": {"isBlindPostRestricted": False, "isWritePostRestricted": False},
        },
    }


class FakeFetcher:
    """Scripted PageFetcher.

    ``pages`` are served newest first; page ``n`` is requested with cursor
    ``"cursor-n"`` (the first with ``None``).
    """

    def __init__(
        self,
        pages: list[list[dict[str, Any]]],
        *,
        pinned: list[dict[str, Any]] | None = None,
        replies: dict[EntityId, list[list[dict[str, Any]]]] | None = None,
    ) -> None:
        self.pages = pages
        self.pinned = pinned or []
        self.replies = replies or {}
        self.calls: list[tuple[str, Any, str | None, int]] = []
        self.fail_next: Exception | None = None

    @staticmethod
    def _page(pages: list[list[dict[str, Any]]], cursor: str | None) -> Page:
        index = 0 if cursor is None else int(cursor.rsplit("-", 1)[1])
        records = pages[index] if pages else []
        next_cursor = f"cursor-{index + 1}" if index + 1 < len(pages) else None
        return Page(records=list(records), next_cursor=next_cursor)

    def fetch_page(self, episode: EpisodeRef, cursor: str | None, page_size: int, pin_mode: PinMode) -> Page:
        self.calls.append((pin_mode.value, episode, cursor, page_size))
        if self.fail_next is not None:
            exc, self.fail_next = self.fail_next, None
            raise exc
        if pin_mode is PinMode.DISTINCT:
            assert cursor is None
            first = self.pages[0][:1] if self.pages else []
            return Page(records=list(first), next_cursor=None, pinned=list(self.pinned))
        return self._page(self.pages, cursor)

    def fetch_replies(self, post_id: EntityId, cursor: str | None, page_size: int) -> Page:
        self.calls.append(("replies", post_id, cursor, page_size))
        return self._page(self.replies.get(post_id, []), cursor)

    def modes(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def episode() -> EpisodeRef:
    return EPISODE
