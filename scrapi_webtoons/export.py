"""Export collected comments and replies to JSON and CSV files."""
from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List

from .client import MAX_PAGE_SIZE, EpisodeRef, PageFetcher
from .engine import PaginationEngine, ReplyResolver
from .models import Giphy, PostRecord, Sticker, WebtoonLinks

logger = logging.getLogger(__name__)

COMMENT_FIELDS = [
    "post_id",
    "parent_id",
    "webtoon",
    "episode",
    "scope",
    "author",
    "author_cuid",
    "is_creator",
    "created_utc",
    "created_iso",
    "deleted",
    "pinned",
    "reply_count",
    "upvotes",
    "downvotes",
    "is_spoiler",
    "flare_type",
    "flare",
    "body",
]


@dataclass(slots=True)
class ExportOptions:
    """Configuration shared by episode export routines."""

    output_root: Path
    output_formats: set[str] = field(default_factory=lambda: {"json"})
    include_replies: bool = False
    page_size: int = MAX_PAGE_SIZE
    delay: float = 0.0

    def __post_init__(self) -> None:
        self.output_formats = set(self.output_formats)
        if not self.output_formats:
            raise ValueError("At least one output format is required")
        allowed_formats = {"json", "csv"}
        if not self.output_formats.issubset(allowed_formats):
            raise ValueError(f"Unsupported output formats: {self.output_formats}")
        self.page_size = max(1, min(int(self.page_size), MAX_PAGE_SIZE))
        self.delay = max(float(self.delay), 0.0)


def episode_dir(root: Path, episode: EpisodeRef) -> Path:
    return root.joinpath(episode.scope.name.lower(), str(episode.webtoon), str(episode.episode))


def save_json(data: Any, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def write_csv(rows: List[dict[str, Any]], fieldnames: List[str], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.DictWriter(fp, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def format_timestamp(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.astimezone(timezone.utc).isoformat()


def flare_to_dict(flare: Any) -> dict[str, Any] | None:
    if flare is None:
        return None
    if isinstance(flare, Giphy):
        return {"type": "giphy", "id": flare.giphy_id, "render": flare.render}
    if isinstance(flare, Sticker):
        return {"type": "sticker", "pack_id": flare.pack_id, "id": flare.sticker_id}
    if isinstance(flare, WebtoonLinks):
        return {"type": "webtoons", "urls": flare.urls}
    raise TypeError(f"Unsupported flare: {flare!r}")


def _flare_text(flare_info: dict[str, Any] | None) -> str:
    if not flare_info:
        return ""
    if flare_info["type"] == "webtoons":
        return " ".join(flare_info["urls"])
    return str(flare_info["id"])


def flatten_post_record(record: PostRecord) -> dict[str, Any]:
    poster = record.poster
    flare_info = flare_to_dict(record.body.flare)
    return {
        "post_id": record.id.format(),
        "parent_id": record.parent_id.format(),
        "webtoon": record.id.webtoon,
        "episode": record.id.episode,
        "scope": record.id.scope.value,
        "author": poster.username if poster else "",
        "author_cuid": poster.cuid if poster else "",
        "is_creator": poster.is_creator if poster else False,
        "created_utc": int(record.created_at.timestamp()),
        "created_iso": format_timestamp(record.created_at),
        "deleted": record.deleted,
        "pinned": record.pinned,
        "reply_count": record.reply_count,
        "upvotes": record.upvotes,
        "downvotes": record.downvotes,
        "is_spoiler": record.body.is_spoiler,
        "flare_type": flare_info["type"] if flare_info else "",
        "flare": _flare_text(flare_info),
        "body": record.body.contents,
    }


def record_to_json(record: PostRecord) -> dict[str, Any]:
    data = flatten_post_record(record)
    data["flare"] = flare_to_dict(record.body.flare)
    data.pop("flare_type")
    data["super_like"] = record.poster.super_like if record.poster else None
    data["updated_iso"] = format_timestamp(record.updated_at)
    return data


def _write_outputs(
    name: str,
    records: Iterable[PostRecord],
    base_dir: Path,
    options: ExportOptions,
) -> list[Path]:
    records = list(records)
    written: list[Path] = []
    if "json" in options.output_formats:
        path = base_dir / f"{name}.json"
        save_json([record_to_json(record) for record in records], path)
        written.append(path)
    if "csv" in options.output_formats:
        path = base_dir / f"{name}.csv"
        write_csv([flatten_post_record(record) for record in records], COMMENT_FIELDS, path)
        written.append(path)
    return written


def process_episode(
    episode: EpisodeRef,
    *,
    fetcher: PageFetcher,
    options: ExportOptions,
) -> list[Path]:
    """Collect an episode's comments (and optionally replies) and write them out."""
    logger.info("=== Processing %s ===", episode)
    base_dir = episode_dir(options.output_root, episode)

    comments = PaginationEngine(fetcher, episode, page_size=options.page_size).collect()
    written = _write_outputs("comments", comments, base_dir, options)
    logger.info("Saved %d comment(s) for %s", len(comments), episode)

    reply_total = 0
    if options.include_replies:
        resolver = ReplyResolver(fetcher, page_size=options.page_size)
        replies: list[PostRecord] = []
        with_replies = [comment for comment in comments if comment.reply_count]
        for index, comment in enumerate(with_replies, start=1):
            resolved = resolver.resolve(comment)
            replies.extend(resolved)
            logger.debug(
                "[%d/%d] %s -> %d repl(ies)",
                index,
                len(with_replies),
                comment.id,
                len(resolved),
            )
        reply_total = len(replies)
        written.extend(_write_outputs("replies", replies, base_dir, options))

    logger.info(
        "Completed %s: comments=%d replies=%d files=%d",
        episode,
        len(comments),
        reply_total,
        len(written),
    )
    return written


__all__ = [
    "COMMENT_FIELDS",
    "ExportOptions",
    "episode_dir",
    "flare_to_dict",
    "flatten_post_record",
    "format_timestamp",
    "process_episode",
    "record_to_json",
    "save_json",
    "write_csv",
]
