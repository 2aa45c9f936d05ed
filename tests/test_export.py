from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from conftest import BASE_MILLIS, FakeFetcher, make_raw
from scrapi_webtoons.export import (
    ExportOptions,
    episode_dir,
    flatten_post_record,
    format_timestamp,
    process_episode,
    record_to_json,
)
from scrapi_webtoons.models import PostRecord


def test_export_options_enforces_bounds(tmp_path: Path) -> None:
    options = ExportOptions(output_root=tmp_path, page_size=1000, delay=-1)

    assert options.output_formats == {"json"}
    assert options.page_size == 100
    assert options.delay == 0.0

    small = ExportOptions(output_root=tmp_path, output_formats=["csv", "json"], page_size=0)
    assert small.output_formats == {"csv", "json"}
    assert small.page_size == 1


@pytest.mark.parametrize("formats", [set(), {"xml"}, {"json", "yaml"}])
def test_export_options_rejects_unknown_formats(tmp_path: Path, formats: set[str]) -> None:
    with pytest.raises(ValueError):
        ExportOptions(output_root=tmp_path, output_formats=formats)


def test_format_timestamp() -> None:
    record = PostRecord.from_raw(make_raw(1, created=BASE_MILLIS))

    assert format_timestamp(record.created_at) == "2023-11-14T22:13:20+00:00"
    assert format_timestamp(None) == ""


def test_flatten_post_record_for_csv() -> None:
    raw = make_raw(
        3,
        reply=1,
        created=BASE_MILLIS,
        likes=4,
        sections=[{"sectionType": "GIPHY", "data": {"giphyId": "abc"}}],
    )

    row = flatten_post_record(PostRecord.from_raw(raw))

    assert row["post_id"] == "GW-epicom:0-w_95_1-3-1"
    assert row["parent_id"] == "GW-epicom:0-w_95_1-3"
    assert row["webtoon"] == 95
    assert row["episode"] == 1
    assert row["scope"] == "w"
    assert row["author"] == "reader3"
    assert row["created_utc"] == BASE_MILLIS // 1000
    assert row["upvotes"] == 4
    assert row["flare_type"] == "giphy"
    assert row["flare"] == "abc"


def test_record_to_json_keeps_structured_flare() -> None:
    raw = make_raw(
        3,
        sections=[{"sectionType": "STICKER", "data": {"stickerPackId": "wt_001", "stickerId": "wt_001-v2-1"}}],
    )

    data = record_to_json(PostRecord.from_raw(raw))

    assert data["flare"] == {"type": "sticker", "pack_id": "wt_001", "id": "wt_001-v2-1"}
    assert "flare_type" not in data
    assert data["super_like"] is None


def test_process_episode_writes_comments(tmp_path: Path, episode) -> None:
    fetcher = FakeFetcher([[make_raw(3), make_raw(2)], [make_raw(1)]], pinned=[make_raw(2)])
    options = ExportOptions(output_root=tmp_path, output_formats={"json", "csv"})

    written = process_episode(episode, fetcher=fetcher, options=options)

    base_dir = episode_dir(tmp_path, episode)
    assert base_dir == tmp_path / "original" / "95" / "1"
    assert sorted(path.name for path in written) == ["comments.csv", "comments.json"]

    comments = json.loads((base_dir / "comments.json").read_text(encoding="utf-8"))
    assert [comment["post_id"] for comment in comments] == [
        "GW-epicom:0-w_95_1-3",
        "GW-epicom:0-w_95_1-2",
        "GW-epicom:0-w_95_1-1",
    ]
    assert [comment["pinned"] for comment in comments] == [False, True, False]

    with (base_dir / "comments.csv").open(encoding="utf-8", newline="") as fp:
        rows = list(csv.DictReader(fp))
    assert len(rows) == 3
    assert rows[1]["pinned"] == "True"
    assert not (base_dir / "replies.json").exists()
    assert "replies" not in fetcher.modes()


def test_process_episode_with_replies(tmp_path: Path, episode) -> None:
    parent = make_raw(2, child_count=2)
    fetcher = FakeFetcher(
        [[make_raw(3), parent, make_raw(1)]],
        replies={
            PostRecord.from_raw(parent).id: [[make_raw(2, reply=2), make_raw(2, reply=1)]],
        },
    )
    options = ExportOptions(output_root=tmp_path, include_replies=True)

    written = process_episode(episode, fetcher=fetcher, options=options)

    assert sorted(path.name for path in written) == ["comments.json", "replies.json"]
    replies = json.loads((episode_dir(tmp_path, episode) / "replies.json").read_text(encoding="utf-8"))
    assert [reply["post_id"] for reply in replies] == [
        "GW-epicom:0-w_95_1-2-1",
        "GW-epicom:0-w_95_1-2-2",
    ]
    assert {reply["parent_id"] for reply in replies} == {"GW-epicom:0-w_95_1-2"}
    # Only the comment that declares replies is asked for them.
    assert fetcher.modes().count("replies") == 1
