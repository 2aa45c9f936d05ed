from __future__ import annotations

from pathlib import Path

import pytest

import scrapi_webtoons.cli as cli
from scrapi_webtoons.client import EpisodeRef, WebtoonsFetcher
from scrapi_webtoons.ids import Scope


def test_episode_from_original_url() -> None:
    ref = cli._episode_from_url(
        "https://www.webtoons.com/en/romance/lore-olympus/episode-1/viewer?title_no=1320&episode_no=1"
    )

    assert ref == EpisodeRef(scope=Scope.ORIGINAL, webtoon=1320, episode=1)
    assert ref.page_id == "w_1320_1"


def test_episode_from_canvas_url() -> None:
    ref = cli._episode_from_url("https://www.webtoons.com/en/canvas/some-comic/ep-2/viewer?title_no=555&episode_no=2")

    assert ref == EpisodeRef(scope=Scope.CANVAS, webtoon=555, episode=2)


@pytest.mark.parametrize(
    "url",
    [
        "www.webtoons.com/en/romance/x/viewer?title_no=1&episode_no=1",
        "https://www.webtoons.com/en/romance/x/viewer?title_no=1",
        "https://www.webtoons.com/en/romance/x/viewer?title_no=abc&episode_no=1",
    ],
)
def test_episode_from_url_rejects_incomplete_urls(url: str) -> None:
    with pytest.raises(SystemExit):
        cli._episode_from_url(url)


def test_build_episodes_requires_webtoon() -> None:
    with pytest.raises(SystemExit):
        cli._build_episodes(scope=None, webtoon=None, episodes=[1], urls=[])


def test_default_output_root_honours_environment(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("SCRAPI_WEBTOONS_OUTPUT_DIR", str(tmp_path / "exports"))

    assert cli._default_output_root() == (tmp_path / "exports").resolve()


@pytest.fixture
def recorded(monkeypatch) -> dict:
    state: dict = {"episodes": [], "sessions": [], "fail": set()}

    def fake_build_session(user_agent: str, verify: bool, session_token: str | None = None):
        state["sessions"].append((user_agent, verify, session_token))
        return object()

    def fake_process_episode(episode, *, fetcher, options):
        assert isinstance(fetcher, WebtoonsFetcher)
        state["episodes"].append(episode)
        state["options"] = options
        if episode.episode in state["fail"]:
            raise RuntimeError("boom")
        return []

    monkeypatch.setattr(cli, "build_session", fake_build_session)
    monkeypatch.setattr(cli, "process_episode", fake_process_episode)
    monkeypatch.delenv("SCRAPI_WEBTOONS_SESSION", raising=False)
    return state


def test_main_processes_every_episode(tmp_path: Path, recorded: dict) -> None:
    cli.main(
        [
            "--scope",
            "canvas",
            "--webtoon",
            "555",
            "--episode",
            "1",
            "--episode",
            "2",
            "--url",
            "https://www.webtoons.com/en/fantasy/tower/ep-9/viewer?title_no=95&episode_no=9",
            "--output-dir",
            str(tmp_path),
            "--output-format",
            "both",
            "--replies",
            "--page-size",
            "250",
            "--session",
            "secret",
            "--insecure",
        ]
    )

    assert recorded["episodes"] == [
        EpisodeRef(Scope.CANVAS, 555, 1),
        EpisodeRef(Scope.CANVAS, 555, 2),
        EpisodeRef(Scope.ORIGINAL, 95, 9),
    ]
    assert recorded["sessions"] == [(cli.DEFAULT_USER_AGENT, False, "secret")]
    options = recorded["options"]
    assert options.output_root == tmp_path.resolve()
    assert options.output_formats == {"json", "csv"}
    assert options.include_replies
    assert options.page_size == 100


def test_main_reports_failures_and_continues(tmp_path: Path, recorded: dict, capsys) -> None:
    recorded["fail"].add(1)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--webtoon", "95", "--episode", "1", "--episode", "2", "--output-dir", str(tmp_path)])

    assert excinfo.value.code == 1
    assert len(recorded["episodes"]) == 2
    assert "Failed to process w_95_1: boom" in capsys.readouterr().err


def test_main_requires_a_target(tmp_path: Path, recorded: dict) -> None:
    with pytest.raises(SystemExit):
        cli.main(["--output-dir", str(tmp_path)])

    assert recorded["episodes"] == []
