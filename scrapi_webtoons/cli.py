"""Command line entry point for the Scrapi Webtoons comment exporter."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Sequence
from urllib.parse import parse_qs, urlsplit

from .client import DEFAULT_USER_AGENT, EpisodeRef, WebtoonsFetcher, build_session
from .export import ExportOptions, process_episode
from .ids import Scope

SCOPE_CHOICES = {"original": Scope.ORIGINAL, "canvas": Scope.CANVAS}


def _default_output_root() -> Path:
    env_override = os.environ.get("SCRAPI_WEBTOONS_OUTPUT_DIR")
    if env_override:
        return Path(env_override).expanduser().resolve()
    return Path.cwd() / "scrapi_webtoons_data"


def _episode_from_url(url: str) -> EpisodeRef:
    parsed = urlsplit(url)
    if not parsed.scheme or not parsed.netloc:
        raise SystemExit(f"Episode URL must be absolute (including https://): {url}")
    query = parse_qs(parsed.query)
    try:
        webtoon = int(query["title_no"][0])
        episode = int(query["episode_no"][0])
    except (KeyError, IndexError, ValueError) as exc:
        raise SystemExit(f"Episode URL needs numeric title_no and episode_no parameters: {url}") from exc
    segments = [segment.lower() for segment in parsed.path.split("/") if segment]
    scope = Scope.CANVAS if {"canvas", "challenge"} & set(segments) else Scope.ORIGINAL
    return EpisodeRef(scope=scope, webtoon=webtoon, episode=episode)


def _build_episodes(
    *,
    scope: str | None,
    webtoon: int | None,
    episodes: List[int],
    urls: List[str],
) -> List[EpisodeRef]:
    targets: List[EpisodeRef] = []
    if episodes:
        if webtoon is None:
            raise SystemExit("--episode requires --webtoon")
        resolved_scope = SCOPE_CHOICES[scope or "original"]
        for number in episodes:
            if number < 1:
                raise SystemExit(f"Episode numbers start at 1, got {number}")
            targets.append(EpisodeRef(scope=resolved_scope, webtoon=webtoon, episode=number))
    for url in urls:
        targets.append(_episode_from_url(url))
    return targets


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Export the comments of webtoons.com episodes. Pinned (top) comments are flagged, "
            "and replies can be fetched for every comment that has them."
        )
    )
    parser.add_argument(
        "--scope",
        choices=sorted(SCOPE_CHOICES),
        default=None,
        help="Whether --webtoon is an Original or a Canvas series (default: original).",
    )
    parser.add_argument(
        "--webtoon",
        type=int,
        default=None,
        help="Numeric webtoon id (title_no in the site URL).",
    )
    parser.add_argument(
        "--episode",
        dest="episodes",
        type=int,
        action="append",
        default=[],
        help="Episode number to export. Provide multiple times for multiple episodes.",
    )
    parser.add_argument(
        "--url",
        dest="urls",
        action="append",
        default=[],
        help="Episode viewer URL (with title_no and episode_no). Provide multiple times.",
    )
    parser.add_argument(
        "--replies",
        action="store_true",
        help="Fetch replies for every comment that declares some (one request per comment at least).",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=100,
        help="Posts requested per page (default: 100, max: 100).",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=0.5,
        help="Delay in seconds between page requests (default: 0.5).",
    )
    parser.add_argument(
        "--user-agent",
        default=DEFAULT_USER_AGENT,
        help="Custom User-Agent header to send with requests.",
    )
    parser.add_argument(
        "--session",
        default=os.environ.get("SCRAPI_WEBTOONS_SESSION"),
        help="Optional NEO_SES session token (defaults to SCRAPI_WEBTOONS_SESSION).",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Disable TLS certificate verification (only if you trust the network).",
    )
    parser.add_argument(
        "--output-format",
        choices=["json", "csv", "both"],
        default="json",
        help="Persist results as JSON files, CSV summaries, or both (default: json).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help=(
            "Root directory where exports are saved. Defaults to ./scrapi_webtoons_data "
            "(override with SCRAPI_WEBTOONS_OUTPUT_DIR)."
        ),
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Logging verbosity (default: INFO).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    output_formats: set[str]
    if args.output_format == "both":
        output_formats = {"json", "csv"}
    elif args.output_format == "csv":
        output_formats = {"csv"}
    else:
        output_formats = {"json"}

    output_root = Path(args.output_dir).expanduser().resolve() if args.output_dir else _default_output_root()
    output_root.mkdir(parents=True, exist_ok=True)

    options = ExportOptions(
        output_root=output_root,
        output_formats=output_formats,
        include_replies=args.replies,
        page_size=args.page_size,
        delay=args.delay,
    )

    episodes = _build_episodes(
        scope=args.scope,
        webtoon=args.webtoon,
        episodes=args.episodes,
        urls=[url.strip() for url in args.urls if url and url.strip()],
    )
    if not episodes:
        raise SystemExit("No episodes selected. Provide --webtoon with --episode, or --url.")

    session = build_session(args.user_agent, not args.insecure, args.session)
    fetcher = WebtoonsFetcher(session, delay=options.delay)

    failures = 0
    for episode in episodes:
        try:
            process_episode(episode, fetcher=fetcher, options=options)
        except Exception as exc:  # noqa: BLE001 - keep processing other episodes
            failures += 1
            print(f"Failed to process {episode}: {exc}", file=sys.stderr)

    if failures:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
