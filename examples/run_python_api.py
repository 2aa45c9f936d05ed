from __future__ import annotations

from scrapi_webtoons import (
    EpisodeRef,
    PaginationEngine,
    ReplyResolver,
    Scope,
    WebtoonsFetcher,
    build_session,
)


def main() -> None:
    """Demonstrate the Python API by listing the newest comments of one episode."""
    session = build_session("scrapi-webtoons-example/0.1", verify=True)
    fetcher = WebtoonsFetcher(session, delay=0.5)

    episode = EpisodeRef(scope=Scope.ORIGINAL, webtoon=95, episode=1)
    engine = PaginationEngine(fetcher, episode)

    stream = engine.stream()
    for index, post in enumerate(stream):
        marker = "*" if stream.is_pinned(post.id) else " "
        print(f"{marker} {post.created_at:%Y-%m-%d} {post.id} {post.body.contents[:60]!r}")
        if index >= 9:
            break

    resolver = ReplyResolver(fetcher)
    for post in engine.collect().filter(lambda post: post.pinned):
        replies = resolver.resolve(post)
        print(f"{post.id} has {len(replies)} repl(ies)")


if __name__ == "__main__":
    main()
