import dataclasses
import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from functools import partial
from typing import Callable, Iterable, Optional

from ytcli.exceptions import FetchError, ParseError
from ytcli.config_loader import DEFAULT_MAX_WORKERS, DEFAULT_TIMEOUT_SECONDS
from ytcli.feed_fetcher import fetch_feed
from ytcli.feed_parser import parse_feed
from ytcli.models import AggregateResult, Channel, ChannelFailure, VideoEntry

logger = logging.getLogger(__name__)

FetchFunc = Callable[[str], bytes]
ParseFunc = Callable[[bytes], list[VideoEntry]]


def aggregate(
    channels: Iterable[Channel],
    fetch: Optional[FetchFunc] = None,
    parse: ParseFunc = parse_feed,
    max_workers: int = DEFAULT_MAX_WORKERS,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> AggregateResult:
    """チャンネルごとのフィード取得・解析を並行実行し、新しい順の動画リストにまとめる。

    チャンネル単位の失敗（FetchError / ParseError）は ChannelFailure として
    記録し、残りのチャンネルの処理は続行する。

    Args:
        channels: 取得対象のチャンネル
        fetch: チャンネルIDからフィード本文を返す関数（省略時は fetch_feed）
        parse: フィード本文から動画エントリを返す関数
        max_workers: 同時に実行する取得処理の上限
        timeout: 既定の fetch に渡すタイムアウト秒数

    Returns:
        公開日時の新しい順（同時刻は動画ID昇順）の動画リストと失敗一覧
    """
    unique: list[Channel] = []
    seen: set[str] = set()
    for channel in channels:
        if channel.id not in seen:
            seen.add(channel.id)
            unique.append(channel)
    if not unique:
        logger.info("取得対象のチャンネルがありません")
        return AggregateResult()

    if fetch is None:
        fetch = partial(fetch_feed, timeout=timeout)

    slots: list[Optional[list[VideoEntry]]] = [None] * len(unique)
    failures: list[Optional[ChannelFailure]] = [None] * len(unique)

    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(unique))))
    completed = False
    try:
        futures: dict[Future, int] = {
            executor.submit(_fetch_channel, channel, fetch, parse): i
            for i, channel in enumerate(unique)
        }
        for future in as_completed(futures):
            i = futures[future]
            try:
                slots[i] = future.result()
            except (FetchError, ParseError) as e:
                logger.warning("チャンネル取得失敗: %s: %s", unique[i].display_name, e)
                failures[i] = ChannelFailure(channel=unique[i], kind=e.kind, message=str(e))
        completed = True
    finally:
        # 中断・想定外の例外では未着手の取得を破棄し、結果を返さない
        executor.shutdown(wait=completed, cancel_futures=not completed)

    videos = merge_videos(s for s in slots if s is not None)
    result = AggregateResult(
        videos=videos,
        failures=[f for f in failures if f is not None],
        succeeded=sum(1 for s in slots if s is not None),
    )
    logger.info(
        "集約完了 - 動画数: %d, 成功: %d, 失敗: %d",
        len(result.videos),
        result.succeeded,
        len(result.failures),
    )
    return result


def _fetch_channel(channel: Channel, fetch: FetchFunc, parse: ParseFunc) -> list[VideoEntry]:
    raw = fetch(channel.id)
    videos = parse(raw)
    # フィードにチャンネルIDがない場合は要求したIDを補う
    return [
        v if v.channel_id else dataclasses.replace(v, channel_id=channel.id)
        for v in videos
    ]


def merge_videos(per_channel: Iterable[list[VideoEntry]]) -> list[VideoEntry]:
    """チャンネルごとの結果を1つにまとめ、新しい順に並べる。

    同じ動画IDは最初に現れたもののみ残す。同時刻の動画は動画IDの昇順。
    """
    pool: dict[str, VideoEntry] = {}
    for videos in per_channel:
        for video in videos:
            pool.setdefault(video.video_id, video)

    ordered = sorted(pool.values(), key=lambda v: v.video_id)
    ordered.sort(key=lambda v: v.published_at, reverse=True)
    return ordered


def channel_names(result: AggregateResult) -> dict[str, str]:
    """フィードの投稿者名からチャンネルID→表示名の対応を作る。"""
    names: dict[str, str] = {}
    for video in result.videos:
        if video.author:
            names.setdefault(video.channel_id, video.author)
    return names
