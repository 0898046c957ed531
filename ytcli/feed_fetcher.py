import logging
from typing import Optional

import requests

from ytcli.config_loader import DEFAULT_TIMEOUT_SECONDS
from ytcli.exceptions import FeedHTTPStatusError, FeedTimeoutError, FeedUnreachableError

logger = logging.getLogger(__name__)

RSS_URL_TEMPLATE = "https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"
HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; yt-cli/1.0)"}


def feed_url(channel_id: str) -> str:
    return RSS_URL_TEMPLATE.format(channel_id=channel_id)


def fetch_feed(
    channel_id: str,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    session: Optional[requests.Session] = None,
) -> bytes:
    """指定チャンネルのRSSフィードを取得する。リトライは行わない。

    Args:
        channel_id: YouTubeチャンネルID
        timeout: 1回の取得のタイムアウト秒数
        session: 使い回す requests.Session（省略時は requests.get）

    Returns:
        フィード本文（バイト列）

    Raises:
        FeedTimeoutError: タイムアウトした場合
        FeedUnreachableError: ネットワークエラーの場合
        FeedHTTPStatusError: 2xx以外のステータスが返った場合
    """
    url = feed_url(channel_id)
    getter = session.get if session is not None else requests.get

    try:
        response = getter(url, headers=HEADERS, timeout=timeout)
    except requests.exceptions.Timeout as e:
        raise FeedTimeoutError(
            f"RSSフィード取得タイムアウト({timeout}秒): チャンネル {channel_id}",
            channel_id,
        ) from e
    except requests.exceptions.RequestException as e:
        raise FeedUnreachableError(
            f"RSSフィード取得失敗(ネットワークエラー): チャンネル {channel_id}: {e}",
            channel_id,
        ) from e

    if not 200 <= response.status_code < 300:
        raise FeedHTTPStatusError(
            f"RSSフィード取得失敗(HTTP {response.status_code}): チャンネル {channel_id}",
            response.status_code,
            channel_id,
        )

    logger.debug("RSSフィード取得完了: %s (%d bytes)", channel_id, len(response.content))
    return response.content
