import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Optional, Union

from ytcli.exceptions import InvalidFeedFormatError
from ytcli.models import VideoEntry

logger = logging.getLogger(__name__)

# XML名前空間
NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "yt": "http://www.youtube.com/xml/schemas/2015",
    "media": "http://search.yahoo.com/mrss/",
}

FEED_TAG = "{%s}feed" % NS["atom"]


def parse_feed(raw: Union[bytes, str]) -> list[VideoEntry]:
    """RSSフィード（Atom）をパースして動画エントリのリストを返す。

    必須項目（動画ID・タイトル・公開日時）が欠けたエントリは個別に
    スキップする。エントリが1件もない場合は空リストを返す。

    Raises:
        InvalidFeedFormatError: XMLとして解釈できない、またはAtomフィードでない場合
    """
    try:
        root = ET.fromstring(raw)
    except ET.ParseError as e:
        raise InvalidFeedFormatError(f"RSSフィードのXMLパースに失敗: {e}") from e

    if root.tag != FEED_TAG:
        raise InvalidFeedFormatError(f"Atomフィードではありません: ルート要素 {root.tag}")

    feed_channel_id = _text(root, "yt:channelId")
    feed_author = _text(root, "atom:author/atom:name")

    videos = []
    skipped = 0
    for entry in root.findall("atom:entry", NS):
        video = _parse_entry(entry, feed_channel_id, feed_author)
        if video is None:
            skipped += 1
            continue
        videos.append(video)

    if skipped:
        logger.debug("必須項目が欠けたエントリをスキップ: %d件", skipped)
    return videos


def _parse_entry(
    entry: ET.Element,
    feed_channel_id: Optional[str],
    feed_author: Optional[str],
) -> Optional[VideoEntry]:
    video_id = _text(entry, "yt:videoId")
    title = _text(entry, "atom:title")
    published_at = _parse_timestamp(
        _text(entry, "atom:published") or _text(entry, "atom:updated")
    )

    if not video_id or not title or published_at is None:
        return None

    thumbnail = entry.find("media:group/media:thumbnail", NS)
    thumbnail_url = thumbnail.get("url") if thumbnail is not None else None

    return VideoEntry(
        video_id=video_id,
        title=title,
        channel_id=_text(entry, "yt:channelId") or feed_channel_id or "",
        published_at=published_at,
        thumbnail_url=thumbnail_url or None,
        author=_text(entry, "atom:author/atom:name") or feed_author,
        description=_text(entry, "media:group/media:description"),
    )


def _text(node: ET.Element, path: str) -> Optional[str]:
    elem = node.find(path, NS)
    if elem is None or elem.text is None:
        return None
    value = elem.text.strip()
    return value or None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """ISO 8601 の日時を解釈する。タイムゾーンがない場合はUTCとみなす。"""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
