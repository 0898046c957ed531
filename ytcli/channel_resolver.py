import logging
import re
from typing import Iterable

from ytcli.exceptions import UnknownTopicError
from ytcli.models import Channel, Config, Topic

logger = logging.getLogger(__name__)

TOPIC_SEPARATORS = re.compile(r"[\s,;]+")


def split_topics(text: str) -> list[str]:
    """``-t`` オプションの値をトピック名のリストに分割する。"""
    if not text:
        return []
    return [t for t in TOPIC_SEPARATORS.split(text) if t]


def resolve_channels(config: Config, requested_topics: Iterable[str]) -> list[Channel]:
    """指定トピックを取得対象のチャンネルに展開する。

    Args:
        config: 読み込み済みの設定
        requested_topics: トピック名。空の場合は全購読チャンネルが対象

    Returns:
        チャンネルのリスト（同じIDは最初の出現のみ残す）

    Raises:
        UnknownTopicError: 設定にないトピックが指定された場合
    """
    requested = list(requested_topics)
    if not requested:
        channels = config.all_channels()
        logger.info("全購読チャンネルを対象にします - チャンネル数: %d", len(channels))
        return channels

    merged = Topic(name="")
    for name in requested:
        topic = config.topic(name)
        if topic is None:
            raise UnknownTopicError(name)
        for channel in topic.channels:
            merged.add(channel)

    logger.info(
        "トピック解決完了 - トピック: %s, チャンネル数: %d",
        ", ".join(requested),
        len(merged.channels),
    )
    return merged.channels


def select_topics(config: Config, requested_topics: Iterable[str]) -> list[Topic]:
    """一覧表示用に、指定されたトピック（空なら全トピック）を返す。"""
    requested = list(requested_topics)
    if not requested:
        return list(config.topics)

    topics = []
    for name in dict.fromkeys(requested):
        topic = config.topic(name)
        if topic is None:
            raise UnknownTopicError(name)
        topics.append(topic)
    return topics
