import json
import logging
from pathlib import Path

from ytcli.exceptions import SubscriptionImportError
from ytcli.models import Channel, Topic

logger = logging.getLogger(__name__)


def load_takeout_subscriptions(path: str) -> list[Channel]:
    """Google Takeout の購読リスト（subscriptions.json）からチャンネルを読み込む。

    各要素の ``snippet.resourceId.channelId`` をチャンネルID、
    ``snippet.title`` を表示名として使う。IDのない要素はスキップする。

    Raises:
        SubscriptionImportError: ファイルが読めない、形式が不正、
            または有効なチャンネルが1件もない場合
    """
    file_path = Path(path).expanduser()
    try:
        with open(file_path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise SubscriptionImportError(f"購読ファイルを読み込めません: {file_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise SubscriptionImportError(f"購読ファイルのJSON構文エラー: {e}") from e

    if not isinstance(data, list):
        raise SubscriptionImportError("購読ファイルの形式が不正です（配列ではありません）")

    merged = Topic(name="")
    skipped = 0
    for item in data:
        snippet = item.get("snippet") if isinstance(item, dict) else None
        if not isinstance(snippet, dict):
            skipped += 1
            continue
        resource = snippet.get("resourceId") or {}
        channel_id = resource.get("channelId") if isinstance(resource, dict) else None
        if not channel_id:
            skipped += 1
            continue
        merged.add(Channel(id=channel_id, name=snippet.get("title") or None))

    if skipped:
        logger.warning("チャンネルIDのない購読エントリをスキップ: %d件", skipped)
    if not merged.channels:
        raise SubscriptionImportError("購読ファイルに有効なチャンネルがありません")

    logger.info("購読リスト読み込み完了 - チャンネル数: %d", len(merged.channels))
    return merged.channels
