from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

WATCH_URL_TEMPLATE = "https://youtube.com/watch?v={video_id}"


@dataclass(frozen=True)
class Channel:
    """購読チャンネル"""
    id: str
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass
class Topic:
    """チャンネルをまとめるトピック"""
    name: str
    channels: list[Channel] = field(default_factory=list)

    def add(self, channel: Channel) -> None:
        """同じIDのチャンネルが未登録の場合のみ追加する。"""
        if all(c.id != channel.id for c in self.channels):
            self.channels.append(channel)


@dataclass(frozen=True)
class Options:
    """設定ファイルのグローバルオプション"""
    preview_enabled: bool = False
    thumbnails_enabled: bool = False


@dataclass
class Config:
    """設定ファイルの内容"""
    options: Options = field(default_factory=Options)
    topics: list[Topic] = field(default_factory=list)
    subscriptions: list[Channel] = field(default_factory=list)

    def topic(self, name: str) -> Optional[Topic]:
        for topic in self.topics:
            if topic.name == name:
                return topic
        return None

    def all_channels(self) -> list[Channel]:
        """全トピックとトップレベル購読のチャンネルを重複なしで返す。"""
        merged = Topic(name="")
        for topic in self.topics:
            for channel in topic.channels:
                merged.add(channel)
        for channel in self.subscriptions:
            merged.add(channel)
        return merged.channels


@dataclass(frozen=True)
class RuntimeSettings:
    """環境変数から読み込む実行時設定"""
    timeout: float
    max_workers: int
    player: list[str]
    picker: list[str]


@dataclass(frozen=True)
class VideoEntry:
    """フィードから取得した動画情報"""
    video_id: str
    title: str
    channel_id: str
    published_at: datetime
    thumbnail_url: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None

    @property
    def url(self) -> str:
        return WATCH_URL_TEMPLATE.format(video_id=self.video_id)


@dataclass
class ChannelFailure:
    """チャンネル単位の取得・解析失敗"""
    channel: Channel
    kind: str
    message: str


@dataclass
class AggregateResult:
    """集約結果（新しい順の動画リストと失敗一覧）"""
    videos: list[VideoEntry] = field(default_factory=list)
    failures: list[ChannelFailure] = field(default_factory=list)
    succeeded: int = 0

    @property
    def all_failed(self) -> bool:
        return bool(self.failures) and self.succeeded == 0
