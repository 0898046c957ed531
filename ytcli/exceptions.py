from typing import Optional


class AppError(Exception):
    """アプリケーション基底例外"""
    pass


class ConfigError(AppError):
    """設定ファイル関連エラー"""
    pass


class ConfigNotFoundError(ConfigError):
    """設定ファイルが存在しない、または読み込めない"""
    pass


class ConfigSyntaxError(ConfigError):
    """設定ファイルの構文エラー（セクション見出しの不正など）"""

    def __init__(self, message: str, line: int):
        super().__init__(f"{message} (行 {line})")
        self.line = line


class ResolveError(AppError):
    """トピック解決失敗"""
    pass


class UnknownTopicError(ResolveError):
    """設定ファイルに存在しないトピックが指定された"""

    def __init__(self, name: str):
        super().__init__(f"トピックが見つかりません: {name}")
        self.name = name


class FetchError(AppError):
    """フィード取得失敗"""
    kind = "unreachable"

    def __init__(self, message: str, channel_id: Optional[str] = None):
        super().__init__(message)
        self.channel_id = channel_id


class FeedUnreachableError(FetchError):
    """ネットワークエラー（DNS解決失敗、接続拒否など）"""
    kind = "unreachable"


class FeedHTTPStatusError(FetchError):
    """2xx以外のHTTPステータス"""
    kind = "http_status"

    def __init__(self, message: str, code: int, channel_id: Optional[str] = None):
        super().__init__(message, channel_id)
        self.code = code


class FeedTimeoutError(FetchError):
    """フィード取得タイムアウト"""
    kind = "timeout"


class ParseError(AppError):
    """フィード解析失敗"""
    kind = "invalid_format"


class InvalidFeedFormatError(ParseError):
    """フィードとして認識できない文書"""
    kind = "invalid_format"


class SubscriptionImportError(AppError):
    """購読リストのインポート失敗"""
    pass


class PlayerError(AppError):
    """ピッカー・プレイヤーの起動失敗"""
    pass
