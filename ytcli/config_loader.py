import logging
import math
import os
import shlex
from pathlib import Path
from typing import Mapping, Optional

from ytcli.exceptions import ConfigNotFoundError, ConfigSyntaxError
from ytcli.models import Channel, Config, Options, RuntimeSettings, Topic

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.config/yt-cli.cfg"

# グローバルオプションを記述するセクション名（旧形式との互換）
GLOBAL_SECTION = "default"

OPTION_KEYS = {
    "preview.enable": "preview_enabled",
    "preview.thumbnails.enable": "thumbnails_enabled",
}

TRUE_VALUES = {"true", "yes", "on", "1"}
FALSE_VALUES = {"false", "no", "off", "0"}

COMMENT_PREFIXES = ("#", ";")

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_WORKERS = 8
DEFAULT_PLAYER = "mpv --fullscreen"
DEFAULT_PICKER = "fzf"


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Config:
    """設定ファイルを読み込む。

    Args:
        config_path: 設定ファイルのパス（~ は展開される）

    Returns:
        トピック・購読チャンネル・オプションを保持する Config

    Raises:
        ConfigNotFoundError: 設定ファイルが存在しない、または読み込めない場合
        ConfigSyntaxError: セクション見出しが不正な場合
    """
    path = Path(config_path).expanduser()
    if not path.is_file():
        raise ConfigNotFoundError(f"設定ファイルが見つかりません: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigNotFoundError(f"設定ファイルを読み込めません: {path}: {e}") from e

    config = parse_config(text)
    logger.info(
        "設定ファイル読み込み完了 - トピック数: %d, チャンネル数: %d",
        len(config.topics),
        len(config.all_channels()),
    )
    return config


def parse_config(text: str) -> Config:
    """INI風の設定テキストを Config に変換する。

    セクション外の ``key = value`` と ``[default]`` セクション内の行は
    グローバルオプション、それ以外のセクションはトピックとして扱う。
    ``name = id`` は名前付きチャンネル、``=`` を含まない行はIDのみの
    チャンネルになる。
    """
    options: dict[str, bool] = {}
    topics: dict[str, Topic] = {}
    subscriptions = Topic(name="")
    current: Optional[Topic] = None
    in_global = True

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue

        if line.startswith("["):
            name = _parse_section_header(line, lineno)
            if name.lower() == GLOBAL_SECTION:
                current = None
                in_global = True
                continue
            in_global = False
            current = topics.get(name)
            if current is None:
                current = Topic(name=name)
                topics[name] = current
            continue

        key, sep, value = line.partition("=")
        key = key.strip()
        value = value.strip()

        if in_global:
            if sep:
                _apply_option(options, key, value, lineno)
            else:
                subscriptions.add(Channel(id=key))
            continue

        if not sep:
            current.add(Channel(id=key))
        elif value:
            current.add(Channel(id=value, name=key or None))
        else:
            logger.warning("チャンネルIDが空のためスキップ (行 %d): %s", lineno, line)

    return Config(
        options=Options(**options),
        topics=list(topics.values()),
        subscriptions=subscriptions.channels,
    )


def _parse_section_header(line: str, lineno: int) -> str:
    if not line.endswith("]"):
        raise ConfigSyntaxError(f"セクション見出しが閉じられていません: {line}", lineno)
    name = line[1:-1].strip()
    if not name:
        raise ConfigSyntaxError("セクション名が空です", lineno)
    return name


def _apply_option(options: dict[str, bool], key: str, value: str, lineno: int) -> None:
    attr = OPTION_KEYS.get(key)
    if attr is None:
        logger.warning("未対応の設定キーを無視します (行 %d): %s", lineno, key)
        return

    flag = _coerce_bool(value)
    if flag is None:
        logger.warning("真偽値として解釈できない値を無視します (行 %d): %s = %s", lineno, key, value)
        return
    options[attr] = flag


def _coerce_bool(value: str) -> Optional[bool]:
    lowered = value.lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> RuntimeSettings:
    """環境変数から実行時設定を組み立てる。不正な数値は既定値に戻す。"""
    env = os.environ if environ is None else environ

    timeout = _env_number(env, "YTCLI_TIMEOUT", DEFAULT_TIMEOUT_SECONDS, float)
    max_workers = int(_env_number(env, "YTCLI_MAX_WORKERS", DEFAULT_MAX_WORKERS, int))

    return RuntimeSettings(
        timeout=timeout,
        max_workers=max_workers,
        player=shlex.split(env.get("YTCLI_PLAYER") or DEFAULT_PLAYER),
        picker=shlex.split(env.get("YTCLI_PICKER") or DEFAULT_PICKER),
    )


def _env_number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key, "")
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("環境変数 %s の値が不正なため既定値 %s を使用します: %s", key, default, raw)
        return default
    if not math.isfinite(value) or value <= 0:
        logger.warning("環境変数 %s は有限の正の値で指定してください。既定値 %s を使用します", key, default)
        return default
    return value
