import argparse
import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from ytcli import __version__
from ytcli.aggregator import aggregate, channel_names
from ytcli.channel_resolver import resolve_channels, select_topics, split_topics
from ytcli.config_loader import DEFAULT_CONFIG_PATH, load_config, load_settings
from ytcli.exceptions import (
    ConfigError,
    ConfigNotFoundError,
    PlayerError,
    ResolveError,
    SubscriptionImportError,
)
from ytcli.models import AggregateResult, Config, Options, RuntimeSettings
from ytcli.presenter import play_videos, select_videos
from ytcli.subscriptions import load_takeout_subscriptions

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_ALL_FAILED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="yt-cli",
        description="購読チャンネルの新着動画を一覧から選んで再生する",
    )
    parser.add_argument("-t", "--topics", default="", help="指定トピック（カンマ区切り）の動画のみ表示")
    parser.add_argument("-c", "--config", help=f"設定ファイルのパス（既定: {DEFAULT_CONFIG_PATH}）")
    parser.add_argument("-l", "--list-channels", action="store_true", help="購読チャンネルを一覧表示")
    parser.add_argument("-L", "--list-topics", action="store_true", help="トピックを一覧表示")
    parser.add_argument(
        "--resolve-names",
        action="store_true",
        help="チャンネル一覧で名前のないチャンネルの名前をフィードから取得する",
    )
    parser.add_argument("--load-subs", metavar="FILE", help="Google Takeout の購読リストJSONを読み込む")
    parser.add_argument("--no-preview", action="store_true", help="プレビューを無効にする")
    parser.add_argument("--no-thumbnails", action="store_true", help="サムネイル表示を無効にする")
    parser.add_argument("-v", "--verbose", action="store_true", help="詳細ログを出力する")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main(argv: Optional[list[str]] = None) -> int:
    """メイン処理フロー。

    1. 引数・環境変数の読み込み
    2. 設定ファイル読み込み
    3. トピック → チャンネル解決（または購読リストの読み込み）
    4. フィードの並行取得・集約
    5. 選択 → 再生 をキャンセルされるまで繰り返す
    """
    # .envファイルから環境変数を読み込み（存在しない場合は無視）
    load_dotenv()

    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    settings = load_settings()

    config_path = args.config or os.environ.get("YTCLI_CONFIG") or DEFAULT_CONFIG_PATH
    requested = split_topics(args.topics)

    # 購読リストを読み込む場合は設定ファイルがなくても動作する
    try:
        config = load_config(config_path)
    except ConfigNotFoundError as e:
        if not args.load_subs:
            logger.error("設定エラー: %s", e)
            print(f"設定ファイル ({config_path}) を先に作成してください", file=sys.stderr)
            return EXIT_ERROR
        config = Config()
    except ConfigError as e:
        logger.error("設定エラー: %s", e)
        print(f"設定エラー: {e}", file=sys.stderr)
        return EXIT_ERROR

    try:
        if args.list_topics:
            return list_topics(config, requested)
        if args.list_channels:
            return list_channels(config, requested, settings, args.resolve_names)

        if args.load_subs:
            channels = load_takeout_subscriptions(args.load_subs)
        else:
            channels = resolve_channels(config, requested)
    except (ResolveError, SubscriptionImportError) as e:
        logger.error("チャンネル解決エラー: %s", e)
        print(f"エラー: {e}", file=sys.stderr)
        return EXIT_ERROR

    logger.info("処理開始 - 対象チャンネル数: %d", len(channels))
    try:
        result = aggregate(channels, max_workers=settings.max_workers, timeout=settings.timeout)
    except KeyboardInterrupt:
        print("中断しました", file=sys.stderr)
        return 130

    report_failures(result)
    if result.all_failed:
        logger.error("すべてのチャンネルの取得に失敗しました")
        return EXIT_ALL_FAILED
    if not result.videos:
        print("表示できる動画がありません")
        return EXIT_OK

    options = Options(
        preview_enabled=config.options.preview_enabled and not args.no_preview,
        thumbnails_enabled=config.options.thumbnails_enabled and not args.no_thumbnails,
    )
    try:
        run_selection_loop(result, options, settings)
    except PlayerError as e:
        logger.error("起動エラー: %s", e)
        print(f"エラー: {e}", file=sys.stderr)
        return EXIT_ERROR

    logger.info("処理完了")
    return EXIT_OK


def run_selection_loop(result: AggregateResult, options: Options, settings: RuntimeSettings) -> None:
    """選択がキャンセルされるまで 選択 → 再生 を繰り返す。"""
    with tempfile.TemporaryDirectory(prefix="yt-cli-") as tmp:
        workdir = Path(tmp)
        while True:
            selected = select_videos(result.videos, options, settings, workdir)
            if not selected:
                break
            play_videos(selected, settings)


def report_failures(result: AggregateResult) -> None:
    if not result.failures:
        return
    print(f"{len(result.failures)}件のチャンネルの取得に失敗しました:", file=sys.stderr)
    for failure in result.failures:
        print(f"  {failure.channel.display_name} [{failure.kind}] {failure.message}", file=sys.stderr)


def list_topics(config: Config, requested: list[str]) -> int:
    print("購読トピック:")
    for topic in sorted(select_topics(config, requested), key=lambda t: t.name):
        print(f"{topic.name} ({len(topic.channels)} channels)")
    return EXIT_OK


def list_channels(
    config: Config,
    requested: list[str],
    settings: RuntimeSettings,
    resolve_names: bool = False,
) -> int:
    topics = sorted(select_topics(config, requested), key=lambda t: t.name)

    names: dict[str, str] = {}
    if resolve_names:
        unnamed = [c for t in topics for c in t.channels if not c.name]
        if unnamed:
            result = aggregate(unnamed, max_workers=settings.max_workers, timeout=settings.timeout)
            names = channel_names(result)

    print("購読チャンネル:")
    for topic in topics:
        print(topic.name)
        entries = [(channel.name or names.get(channel.id), channel.id) for channel in topic.channels]
        # 名前のないチャンネルは末尾に並べる
        entries.sort(key=lambda e: (e[0] is None, e[0] or e[1]))
        for name, channel_id in entries:
            if name:
                print(f"  {name} ({channel_id})")
            else:
                print(f"  {channel_id}")
        print()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
