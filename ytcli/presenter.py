"""fzf による動画選択・プレビュー表示とプレイヤー起動。

プレビューは fzf から ``python -m ytcli.presenter <動画一覧JSON> <番号>`` として
別プロセスで呼び出される。
"""

import contextlib
import json
import logging
import os
import shlex
import shutil
import subprocess
import sys
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional

import requests

from ytcli.exceptions import PlayerError
from ytcli.models import Options, RuntimeSettings, VideoEntry

logger = logging.getLogger(__name__)

BOLD = "\033[1m"
RESET = "\033[0m"

THUMBNAIL_URL_TEMPLATE = "https://i.ytimg.com/vi/{video_id}/hq720.jpg"
THUMBNAIL_TIMEOUT_SECONDS = 10
THUMBNAIL_COMMAND = "chafa"
# 16:9 のサムネイルを端末セル（縦横比およそ 1:2）で表示したときの行数比
THUMBNAIL_ROW_RATIO = 4.5

VIDEOS_FILE = "videos.json"

# fzf の終了コード: 1 = 一致なし, 130 = キャンセル
PICKER_CANCEL_CODES = {1, 130}


def format_line(index: int, video: VideoEntry) -> str:
    """fzf に渡す1行。先頭の番号フィールドは表示しない。"""
    label = f"[{video.author or video.channel_id}] {video.title}"
    return f"{index}\t{_single_line(label)}"


def _single_line(text: str) -> str:
    return " ".join(text.split())


def render_preview(video: VideoEntry, thumbnail: str = "") -> str:
    """プレビュー欄のテキストを組み立てる。"""
    published = video.published_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
    author = video.author or video.channel_id
    parts = [
        f"{BOLD}{video.title}{RESET}",
        f"{BOLD}{author}{RESET} | {published}",
        "",
        video.description or "",
    ]
    text = "\n".join(parts)
    if thumbnail:
        text = f"{thumbnail}\n{text}"
    return text


def thumbnails_available(options: Options) -> bool:
    return options.thumbnails_enabled and shutil.which(THUMBNAIL_COMMAND) is not None


def build_picker_command(
    settings: RuntimeSettings,
    options: Options,
    videos_path: Optional[Path] = None,
) -> list[str]:
    cmd = list(settings.picker) + [
        "--multi",
        "--delimiter", "\t",
        "--with-nth", "2..",
        "--height", "100%",
    ]
    if options.preview_enabled and videos_path is not None:
        preview = " ".join(
            [shlex.quote(sys.executable), "-m", "ytcli.presenter", shlex.quote(str(videos_path)), "{1}"]
        )
        cmd += ["--preview", preview, "--preview-window", "right:wrap"]
    return cmd


def select_videos(
    videos: list[VideoEntry],
    options: Options,
    settings: RuntimeSettings,
    workdir: Path,
) -> list[VideoEntry]:
    """fzf で動画を選択させる。キャンセル時は空リストを返す。

    Args:
        videos: 表示する動画（表示順）
        options: プレビュー・サムネイルの有効/無効
        settings: ピッカーのコマンド
        workdir: プレビュー用データとサムネイルを置く一時ディレクトリ

    Raises:
        PlayerError: ピッカーを起動できない場合
    """
    videos_path = None
    if options.preview_enabled:
        videos_path = workdir / VIDEOS_FILE
        write_videos(videos_path, videos, thumbnails_available(options))

    cmd = build_picker_command(settings, options, videos_path)
    lines = "\n".join(format_line(i, v) for i, v in enumerate(videos))

    try:
        proc = subprocess.run(cmd, input=lines, stdout=subprocess.PIPE, text=True)
    except FileNotFoundError as e:
        raise PlayerError(f"ピッカーを起動できません: {cmd[0]}") from e

    if proc.returncode in PICKER_CANCEL_CODES:
        return []
    if proc.returncode != 0:
        raise PlayerError(f"ピッカーが異常終了しました(終了コード {proc.returncode})")

    return parse_selection(proc.stdout, videos)


def parse_selection(output: str, videos: list[VideoEntry]) -> list[VideoEntry]:
    """ピッカーの出力行から選択された動画を取り出す。"""
    selected = []
    for line in output.splitlines():
        index, _, _ = line.partition("\t")
        try:
            selected.append(videos[int(index)])
        except (ValueError, IndexError):
            logger.warning("ピッカーの出力を解釈できません: %s", line)
    return selected


def play_videos(videos: list[VideoEntry], settings: RuntimeSettings) -> int:
    """選択された動画をまとめてプレイヤーで再生し、終了を待つ。

    Returns:
        プレイヤーの終了コード

    Raises:
        PlayerError: プレイヤーを起動できない場合
    """
    cmd = list(settings.player) + [v.url for v in videos]
    logger.info("再生開始 - 動画数: %d", len(videos))
    try:
        proc = subprocess.run(cmd)
    except FileNotFoundError as e:
        raise PlayerError(f"プレイヤーを起動できません: {cmd[0]}") from e

    if proc.returncode != 0:
        logger.warning("プレイヤーが終了コード %d で終了しました", proc.returncode)
    return proc.returncode


def write_videos(path: Path, videos: list[VideoEntry], thumbnails: bool) -> None:
    """プレビュー用プロセスに渡す動画一覧をJSONで書き出す。"""
    data = {
        "thumbnails": thumbnails,
        "videos": [_video_to_dict(v) for v in videos],
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False)


def read_videos(path: Path) -> tuple[list[VideoEntry], bool]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return [_video_from_dict(d) for d in data["videos"]], bool(data.get("thumbnails"))


def _video_to_dict(video: VideoEntry) -> dict:
    return {
        "video_id": video.video_id,
        "title": video.title,
        "channel_id": video.channel_id,
        "published_at": video.published_at.isoformat(),
        "thumbnail_url": video.thumbnail_url,
        "author": video.author,
        "description": video.description,
    }


def _video_from_dict(data: dict) -> VideoEntry:
    return VideoEntry(
        video_id=data["video_id"],
        title=data["title"],
        channel_id=data["channel_id"],
        published_at=datetime.fromisoformat(data["published_at"]),
        thumbnail_url=data.get("thumbnail_url"),
        author=data.get("author"),
        description=data.get("description"),
    )


def render_thumbnail(video: VideoEntry, cache_dir: Path, columns: int) -> str:
    """サムネイルを取得し、chafa で端末表示用の文字列に変換する。

    取得・変換に失敗した場合は空文字を返す（テキストのみのプレビューになる）。
    """
    path = cache_dir / f"{video.video_id}.jpg"
    if not path.exists():
        url = video.thumbnail_url or THUMBNAIL_URL_TEMPLATE.format(video_id=video.video_id)
        try:
            response = requests.get(url, timeout=THUMBNAIL_TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.debug("サムネイル取得失敗: %s: %s", video.video_id, e)
            return ""
        _write_atomic(path, response.content)

    rows = max(1, int(columns / THUMBNAIL_ROW_RATIO))
    try:
        proc = subprocess.run(
            [THUMBNAIL_COMMAND, "--size", f"{columns}x{rows}", str(path)],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
        )
    except FileNotFoundError:
        return ""
    return proc.stdout.rstrip("\n") if proc.returncode == 0 else ""


def _write_atomic(path: Path, data: bytes) -> None:
    """同じディレクトリの一時ファイルに書き出してから置き換える。

    fzf はカーソル移動時に前のプレビュー処理を終了させるため、
    書きかけのファイルが最終パスに残らないようにする。
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def preview_main(argv: list[str]) -> int:
    """fzf の --preview から呼ばれるエントリポイント。"""
    if len(argv) != 2:
        print("usage: python -m ytcli.presenter VIDEOS_JSON INDEX", file=sys.stderr)
        return 2

    videos_path = Path(argv[0])
    videos, thumbnails = read_videos(videos_path)
    try:
        video = videos[int(argv[1])]
    except (ValueError, IndexError):
        return 1

    thumbnail = ""
    if thumbnails:
        columns = int(os.environ.get("FZF_PREVIEW_COLUMNS") or 40)
        thumbnail = render_thumbnail(video, videos_path.parent, columns)

    print(render_preview(video, thumbnail))
    return 0


if __name__ == "__main__":
    sys.exit(preview_main(sys.argv[1:]))
