import subprocess
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

from ytcli.exceptions import PlayerError
from ytcli.models import Options, RuntimeSettings, VideoEntry
from ytcli.presenter import (
    build_picker_command,
    format_line,
    parse_selection,
    play_videos,
    preview_main,
    read_videos,
    render_preview,
    render_thumbnail,
    select_videos,
    write_videos,
)

SETTINGS = RuntimeSettings(timeout=10.0, max_workers=4, player=["mpv", "--fullscreen"], picker=["fzf"])


def _video(video_id, title="Title", author="Author"):
    return VideoEntry(
        video_id=video_id,
        title=title,
        channel_id="UCchan",
        published_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        thumbnail_url=f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg",
        author=author,
        description="Some description",
    )


class TestFormatting(unittest.TestCase):
    def test_format_line_hides_index_field(self):
        self.assertEqual(format_line(3, _video("v", title="Hello\tWorld")), "3\t[Author] Hello World")

    def test_format_line_falls_back_to_channel_id(self):
        self.assertEqual(format_line(0, _video("v", author=None)), "0\t[UCchan] Title")

    def test_render_preview_contains_metadata(self):
        text = render_preview(_video("v"))
        self.assertIn("Title", text)
        self.assertIn("Author", text)
        self.assertIn("Some description", text)
        self.assertTrue(render_preview(_video("v"), thumbnail="IMG").startswith("IMG\n"))


class TestPickerCommand(unittest.TestCase):
    def test_without_preview(self):
        cmd = build_picker_command(SETTINGS, Options())
        self.assertEqual(cmd[0], "fzf")
        self.assertIn("--multi", cmd)
        self.assertNotIn("--preview", cmd)

    def test_with_preview(self):
        cmd = build_picker_command(SETTINGS, Options(preview_enabled=True), Path("/tmp/x/videos.json"))
        preview = cmd[cmd.index("--preview") + 1]
        self.assertIn("-m ytcli.presenter", preview)
        self.assertTrue(preview.endswith("{1}"))


class TestSelectVideos(unittest.TestCase):
    def setUp(self):
        self.videos = [_video("a"), _video("b"), _video("c")]

    def test_parse_selection(self):
        selected = parse_selection("2\t[Author] Title\n0\t[Author] Title\n", self.videos)
        self.assertEqual([v.video_id for v in selected], ["c", "a"])

    @patch("ytcli.presenter.subprocess.run")
    def test_selection_returns_chosen_videos(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="1\t[Author] Title\n")
        with tempfile.TemporaryDirectory() as tmp:
            selected = select_videos(self.videos, Options(), SETTINGS, Path(tmp))
        self.assertEqual([v.video_id for v in selected], ["b"])
        self.assertIn("0\t[Author] Title", mock_run.call_args.kwargs["input"])

    @patch("ytcli.presenter.subprocess.run")
    def test_cancel_returns_empty(self, mock_run):
        mock_run.return_value = MagicMock(returncode=130, stdout="")
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(select_videos(self.videos, Options(), SETTINGS, Path(tmp)), [])

    @patch("ytcli.presenter.subprocess.run")
    def test_preview_writes_video_data(self, mock_run):
        mock_run.return_value = MagicMock(returncode=1, stdout="")
        with tempfile.TemporaryDirectory() as tmp:
            select_videos(self.videos, Options(preview_enabled=True), SETTINGS, Path(tmp))
            videos, thumbnails = read_videos(Path(tmp) / "videos.json")
        self.assertEqual(videos, self.videos)
        self.assertFalse(thumbnails)

    @patch("ytcli.presenter.subprocess.run", side_effect=FileNotFoundError())
    def test_missing_picker_raises(self, _mock_run):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(PlayerError):
                select_videos(self.videos, Options(), SETTINGS, Path(tmp))


class TestPlayVideos(unittest.TestCase):
    @patch("ytcli.presenter.subprocess.run")
    def test_player_receives_all_urls(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0)
        play_videos([_video("a"), _video("b")], SETTINGS)
        mock_run.assert_called_once_with(
            ["mpv", "--fullscreen", "https://youtube.com/watch?v=a", "https://youtube.com/watch?v=b"]
        )

    @patch("ytcli.presenter.subprocess.run", side_effect=FileNotFoundError())
    def test_missing_player_raises(self, _mock_run):
        with self.assertRaises(PlayerError):
            play_videos([_video("a")], SETTINGS)


class TestRenderThumbnail(unittest.TestCase):
    @patch("ytcli.presenter.subprocess.run")
    @patch("ytcli.presenter.requests.get")
    def test_downloaded_thumbnail_is_stored_without_partial_files(self, mock_get, mock_run):
        mock_get.return_value = MagicMock(content=b"JPEGDATA")
        mock_run.return_value = MagicMock(returncode=0, stdout="IMG\n")
        with tempfile.TemporaryDirectory() as tmp:
            text = render_thumbnail(_video("a"), Path(tmp), 40)
            self.assertEqual(text, "IMG")
            self.assertEqual(sorted(p.name for p in Path(tmp).iterdir()), ["a.jpg"])
            self.assertEqual((Path(tmp) / "a.jpg").read_bytes(), b"JPEGDATA")

    @patch("ytcli.presenter.subprocess.run")
    @patch("ytcli.presenter.requests.get")
    def test_interrupted_write_leaves_no_thumbnail_behind(self, mock_get, mock_run):
        mock_get.return_value = MagicMock(content=b"JPEGDATA")
        with tempfile.TemporaryDirectory() as tmp:
            with patch("ytcli.presenter.os.replace", side_effect=OSError("disk full")):
                with self.assertRaises(OSError):
                    render_thumbnail(_video("a"), Path(tmp), 40)
            self.assertEqual(list(Path(tmp).iterdir()), [])
        mock_run.assert_not_called()

    @patch("ytcli.presenter.subprocess.run")
    @patch("ytcli.presenter.requests.get")
    def test_existing_thumbnail_is_reused(self, mock_get, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="IMG")
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / "a.jpg").write_bytes(b"JPEGDATA")
            self.assertEqual(render_thumbnail(_video("a"), Path(tmp), 40), "IMG")
        mock_get.assert_not_called()


class TestPreviewMain(unittest.TestCase):
    def test_prints_preview_for_index(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "videos.json"
            write_videos(path, [_video("a", title="First"), _video("b", title="Second")], False)
            with patch("builtins.print") as mock_print:
                code = preview_main([str(path), "1"])
        self.assertEqual(code, 0)
        self.assertIn("Second", mock_print.call_args.args[0])

    def test_bad_index(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "videos.json"
            write_videos(path, [_video("a")], False)
            self.assertEqual(preview_main([str(path), "9"]), 1)


if __name__ == "__main__":
    unittest.main()
