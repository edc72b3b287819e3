"""
Tests for output storage and the run report.
"""
import os
import subprocess
import time
from unittest.mock import patch

from click.testing import CliRunner

from main import cli
from modules.recorder import FeatureResult
from modules.report import build_report, write_report
from modules.storage import StorageManager, artifact_name


class TestStorage:
    def test_layout(self, tmp_path):
        storage = StorageManager(tmp_path / "out")
        assert storage.videos_dir.is_dir()
        assert storage.screenshots_dir.is_dir()
        path = storage.screenshot_path("User Settings", 3, "click")
        assert path.parent.name == "UserSettings"
        assert path.name == "step-003-click.png"

    def test_artifact_name(self):
        assert artifact_name("my/../demo") == "my..demo"
        assert artifact_name(None, "User Settings") == "user-settings"
        assert artifact_name(None, None) == "demo"

    def test_finalize_moves_video(self, tmp_path):
        storage = StorageManager(tmp_path / "out")
        raw = storage.raw_video_dir() / "abc.webm"
        raw.write_bytes(b"data")

        video = storage.finalize_video(raw, "tour")

        assert video.parent == storage.videos_dir
        assert video.name.startswith("tour-") and video.suffix == ".webm"
        assert not raw.exists()

        storage.clean_raw()
        assert not (storage.videos_dir / ".raw").exists()

    def test_finalize_without_video(self, tmp_path):
        storage = StorageManager(tmp_path / "out")
        assert storage.finalize_video(tmp_path / "missing.webm", "tour") is None

    @patch("modules.storage.shutil.which", return_value=None)
    def test_transcode_without_ffmpeg_keeps_original(self, mock_which, tmp_path):
        storage = StorageManager(tmp_path / "out", video_format="mp4")
        raw = tmp_path / "raw.webm"
        raw.write_bytes(b"data")

        video = storage.finalize_video(raw, "tour")

        assert video.suffix == ".webm"
        assert video.exists()

    @patch("modules.storage.subprocess.run")
    @patch("modules.storage.shutil.which", return_value="/usr/bin/ffmpeg")
    def test_transcode(self, mock_which, mock_run, tmp_path):
        storage = StorageManager(tmp_path / "out", video_format="mp4", codec="h264")
        source = tmp_path / "clip.webm"
        source.write_bytes(b"data")

        output = storage.transcode(source, "mp4")

        assert output == tmp_path / "clip.mp4"
        cmd = mock_run.call_args[0][0]
        assert cmd[:4] == ["ffmpeg", "-y", "-i", str(source)]
        assert "libx264" in cmd
        assert not source.exists()

    @patch("modules.storage.subprocess.run")
    @patch("modules.storage.shutil.which", return_value="/usr/bin/ffmpeg")
    def test_transcode_failure_keeps_original(self, mock_which, mock_run, tmp_path):
        mock_run.side_effect = subprocess.CalledProcessError(1, "ffmpeg", stderr="bad input")
        storage = StorageManager(tmp_path / "out", video_format="mp4")
        source = tmp_path / "clip.webm"
        source.write_bytes(b"data")

        assert storage.transcode(source, "mp4") is None
        assert source.exists()

    @patch("modules.storage.subprocess.run")
    @patch("modules.storage.shutil.which", return_value="/usr/bin/ffmpeg")
    def test_unknown_codec(self, mock_which, mock_run, tmp_path):
        storage = StorageManager(tmp_path / "out", codec="rm -rf")
        assert storage.transcode(tmp_path / "clip.webm", "mp4") is None
        mock_run.assert_not_called()


class TestReport:
    def results(self):
        return [
            FeatureResult(feature="dashboard", source="config", success=True,
                          video="/out/videos/dashboard-20240101-120000.webm",
                          screenshots=["a.png"], steps_completed=3, steps_skipped=1, duration=12.5),
            FeatureResult(feature="settings", source="auto", error="Element not found: #save",
                          steps_failed=1),
        ]

    def test_build_report(self):
        report = build_report(self.results(), "app", "http://localhost:3003")

        assert report.startswith("# Demo Recording Report")
        assert "- Features: 2 (1 succeeded, 1 failed)" in report
        assert "| dashboard | config | OK | 3 | 1 | 0 | dashboard-20240101-120000.webm |" in report
        assert "| settings | auto | FAILED | 0 | 0 | 1 | - |" in report
        assert "- **settings**: Element not found: #save" in report

    def test_empty_sections(self):
        report = build_report([], "app", "http://localhost:3003")
        assert report.count("None") == 2

    def test_write_report(self, tmp_path):
        path = write_report(self.results(), tmp_path, "app", "http://localhost:3003")
        assert path == tmp_path / "DEMO_REPORT.md"
        assert "dashboard" in path.read_text()

    def test_result_serializes(self):
        data = self.results()[0].to_dict()
        assert data["feature"] == "dashboard"
        assert data["screenshots"] == ["a.png"]


class TestCleanup:
    def age(self, path, days):
        stamp = time.time() - days * 86400
        os.utime(path, (stamp, stamp))

    def test_removes_only_expired_artifacts(self, tmp_path):
        storage = StorageManager(tmp_path / "out")
        old_video = storage.videos_dir / "tour-20240101-120000.webm"
        new_video = storage.videos_dir / "tour-20240301-120000.webm"
        old_shot = storage.screenshot_path("Dashboard", 1, "click")
        new_shot = storage.screenshot_path("Settings", 1, "click")
        for path in (old_video, new_video, old_shot, new_shot):
            path.write_bytes(b"data")
        self.age(old_video, 8)
        self.age(old_shot, 30)
        self.age(new_video, 2)

        removed = storage.cleanup(older_than_days=7)

        assert sorted(removed) == sorted([old_video, old_shot])
        assert new_video.exists() and new_shot.exists()
        assert not (storage.screenshots_dir / "Dashboard").exists()
        assert storage.videos_dir.is_dir() and storage.screenshots_dir.is_dir()

    def test_nothing_expired(self, tmp_path):
        storage = StorageManager(tmp_path / "out")
        (storage.videos_dir / "fresh.webm").write_bytes(b"data")
        assert storage.cleanup() == []

    def test_clean_command(self, tmp_path):
        storage = StorageManager(tmp_path / "out")
        video = storage.videos_dir / "tour.webm"
        video.write_bytes(b"data")
        self.age(video, 10)

        result = CliRunner().invoke(cli, ["clean", "--output", str(storage.root), "--days", "7"])

        assert result.exit_code == 0
        assert "Removed 1 files" in result.output
        assert not video.exists()
