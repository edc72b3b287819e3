"""
Output layout, artifact naming and video finalization.
Transcoding is delegated to FFmpeg when it is installed.
"""
import logging
import shutil
import subprocess
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from config.settings import (
    OUTPUT_DIR, RECORDING_FORMAT, VIDEO_FORMAT, VIDEO_CODEC, ensure_output_dirs
)
from .security import sanitize_file_name, slugify

logger = logging.getLogger(__name__)

CODECS = {
    "h264": "libx264",
    "h265": "libx265",
    "vp8": "libvpx",
    "vp9": "libvpx-vp9",
}
TRANSCODE_TIMEOUT = 600
RETENTION_DAYS = 7


def timestamp() -> str:
    return datetime.now().strftime("%Y%m%d-%H%M%S")


def artifact_name(output_name: Optional[str], title: Optional[str] = None) -> str:
    """Configured output name, else a slug of the title, else 'demo'."""
    name = sanitize_file_name(output_name or "") or sanitize_file_name(slugify(title or ""))
    return name or "demo"


class StorageManager:
    """Owns the output directory of a run."""

    def __init__(self, output_dir: Path = None, video_format: str = VIDEO_FORMAT,
                 codec: str = VIDEO_CODEC):
        self.paths = ensure_output_dirs(output_dir or OUTPUT_DIR)
        self.root = self.paths["root"]
        self.videos_dir = self.paths["videos"]
        self.screenshots_dir = self.paths["screenshots"]
        self.video_format = video_format
        self.codec = codec

    def raw_video_dir(self) -> Path:
        """Where the browser writes unnamed recordings."""
        path = self.videos_dir / ".raw"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def feature_screenshot_dir(self, feature: str) -> Path:
        path = self.screenshots_dir / (sanitize_file_name(feature) or "feature")
        path.mkdir(parents=True, exist_ok=True)
        return path

    def screenshot_path(self, feature: str, step: int, action: str, error: bool = False) -> Path:
        prefix = "error-step" if error else "step"
        action_name = sanitize_file_name(action) or "step"
        return self.feature_screenshot_dir(feature) / f"{prefix}-{step:03d}-{action_name}.png"

    def finalize_video(self, raw_path, name: str) -> Optional[Path]:
        """
        Move a finished recording to videos/<name>-<timestamp>.webm and
        transcode it when another output format is configured.
        """
        source = Path(raw_path)
        if not source.exists():
            logger.warning("No video recorded for %s", name)
            return None

        target = self.videos_dir / f"{name}-{timestamp()}.{RECORDING_FORMAT}"
        counter = 1
        while target.exists():
            target = self.videos_dir / f"{name}-{timestamp()}-{counter}.{RECORDING_FORMAT}"
            counter += 1
        shutil.move(str(source), str(target))
        logger.info("Video saved: %s", target)

        if self.video_format != RECORDING_FORMAT:
            converted = self.transcode(target, self.video_format)
            if converted is not None:
                return converted
        return target

    def transcode(self, source: Path, video_format: str) -> Optional[Path]:
        """Convert with FFmpeg; the original is kept if anything fails."""
        if not shutil.which("ffmpeg"):
            logger.warning("FFmpeg not found, keeping %s", source.name)
            return None
        codec = CODECS.get(self.codec)
        if codec is None:
            logger.warning("Unsupported codec %r, keeping %s", self.codec, source.name)
            return None
        if not sanitize_file_name(video_format).isalnum():
            logger.warning("Unsupported format %r, keeping %s", video_format, source.name)
            return None

        output = source.with_suffix(f".{video_format}")
        cmd = [
            "ffmpeg", "-y",
            "-i", str(source),
            "-c:v", codec,
            "-preset", "medium",
            "-crf", "23",
            str(output)
        ]
        try:
            subprocess.run(
                cmd, capture_output=True, text=True, check=True, timeout=TRANSCODE_TIMEOUT
            )
        except subprocess.CalledProcessError as e:
            logger.warning("FFmpeg error for %s: %s", source.name, (e.stderr or "").strip()[-500:])
            return None
        except subprocess.TimeoutExpired:
            logger.warning("FFmpeg timed out converting %s", source.name)
            return None

        source.unlink()
        logger.info("Converted to %s", output)
        return output

    def clean_raw(self):
        """Drop leftover unnamed recordings."""
        raw = self.videos_dir / ".raw"
        if raw.exists():
            shutil.rmtree(raw, ignore_errors=True)

    def cleanup(self, older_than_days: float = RETENTION_DAYS) -> list[Path]:
        """
        Delete videos and screenshots last modified more than
        older_than_days ago, then any feature directories left empty.

        Returns:
            The removed files
        """
        cutoff = time.time() - older_than_days * 86400
        removed = []
        for directory in (self.videos_dir, self.screenshots_dir):
            for path in sorted(directory.rglob("*"), reverse=True):
                try:
                    if path.is_file() and path.stat().st_mtime < cutoff:
                        path.unlink()
                        removed.append(path)
                        logger.debug("Cleaned up %s", path)
                    elif path.is_dir() and not any(path.iterdir()):
                        path.rmdir()
                except OSError as e:
                    logger.warning("Failed to clean up %s: %s", path, e)
        logger.info("Removed %d artifacts older than %s days", len(removed), older_than_days)
        return removed
