"""
Video file utilities - finding, metadata extraction, and seekable frame access.
"""

import json
import logging
import subprocess
from fractions import Fraction
from pathlib import Path
from typing import Optional

from .errors import ExtractionError
from .models import Resolution, Video

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = {'.mp4', '.mov', '.avi', '.mkv', '.webm'}


def find_video_file(path: Optional[str] = None) -> Path:
    """Find video file from path or first video in current directory."""
    if path:
        p = Path(path)
        if p.exists():
            return p
        raise FileNotFoundError(f"Video file not found: {path}")

    for f in sorted(Path('.').iterdir()):
        if f.suffix.lower() in VIDEO_EXTENSIONS:
            return f
    raise FileNotFoundError("No video file found in current directory")


def get_video_info(video_path: Path) -> dict:
    """Get video metadata using ffprobe."""
    cmd = [
        'ffprobe', '-v', 'quiet', '-print_format', 'json',
        '-show_streams', '-show_format', str(video_path)
    ]
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0 or not result.stdout:
        raise RuntimeError(f"ffprobe could not read {video_path}")
    data = json.loads(result.stdout)

    video_stream = next((s for s in data.get('streams', []) if s.get('codec_type') == 'video'), None)
    if video_stream is None:
        raise RuntimeError(f"No video stream in {video_path}")

    return {
        'width': int(video_stream['width']),
        'height': int(video_stream['height']),
        'fps': float(Fraction(video_stream.get('r_frame_rate', '0/1'))),
        'duration': float(data['format']['duration'])
    }


def load_video(video_path: Path) -> Video:
    """Read the metadata of a video file into a Video record."""
    info = get_video_info(video_path)
    logger.info(
        f"Loaded {video_path.name}: {info['width']}x{info['height']}, "
        f"{info['duration']:.2f}s @ {info['fps']:.2f} fps"
    )
    return Video(
        path=str(video_path),
        duration=info['duration'],
        resolution=Resolution(info['width'], info['height']),
        fps=info['fps'],
    )


class VideoSource:
    """Seekable OpenCV video handle.

    Setting `current_time` requests a seek; `read()` returns once the decoder
    has landed on that position and decoded the frame there. A handle has a
    single position, so callers must not interleave seeks from several threads
    (see `FrameExtractor`).
    """

    def __init__(self, video_path: Path):
        import cv2

        self.path = Path(video_path)
        self._cap = cv2.VideoCapture(str(self.path))
        if not self._cap.isOpened():
            raise ExtractionError(f"Cannot open video: {self.path}")

        self.fps = self._cap.get(cv2.CAP_PROP_FPS) or 0.0
        frame_count = self._cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0
        self.width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.duration = frame_count / self.fps if self.fps else 0.0
        self._current_time = 0.0

    @property
    def current_time(self) -> float:
        return self._current_time

    @current_time.setter
    def current_time(self, seconds: float):
        import cv2

        self._cap.set(cv2.CAP_PROP_POS_MSEC, seconds * 1000)
        self._current_time = seconds

    def read(self):
        """Decode the frame at the current position (BGR ndarray), or None."""
        ret, frame = self._cap.read()
        if not ret:
            return None
        return frame

    def close(self):
        self._cap.release()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
