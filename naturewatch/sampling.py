"""
Frame sampling - timestamps for preview thumbnails and analysis frames.
"""

import math
from dataclasses import replace
from typing import List, Optional

from .constants import TIMESTAMP_TOLERANCE
from .models import Frame, Segmentation


def sample_timestamps(duration: float, fps: float) -> List[float]:
    """Return ceil(duration * fps) timestamps spaced 1/fps apart, starting at 0."""
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")
    if duration <= 0:
        return []

    # 0.3 * 10 == 3.0000000000000004 must not produce a 4th sample
    count = math.ceil(round(duration * fps, 9))
    return [i / fps for i in range(count)]


def build_frames(duration: float, fps: float, prefix: str = "frame") -> List[Frame]:
    """Create one empty Frame per sampled timestamp."""
    return [
        Frame(id=f"{prefix}-{i}", timestamp=t)
        for i, t in enumerate(sample_timestamps(duration, fps))
    ]


def frame_index(timestamp: float, fps: float) -> int:
    return round(timestamp * fps)


def find_frame(frames: List[Frame], timestamp: float,
               tolerance: float = TIMESTAMP_TOLERANCE) -> Optional[Frame]:
    """Nearest frame to `timestamp`, or None if none lies within `tolerance`."""
    if not frames:
        return None

    nearest = min(frames, key=lambda f: abs(f.timestamp - timestamp))
    if abs(nearest.timestamp - timestamp) <= tolerance:
        return nearest
    return None


def map_to_preview(preview_frames: List[Frame], analysis_frames: List[Frame],
                   tolerance: float = TIMESTAMP_TOLERANCE) -> List[Frame]:
    """Copy each analysis result onto the preview frame sharing its timestamp.

    Preview frames without an analysis frame nearby keep an empty segmentation.
    Thumbnails always come from the preview frame.
    """
    mapped = []
    for preview in preview_frames:
        match = find_frame(analysis_frames, preview.timestamp, tolerance)
        segmentation = Segmentation(list(match.segmentation.masks)) if match else Segmentation()
        mapped.append(replace(preview, segmentation=segmentation))
    return mapped
