"""
Processing resolution and coordinate mapping between processing and source space.
"""

from dataclasses import replace

from .constants import TARGET_HEIGHT
from .models import Box, Mask, Point, Resolution


def get_processing_resolution(source: Resolution, target_height: int = TARGET_HEIGHT) -> Resolution:
    """Downscale to `target_height` keeping the aspect ratio; never upscale."""
    if source.height <= target_height:
        return source

    width = round(target_height * source.width / source.height)
    return Resolution(width=width, height=target_height)


def _scale_mask(mask: Mask, sx: float, sy: float) -> Mask:
    return replace(mask, points=[Point(p.x * sx, p.y * sy) for p in mask.points])


def scale_to_source(mask: Mask, source: Resolution, processing: Resolution) -> Mask:
    """Map a mask from processing coordinates to source coordinates."""
    return _scale_mask(
        mask,
        source.width / processing.width,
        source.height / processing.height,
    )


def scale_to_processing(mask: Mask, source: Resolution, processing: Resolution) -> Mask:
    """Inverse of `scale_to_source`."""
    return _scale_mask(
        mask,
        processing.width / source.width,
        processing.height / source.height,
    )


def scale_box(box: Box, sx: float, sy: float) -> Box:
    x, y, w, h = box
    return (x * sx, y * sy, w * sx, h * sy)
