"""
Frame extraction - still images at a timestamp, plus filmstrip thumbnails.
"""

import base64
import logging
import threading
import weakref

from .constants import THUMBNAIL_HEIGHT, THUMBNAIL_QUALITY, THUMBNAIL_WIDTH
from .errors import ExtractionError

logger = logging.getLogger(__name__)


class FrameExtractor:
    """Grabs native-resolution frames from seekable video handles.

    A handle is anything with `duration`, a settable `current_time` and a
    blocking `read()` (see `VideoSource`). Extraction is single-flight per
    handle: concurrent calls on the same handle queue up on its lock, calls on
    different handles run independently. No timeout is applied here; a seek
    that never completes blocks the caller, which must bound the wait itself.
    """

    def __init__(self):
        self._locks = weakref.WeakKeyDictionary()
        self._guard = threading.Lock()

    def _lock_for(self, handle) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(handle)
            if lock is None:
                lock = threading.Lock()
                self._locks[handle] = lock
            return lock

    def extract(self, handle, timestamp: float):
        duration = getattr(handle, 'duration', 0.0) or 0.0
        if timestamp < 0 or (duration and timestamp > duration):
            raise ExtractionError(f"Timestamp {timestamp:.3f}s outside video (0-{duration:.3f}s)")

        with self._lock_for(handle):
            handle.current_time = timestamp
            image = handle.read()

        if image is None:
            raise ExtractionError(f"No decodable frame at {timestamp:.3f}s")
        logger.debug(f"Extracted frame at {timestamp:.3f}s")
        return image


def make_thumbnail(image, width: int = THUMBNAIL_WIDTH, height: int = THUMBNAIL_HEIGHT,
                   quality: int = THUMBNAIL_QUALITY) -> str:
    """Encode a BGR image as a small JPEG data URL for the filmstrip."""
    import cv2

    small = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)
    ok, buffer = cv2.imencode('.jpg', small, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise ExtractionError("Thumbnail encoding failed")
    return "data:image/jpeg;base64," + base64.b64encode(buffer.tobytes()).decode('ascii')
