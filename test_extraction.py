"""
Tests for frame extraction and thumbnails.
"""

import base64
import threading

import numpy as np
import pytest

from conftest import FakeVideoHandle
from naturewatch import ExtractionError, FrameExtractor, make_thumbnail


def test_extract_seeks_then_reads_native_resolution():
    handle = FakeVideoHandle(duration=2.0, width=1920, height=1080)

    image = FrameExtractor().extract(handle, 1.2)

    assert handle.seeks == [1.2]
    assert image.shape == (1080, 1920, 3)
    assert image[0, 0, 0] == 12


def test_out_of_range_timestamp_is_rejected():
    handle = FakeVideoHandle(duration=1.0)
    extractor = FrameExtractor()

    with pytest.raises(ExtractionError):
        extractor.extract(handle, -0.1)
    with pytest.raises(ExtractionError):
        extractor.extract(handle, 5.0)
    assert handle.seeks == []


def test_undecodable_frame_raises():
    handle = FakeVideoHandle(duration=1.0, fail_at={3})

    with pytest.raises(ExtractionError):
        FrameExtractor().extract(handle, 0.3)


def test_extraction_is_single_flight_per_handle():
    handle = FakeVideoHandle(duration=1.0, read_delay=0.02)
    extractor = FrameExtractor()
    results = {}

    def grab(t):
        results[t] = int(extractor.extract(handle, t)[0, 0, 0])

    threads = [threading.Thread(target=grab, args=(i / 10,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert handle.max_active_reads == 1
    assert results == {i / 10: i for i in range(8)}


def test_separate_handles_do_not_share_a_lock():
    extractor = FrameExtractor()
    first, second = FakeVideoHandle(), FakeVideoHandle()

    assert extractor._lock_for(first) is extractor._lock_for(first)
    assert extractor._lock_for(first) is not extractor._lock_for(second)


def test_thumbnail_is_jpeg_data_url():
    image = np.zeros((1080, 1920, 3), dtype=np.uint8)

    thumbnail = make_thumbnail(image)

    assert thumbnail.startswith("data:image/jpeg;base64,")
    payload = base64.b64decode(thumbnail.split(",", 1)[1])
    assert payload[:2] == b"\xff\xd8"
