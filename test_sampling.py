"""
Tests for frame sampling and timestamp matching.
"""

import pytest

from naturewatch import Frame, Mask, Point, Segmentation, build_frames, find_frame, frame_index, map_to_preview
from naturewatch.sampling import sample_timestamps


def test_five_seconds_at_two_fps():
    assert sample_timestamps(5.0, 2) == [0, 0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0, 4.5]


def test_partial_interval_rounds_up():
    assert len(sample_timestamps(1.05, 10)) == 11
    assert sample_timestamps(0.3, 2) == [0.0]


def test_floating_noise_does_not_add_a_sample():
    assert len(sample_timestamps(0.3, 10)) == 3


def test_empty_or_invalid_input():
    assert sample_timestamps(0, 10) == []
    with pytest.raises(ValueError):
        sample_timestamps(5.0, 0)


def test_build_frames_ids_and_order():
    frames = build_frames(1.0, 10, prefix="frame")

    assert [f.id for f in frames[:3]] == ["frame-0", "frame-1", "frame-2"]
    assert len(frames) == 10
    timestamps = [f.timestamp for f in frames]
    assert timestamps == sorted(set(timestamps))
    assert all(f.segmentation.masks == [] for f in frames)


def test_find_frame_within_tolerance():
    frames = build_frames(2.0, 2)

    assert find_frame(frames, 0.55).id == "frame-1"
    assert find_frame(frames, 0.6).id == "frame-1"
    assert find_frame(frames, 0.75) is None
    assert find_frame([], 0.0) is None


def test_frame_index():
    assert frame_index(1.26, 10) == 13
    assert frame_index(0.0, 10) == 0


def test_analysis_results_map_onto_preview_frames():
    preview = build_frames(1.0, 2, prefix="preview")
    preview[1].thumbnail = "data:image/jpeg;base64,AAAA"
    analysis = build_frames(1.0, 10)
    bear = Mask("mask-0", [Point(0, 0), Point(1, 0), Point(1, 1)], "bear", 0.9, "dynamic")
    analysis[5] = Frame(analysis[5].id, analysis[5].timestamp, segmentation=Segmentation([bear]))

    mapped = map_to_preview(preview, analysis)

    assert [f.id for f in mapped] == ["preview-0", "preview-1"]
    assert mapped[0].segmentation.masks == []
    assert mapped[1].segmentation.labels == ["bear"]
    assert mapped[1].thumbnail == "data:image/jpeg;base64,AAAA"
