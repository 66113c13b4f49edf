"""
Tests for the background detection queue.
"""

import threading

import numpy as np
import pytest

from conftest import ScriptedDetector
from naturewatch import ItemCompleted, ItemFailed, ItemStarted, ProcessingQueue
from naturewatch import processing


def _names(events):
    kinds = {ItemStarted: "started", ItemCompleted: "completed", ItemFailed: "error"}
    return [(kinds[type(e)], e.frame_id) for e in events]


def _image(index):
    return np.full((4, 4, 3), index, dtype=np.uint8)


def test_events_follow_submission_order_even_when_later_items_are_faster():
    detector = ScriptedDetector(default=[], delays={0: 0.15, 1: 0.1, 2: 0.05})
    events = []
    queue = ProcessingQueue(detector.detect, listener=events.append)

    for i in range(3):
        queue.submit(f"frame-{i}", _image(i), timestamp=i / 10)
    assert queue.wait_idle(timeout=5)
    queue.close()

    assert _names(events) == [
        ("started", "frame-0"), ("completed", "frame-0"),
        ("started", "frame-1"), ("completed", "frame-1"),
        ("started", "frame-2"), ("completed", "frame-2"),
    ]
    assert detector.max_active == 1
    assert [e.timestamp for e in events if isinstance(e, ItemStarted)] == [0.0, 0.1, 0.2]


def test_submit_does_not_block_on_detection():
    gate = threading.Event()
    queue = ProcessingQueue(lambda image: gate.wait(5) and [])

    queue.submit("frame-0", _image(0))
    queue.submit("frame-1", _image(1))

    assert queue.pending == 2
    gate.set()
    assert queue.wait_idle(timeout=5)
    assert queue.pending == 0
    queue.close()


def test_failure_is_reported_and_queue_moves_on():
    detector = ScriptedDetector({1: RuntimeError("detector exploded")})
    events = []
    queue = ProcessingQueue(detector.detect, listener=events.append)

    for i in range(3):
        queue.submit(f"frame-{i}", _image(i))
    assert queue.wait_idle(timeout=5)
    queue.close()

    assert _names(events) == [
        ("started", "frame-0"), ("completed", "frame-0"),
        ("started", "frame-1"), ("error", "frame-1"),
        ("started", "frame-2"), ("completed", "frame-2"),
    ]
    assert events[3].reason == "detector exploded"


def test_reset_silences_pending_and_in_flight_items():
    gate = threading.Event()
    first_started = threading.Event()
    events = []

    def listener(event):
        events.append(event)
        if isinstance(event, ItemStarted) and event.frame_id == "old-0":
            first_started.set()

    def detect(image):
        if image[0, 0, 0] == 0:
            gate.wait(5)
        return []

    queue = ProcessingQueue(detect, listener=listener)
    for i in range(5):
        queue.submit(f"old-{i}", _image(i))
    assert first_started.wait(5)

    dropped = queue.reset()
    seen_before_reset = len(events)
    gate.set()

    queue.submit("new-0", _image(9))
    assert queue.wait_idle(timeout=5)
    queue.close()

    assert dropped == 4
    after = events[seen_before_reset:]
    assert _names(after) == [("started", "new-0"), ("completed", "new-0")]
    assert all(e.generation == 1 for e in after)


def test_listener_errors_do_not_stop_the_worker():
    calls = []

    def listener(event):
        calls.append(event)
        raise ValueError("ui went away")

    queue = ProcessingQueue(lambda image: [], listener=listener)
    queue.submit("frame-0", _image(0))
    queue.submit("frame-1", _image(1))
    assert queue.wait_idle(timeout=5)
    queue.close()

    assert len(calls) == 4


def test_in_line_processing_when_requested():
    events = []
    queue = ProcessingQueue(lambda image: [], listener=events.append, background=False)

    queue.submit("frame-0", _image(0))

    assert queue.inline
    assert _names(events) == [("started", "frame-0"), ("completed", "frame-0")]


def test_falls_back_to_in_line_when_no_thread_can_start(monkeypatch):
    class RefusingThread(threading.Thread):
        def start(self):
            raise RuntimeError("can't start new thread")

    monkeypatch.setattr(processing.threading, "Thread", RefusingThread)
    events = []
    queue = ProcessingQueue(lambda image: [], listener=events.append)
    monkeypatch.undo()

    queue.submit("frame-0", _image(0))

    assert queue.inline
    assert _names(events) == [("started", "frame-0"), ("completed", "frame-0")]


def test_closed_queue_rejects_work():
    queue = ProcessingQueue(lambda image: [])
    queue.close(wait=True, timeout=5)

    with pytest.raises(RuntimeError):
        queue.submit("frame-0", _image(0))


def test_wait_for_capacity():
    gate = threading.Event()
    queue = ProcessingQueue(lambda image: gate.wait(5) and [])
    for i in range(3):
        queue.submit(f"frame-{i}", _image(i))

    assert not queue.wait_for_capacity(1, timeout=0.05)
    gate.set()
    assert queue.wait_for_capacity(1, timeout=5)
    queue.close()
