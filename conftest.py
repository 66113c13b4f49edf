"""
Shared fakes for the NatureWatch test suite.
"""

import os
import threading
import time

import numpy as np
import pytest

from naturewatch import AnalysisConfig, AnalysisSession, Resolution, Video

# GUI tests run without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


class FakeVideoHandle:
    """Seekable stand-in for VideoSource.

    Every frame is filled with its analysis index (round(t * 10)) so a
    detector can tell which timestamp it was given.
    """

    def __init__(self, duration=1.0, width=64, height=48, fail_at=(), read_delay=0.0):
        self.duration = duration
        self.width = width
        self.height = height
        self.fail_at = set(fail_at)
        self.read_delay = read_delay
        self.seeks = []
        self.closed = False
        self.active_reads = 0
        self.max_active_reads = 0
        self._t = 0.0
        self._guard = threading.Lock()

    @property
    def current_time(self):
        return self._t

    @current_time.setter
    def current_time(self, seconds):
        self._t = seconds
        self.seeks.append(seconds)

    def read(self):
        with self._guard:
            self.active_reads += 1
            self.max_active_reads = max(self.max_active_reads, self.active_reads)
        try:
            if self.read_delay:
                time.sleep(self.read_delay)
            index = round(self._t * 10)
            if index in self.fail_at:
                return None
            return np.full((self.height, self.width, 3), index % 256, dtype=np.uint8)
        finally:
            with self._guard:
                self.active_reads -= 1

    def close(self):
        self.closed = True


class ScriptedDetector:
    """Detector capability returning canned predictions per frame index.

    `script` maps a frame index (the fill value of the image) to a list of
    predictions or to an exception instance to raise.
    """

    def __init__(self, script=None, default=None, delays=None):
        self.script = script or {}
        self.default = default or []
        self.delays = delays or {}
        self.calls = []
        self.active = 0
        self.max_active = 0
        self._guard = threading.Lock()

    def detect(self, image):
        index = int(image[0, 0, 0])
        with self._guard:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.calls.append(index)
        try:
            time.sleep(self.delays.get(index, 0.0))
            result = self.script.get(index, self.default)
            if isinstance(result, Exception):
                raise result
            return list(result)
        finally:
            with self._guard:
                self.active -= 1


def prediction(label, score, box=(10, 10, 20, 10)):
    return {'label': label, 'score': score, 'box': list(box)}


@pytest.fixture
def video():
    return Video(path="clip.mp4", duration=1.0, resolution=Resolution(64, 48), fps=30.0)


@pytest.fixture
def make_session(video):
    """Factory for sessions over fake handles; closes them after the test."""
    sessions = []

    def factory(detector, handle_factory=None, events=None, background=True, config=None, **video_changes):
        clip = Video(**{**video.__dict__, **video_changes}) if video_changes else video
        handles = []

        def source_factory():
            handle = handle_factory() if handle_factory else FakeVideoHandle(duration=clip.duration)
            handles.append(handle)
            return handle

        session = AnalysisSession(
            clip, detector,
            config=config or AnalysisConfig(extract_timeout=5.0),
            source_factory=source_factory,
            on_event=events.append if events is not None else None,
            background=background,
        )
        session.handles = handles
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        session.close()
