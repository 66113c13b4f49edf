"""
Background detection queue.

One worker thread drains a FIFO of submitted frames, running exactly one
detection at a time. Each item produces `ItemStarted` followed by either
`ItemCompleted` or `ItemFailed`, delivered to the listener in submission order
from the worker thread. `reset()` starts a new generation: everything
submitted before it, including the item in flight, is discarded without
further events.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from .models import Detection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemStarted:
    frame_id: str
    timestamp: float
    generation: int


@dataclass(frozen=True)
class ItemCompleted:
    frame_id: str
    timestamp: float
    detections: Tuple[Detection, ...]
    generation: int


@dataclass(frozen=True)
class ItemFailed:
    frame_id: str
    timestamp: float
    reason: str
    generation: int


@dataclass
class _WorkItem:
    frame_id: str
    image: Any
    timestamp: float
    generation: int


class ProcessingQueue:
    def __init__(self, process: Callable[[Any], Any],
                 listener: Optional[Callable[[object], None]] = None,
                 background: bool = True, name: str = "naturewatch-detector"):
        self.listener = listener
        self._process = process
        self._name = name
        self._items = deque()
        self._cond = threading.Condition()
        self._emit_lock = threading.RLock()
        self._generation = 0
        self._busy = False
        self._closed = False
        self._inline = not background
        self._thread = None

        if background:
            self._start_worker()

    def _start_worker(self):
        thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        try:
            thread.start()
        except RuntimeError as e:
            logger.warning(f"Background processing unavailable ({e}); frames will be processed in-line")
            self._inline = True
            return
        self._thread = thread

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def inline(self) -> bool:
        return self._inline

    @property
    def pending(self) -> int:
        """Items queued or in flight."""
        with self._cond:
            return len(self._items) + (1 if self._busy else 0)

    def submit(self, frame_id: str, image, timestamp: float = 0.0,
               generation: Optional[int] = None) -> bool:
        """Enqueue a frame for detection. Returns immediately unless in-line.

        A producer that captured `generation` earlier passes it back; if the
        queue has been reset since, the frame is dropped and False returned.
        """
        with self._cond:
            if self._closed:
                raise RuntimeError("Processing queue is closed")
            if generation is not None and generation != self._generation:
                logger.debug(f"Rejecting {frame_id} from generation {generation}")
                return False
            item = _WorkItem(frame_id, image, timestamp, self._generation)
            if not self._inline:
                self._items.append(item)
                self._cond.notify_all()
                return True

            self._busy = True
        try:
            self._execute(item)
        finally:
            with self._cond:
                self._busy = False
                self._cond.notify_all()
        return True

    def reset(self) -> int:
        """Drop pending work and silence in-flight work. Returns the number dropped."""
        with self._emit_lock:
            with self._cond:
                self._generation += 1
                dropped = len(self._items)
                self._items.clear()
                self._cond.notify_all()
        logger.info(f"Processing queue reset (generation {self._generation}), dropped {dropped} pending frames")
        return dropped

    def close(self, wait: bool = False, timeout: Optional[float] = None):
        self.reset()
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        if wait and self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is queued or in flight."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._items and not self._busy, timeout)

    def wait_for_capacity(self, max_pending: int, timeout: Optional[float] = None) -> bool:
        """Block until fewer than `max_pending` items are waiting."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._closed or len(self._items) < max_pending, timeout)

    def _run(self):
        while True:
            with self._cond:
                while not self._items and not self._closed:
                    self._cond.wait()
                if self._closed:
                    return
                item = self._items.popleft()
                self._busy = True
            try:
                self._execute(item)
            finally:
                with self._cond:
                    self._busy = False
                    self._cond.notify_all()

    def _execute(self, item: _WorkItem):
        self._emit(item, ItemStarted(item.frame_id, item.timestamp, item.generation))
        try:
            detections = self._process(item.image)
        except Exception as e:
            logger.warning(f"Detection failed for {item.frame_id}: {e}")
            reason = str(e) or type(e).__name__
            self._emit(item, ItemFailed(item.frame_id, item.timestamp, reason, item.generation))
        else:
            self._emit(item, ItemCompleted(item.frame_id, item.timestamp, tuple(detections), item.generation))

    def _emit(self, item: _WorkItem, event):
        with self._emit_lock:
            if item.generation != self._generation:
                logger.debug(f"Discarding stale event for {item.frame_id}")
                return
            if self.listener is None:
                return
            try:
                self.listener(event)
            except Exception:
                logger.exception(f"Queue listener failed on {type(event).__name__} for {item.frame_id}")
