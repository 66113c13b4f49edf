"""
Analysis session - owns one video's frames and inventory and drives the pipeline.

Producers (the full-video batch, on-demand analysis, thumbnails) each use
their own video handle, so a seek from one never moves another's position.
All of them feed a single ProcessingQueue, which keeps the detector busy with
one frame at a time. Queue events are applied here, under one lock, by
replacing the frame list and inventory with new objects; `version` counts the
applied changes. Events from an older queue generation are ignored.
"""

import logging
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from .aggregation import add_mask, apply_detections, count_objects, delete_mask, update_inventory, update_mask
from .constants import AnalysisConfig
from .detection import DetectionAdapter, MediaPipeDetector
from .errors import ExtractionError
from .export import build_export, write_export
from .extraction import FrameExtractor, make_thumbnail
from .models import Frame, Inventory, Mask, Point, ProcessedVideoData, Video
from .processing import ItemCompleted, ItemFailed, ItemStarted, ProcessingQueue
from .resolution import get_processing_resolution
from .sampling import build_frames, find_frame, frame_index, map_to_preview
from .video import VideoSource, load_video

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameUpdated:
    frame: Frame
    version: int


@dataclass(frozen=True)
class ExtractionFailed:
    frame_id: str
    timestamp: float
    reason: str


@dataclass(frozen=True)
class BatchProgress:
    processed: int
    total: int

    @property
    def percent(self) -> float:
        return self.processed / self.total * 100 if self.total else 100.0


@dataclass
class BatchResult:
    total: int
    completed: int = 0
    failed: List[str] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class _BatchState:
    result: BatchResult
    processed: int = 0
    outstanding: Counter = field(default_factory=Counter)


class AnalysisSession:
    def __init__(self, video: Video, detector, config: Optional[AnalysisConfig] = None,
                 source_factory: Optional[Callable[[], object]] = None,
                 on_event: Optional[Callable[[object], None]] = None,
                 background: bool = True):
        self.video = video
        self.config = config or AnalysisConfig()
        self.on_event = on_event

        processing = get_processing_resolution(video.resolution, self.config.target_height)
        self.data = ProcessedVideoData(
            frames=build_frames(video.duration, self.config.analysis_fps, "frame"),
            duration=video.duration,
            resolution=processing,
            source_resolution=video.resolution,
        )
        self.inventory: Inventory = {}
        self.version = 0
        self.processing_index: Optional[int] = None

        self._preview = build_frames(video.duration, self.config.preview_fps, "preview")
        self._positions = {f.id: i for i, f in enumerate(self.data.frames)}
        self._source_factory = source_factory or (lambda: VideoSource(Path(video.path)))
        self._extractor = FrameExtractor()
        self._producers: Dict[str, tuple] = {}
        self._lock = threading.RLock()
        self._batch: Optional[_BatchState] = None
        self._closed = False

        self.adapter = DetectionAdapter(detector, video.resolution, processing)
        self.queue = ProcessingQueue(self.adapter.analyze, listener=self._on_queue_event,
                                     background=background)
        logger.info(
            f"Session for {Path(video.path).name}: {len(self.data.frames)} analysis frames, "
            f"{len(self._preview)} preview frames, processing at {processing.width}x{processing.height}"
        )

    @classmethod
    def open(cls, video_path: Path, detector=None, config: Optional[AnalysisConfig] = None,
             on_event: Optional[Callable[[object], None]] = None) -> "AnalysisSession":
        """Load a video file and create a session using the MediaPipe detector by default."""
        config = config or AnalysisConfig.from_env()
        video = load_video(Path(video_path))
        detector = detector or MediaPipeDetector(model_dir=config.model_dir)
        return cls(video, detector, config=config, on_event=on_event)

    # State access

    @property
    def frames(self) -> List[Frame]:
        with self._lock:
            return list(self.data.frames)

    def frame(self, frame_id: str) -> Frame:
        with self._lock:
            return self.data.frame_by_id(frame_id)

    def frame_at(self, timestamp: float) -> Optional[Frame]:
        with self._lock:
            return find_frame(self.data.frames, timestamp, self.config.timestamp_tolerance)

    def preview_frames(self) -> List[Frame]:
        """Preview frames carrying the segmentation of the matching analysis frame."""
        with self._lock:
            return map_to_preview(self._preview, self.data.frames, self.config.timestamp_tolerance)

    def statistics(self, frame_id: str) -> dict:
        return count_objects(self.frame(frame_id).segmentation.masks)

    # Producers

    def _producer(self, name: str):
        with self._lock:
            if self._closed:
                raise RuntimeError("Session is closed")
            if name not in self._producers:
                handle = self._source_factory()
                executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"naturewatch-{name}")
                self._producers[name] = (handle, executor)
            return self._producers[name]

    def _extract(self, producer: str, timestamp: float):
        handle, executor = self._producer(producer)
        future = executor.submit(self._extractor.extract, handle, timestamp)
        try:
            return future.result(timeout=self.config.extract_timeout)
        except FutureTimeout:
            raise ExtractionError(
                f"Seek to {timestamp:.3f}s did not complete within {self.config.extract_timeout}s")
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(f"Decoding failed at {timestamp:.3f}s: {e}") from e

    def _stopped(self, generation: int) -> bool:
        return self._closed or self.queue.generation != generation

    def analyze_all(self) -> BatchResult:
        """Extract and detect every analysis frame; blocks until the queue drains.

        Frames that fail extraction or detection are reported and left empty.
        """
        with self._lock:
            if self._batch is not None:
                raise RuntimeError("A full-video analysis is already running")
            generation = self.queue.generation
            frames = list(self.data.frames)
            batch = _BatchState(result=BatchResult(total=len(frames)))
            self._batch = batch

        logger.info(f"Analyzing {len(frames)} frames...")
        try:
            for frame in frames:
                if self._stopped(generation):
                    batch.result.cancelled = True
                    break

                try:
                    image = self._extract("batch", frame.timestamp)
                except ExtractionError as e:
                    if self._stopped(generation):
                        batch.result.cancelled = True
                        break
                    logger.warning(f"Extraction failed for {frame.id}: {e}")
                    self._record_extraction_failure(batch, frame, str(e))
                    continue
                except RuntimeError:
                    # Closed between the check above and handing work to the handle
                    if not self._closed:
                        raise
                    batch.result.cancelled = True
                    break

                # close() or cancel() may have run while the seek was in flight
                if self._stopped(generation):
                    batch.result.cancelled = True
                    break

                self.queue.wait_for_capacity(self.config.max_pending)
                with self._lock:
                    batch.outstanding[frame.id] += 1
                try:
                    accepted = self.queue.submit(frame.id, image, frame.timestamp, generation=generation)
                except RuntimeError:
                    if not self._closed:
                        raise
                    accepted = False
                if not accepted:
                    batch.result.cancelled = True
                    break

            self.queue.wait_idle()
        finally:
            with self._lock:
                self._batch = None

        if self.queue.generation != generation:
            batch.result.cancelled = True
        result = batch.result
        logger.info(
            f"Analysis finished: {result.completed}/{result.total} frames, "
            f"{len(result.failed)} failed{' (cancelled)' if result.cancelled else ''}"
        )
        return result

    def analyze_at(self, timestamp: float) -> str:
        """Queue on-demand analysis of the analysis frame nearest `timestamp`."""
        with self._lock:
            frames = self.data.frames
            if not frames:
                raise ValueError("Video has no analysis frames")
            frame = find_frame(frames, timestamp, self.config.timestamp_tolerance)
            if frame is None:
                index = frame_index(timestamp, self.config.analysis_fps)
                frame = frames[max(0, min(index, len(frames) - 1))]

        try:
            image = self._extract("interactive", frame.timestamp)
        except ExtractionError as e:
            logger.warning(f"Extraction failed for {frame.id}: {e}")
            self._notify([ExtractionFailed(frame.id, frame.timestamp, str(e))])
            raise

        self.queue.submit(frame.id, image, frame.timestamp)
        return frame.id

    def generate_thumbnails(self) -> int:
        """Fill in preview thumbnails. Returns how many were produced."""
        produced = 0
        for preview in list(self._preview):
            if self._closed:
                break
            try:
                thumbnail = make_thumbnail(self._extract("preview", preview.timestamp))
            except ExtractionError as e:
                logger.warning(f"No thumbnail for {preview.id}: {e}")
                continue
            with self._lock:
                self._preview = [
                    replace(p, thumbnail=thumbnail) if p.id == preview.id else p
                    for p in self._preview
                ]
            produced += 1
        logger.info(f"Generated {produced}/{len(self._preview)} thumbnails")
        return produced

    # Event application

    def _notify(self, events: Sequence[object]):
        if self.on_event is None:
            return
        for event in events:
            self.on_event(event)

    def _replace_frame(self, frame: Frame) -> FrameUpdated:
        frames = list(self.data.frames)
        frames[self._positions[frame.id]] = frame
        self.data = replace(self.data, frames=frames)
        self.version += 1
        return FrameUpdated(frame, self.version)

    def _record_extraction_failure(self, batch: _BatchState, frame: Frame, reason: str):
        with self._lock:
            batch.processed += 1
            batch.result.failed.append(frame.id)
            events = [
                ExtractionFailed(frame.id, frame.timestamp, reason),
                BatchProgress(batch.processed, batch.result.total),
            ]
        self._notify(events)

    def _on_queue_event(self, event):
        with self._lock:
            if self._closed or event.generation != self.queue.generation:
                return
            events = [event]

            if isinstance(event, ItemStarted):
                self.processing_index = self._positions.get(event.frame_id)
            elif isinstance(event, ItemCompleted):
                frame = apply_detections(self.data.frame_by_id(event.frame_id), event.detections,
                                         self.config.confidence_threshold)
                self.inventory = update_inventory(self.inventory, event.detections,
                                                  self.config.confidence_threshold)
                events.append(self._replace_frame(frame))

            if isinstance(event, (ItemCompleted, ItemFailed)):
                self.processing_index = None
                batch = self._batch
                if batch is not None and batch.outstanding[event.frame_id] > 0:
                    batch.outstanding[event.frame_id] -= 1
                    batch.processed += 1
                    if isinstance(event, ItemCompleted):
                        batch.result.completed += 1
                    else:
                        batch.result.failed.append(event.frame_id)
                    events.append(BatchProgress(batch.processed, batch.result.total))

        self._notify(events)

    # Manual edits

    def add_mask(self, frame_id: str, points: Sequence[Point], mask_id: Optional[str] = None) -> Mask:
        with self._lock:
            frame = add_mask(self.data.frame_by_id(frame_id), points, mask_id)
            update = self._replace_frame(frame)
        self._notify([update])
        return frame.segmentation.masks[-1]

    def update_mask(self, frame_id: str, mask_id: str, **changes) -> Mask:
        with self._lock:
            frame = update_mask(self.data.frame_by_id(frame_id), mask_id, **changes)
            update = self._replace_frame(frame)
        self._notify([update])
        return next(m for m in frame.segmentation.masks if m.id == mask_id)

    def delete_mask(self, frame_id: str, mask_id: str):
        with self._lock:
            frame = delete_mask(self.data.frame_by_id(frame_id), mask_id)
            update = self._replace_frame(frame)
        self._notify([update])

    # Export

    def export(self, processed_at: Optional[datetime] = None) -> dict:
        with self._lock:
            data, inventory = self.data, dict(self.inventory)
        return build_export(data, inventory, processed_at, self.config.confidence_threshold)

    def save_export(self, directory: Path) -> Path:
        return write_export(self.export(), directory)

    # Lifecycle

    def cancel(self) -> int:
        """Stop a running batch and drop every queued frame. Returns the number dropped."""
        return self.queue.reset()

    def close(self, wait: bool = False):
        """Tear down the queue and video handles; late results are discarded.

        Handles are released after any extraction still running on them, so
        `wait=True` can block for as long as a stuck seek does.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            producers = list(self._producers.values())
            self._producers.clear()
        self.queue.close()
        for handle, executor in producers:
            close = getattr(handle, 'close', None)
            if close is not None:
                executor.submit(close)
            executor.shutdown(wait=wait)
        logger.info(f"Session closed for {Path(self.video.path).name}")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
