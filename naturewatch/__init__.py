"""
NatureWatch - object detection and annotation for nature videos.

Samples a video into frames, runs each frame through an object detector in
the background, turns detections into editable polygon masks, keeps a
running inventory of the objects seen, and exports the result as JSON.
"""

from .constants import (
    TARGET_HEIGHT,
    PREVIEW_FPS, ANALYSIS_FPS,
    CONFIDENCE_THRESHOLD,
    TIMESTAMP_TOLERANCE,
    AnalysisConfig,
)
from .errors import NatureWatchError, ExtractionError, DetectionError, ExportError
from .models import (
    Resolution, Video, Point, Mask, Segmentation, Frame,
    Detection, InventoryEntry, ProcessedVideoData,
)
from .resolution import get_processing_resolution, scale_to_source, scale_to_processing
from .sampling import sample_timestamps, build_frames, find_frame, frame_index, map_to_preview
from .video import find_video_file, get_video_info, load_video, VideoSource
from .extraction import FrameExtractor, make_thumbnail
from .detection import classify_category, DetectionAdapter, MediaPipeDetector
from .processing import ProcessingQueue, ItemStarted, ItemCompleted, ItemFailed
from .aggregation import (
    box_to_polygon, polygon_bbox, filter_detections, apply_detections,
    update_inventory, add_mask, update_mask, delete_mask, count_objects,
)
from .export import build_export, write_export
from .session import AnalysisSession, BatchProgress, BatchResult, ExtractionFailed, FrameUpdated

__version__ = "1.0.0"

__all__ = [
    # Constants
    "TARGET_HEIGHT", "PREVIEW_FPS", "ANALYSIS_FPS",
    "CONFIDENCE_THRESHOLD", "TIMESTAMP_TOLERANCE", "AnalysisConfig",
    # Errors
    "NatureWatchError", "ExtractionError", "DetectionError", "ExportError",
    # Models
    "Resolution", "Video", "Point", "Mask", "Segmentation", "Frame",
    "Detection", "InventoryEntry", "ProcessedVideoData",
    # Resolution & sampling
    "get_processing_resolution", "scale_to_source", "scale_to_processing",
    "sample_timestamps", "build_frames", "find_frame", "frame_index", "map_to_preview",
    # Video & extraction
    "find_video_file", "get_video_info", "load_video", "VideoSource",
    "FrameExtractor", "make_thumbnail",
    # Detection & processing
    "classify_category", "DetectionAdapter", "MediaPipeDetector",
    "ProcessingQueue", "ItemStarted", "ItemCompleted", "ItemFailed",
    # Aggregation
    "box_to_polygon", "polygon_bbox", "filter_detections", "apply_detections",
    "update_inventory", "add_mask", "update_mask", "delete_mask", "count_objects",
    # Export & session
    "build_export", "write_export",
    "AnalysisSession", "BatchProgress", "BatchResult", "ExtractionFailed", "FrameUpdated",
]
