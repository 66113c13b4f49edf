"""
NatureWatch data models.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

Box = Tuple[float, float, float, float]  # x, y, width, height


@dataclass(frozen=True)
class Resolution:
    width: int
    height: int

    def to_dict(self) -> dict:
        return {'width': self.width, 'height': self.height}


@dataclass(frozen=True)
class Video:
    """Loaded video metadata."""
    path: str
    duration: float
    resolution: Resolution
    fps: float = 0.0


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def to_dict(self) -> dict:
        return {'x': self.x, 'y': self.y}


@dataclass
class Mask:
    """Closed polygon annotation on a frame."""
    id: str
    points: List[Point]
    label: str
    confidence: float
    category: str  # "static" or "dynamic"

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'points': [p.to_dict() for p in self.points],
            'label': self.label,
            'confidence': self.confidence,
            'category': self.category,
        }


@dataclass
class Segmentation:
    masks: List[Mask] = field(default_factory=list)

    @property
    def labels(self) -> List[str]:
        return [m.label for m in self.masks]

    @property
    def confidence(self) -> List[float]:
        return [m.confidence for m in self.masks]

    def to_dict(self) -> dict:
        return {
            'masks': [m.to_dict() for m in self.masks],
            'labels': self.labels,
            'confidence': self.confidence,
        }


@dataclass
class Frame:
    """One sampled timestamp with its segmentation."""
    id: str
    timestamp: float
    thumbnail: str = ""
    segmentation: Segmentation = field(default_factory=Segmentation)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'thumbnail': self.thumbnail,
            'segmentation': self.segmentation.to_dict(),
        }


@dataclass(frozen=True)
class Detection:
    """Normalized detector output for one object, in processing coordinates."""
    label: str
    confidence: float
    box: Box
    category: str = "static"


@dataclass(frozen=True)
class InventoryEntry:
    count: int
    last_confidence: float

    def to_dict(self) -> dict:
        return {'count': self.count, 'lastConfidence': self.last_confidence}


Inventory = Dict[str, InventoryEntry]


@dataclass
class ProcessedVideoData:
    """Analysis frames of a video. Points live in `resolution` (processing) space."""
    frames: List[Frame]
    duration: float
    resolution: Resolution
    source_resolution: Resolution

    def frame_by_id(self, frame_id: str) -> Frame:
        for frame in self.frames:
            if frame.id == frame_id:
                return frame
        raise KeyError(f"Unknown frame: {frame_id}")
