"""
Aggregation of detections into frame masks and the persistent object inventory.

Every function returns new objects and leaves its inputs untouched, so the
single writer (`AnalysisSession`) can swap state atomically.
"""

import uuid
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

from .constants import (
    CATEGORIES, CONFIDENCE_THRESHOLD, MIN_POLYGON_POINTS,
    NEW_MASK_CATEGORY, NEW_MASK_CONFIDENCE, NEW_MASK_LABEL,
)
from .models import Box, Detection, Frame, Inventory, InventoryEntry, Mask, Point, Segmentation


def box_to_polygon(box: Box) -> List[Point]:
    """[x, y, w, h] -> four corners, clockwise from top-left."""
    x, y, w, h = box
    return [
        Point(x, y),
        Point(x + w, y),
        Point(x + w, y + h),
        Point(x, y + h),
    ]


def polygon_bbox(points: Sequence[Point]) -> List[float]:
    """Axis-aligned [x, y, w, h] enclosing a polygon."""
    if not points:
        return [0, 0, 0, 0]
    xs = [p.x for p in points]
    ys = [p.y for p in points]
    return [min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys)]


def filter_detections(detections: Iterable[Detection],
                      threshold: float = CONFIDENCE_THRESHOLD) -> List[Detection]:
    return [d for d in detections if d.confidence > threshold]


def apply_detections(frame: Frame, detections: Iterable[Detection],
                     threshold: float = CONFIDENCE_THRESHOLD) -> Frame:
    """Replace a frame's segmentation with masks built from accepted detections."""
    masks = [
        Mask(
            id=f"mask-{i}",
            points=box_to_polygon(d.box),
            label=d.label,
            confidence=d.confidence,
            category=d.category,
        )
        for i, d in enumerate(filter_detections(detections, threshold))
    ]
    return replace(frame, segmentation=Segmentation(masks))


def update_inventory(prev: Inventory, detections: Iterable[Detection],
                     threshold: float = CONFIDENCE_THRESHOLD) -> Inventory:
    """Fold one frame's detections into the inventory.

    Labels seen in this frame are overwritten with this frame's count and the
    score of their last accepted occurrence. Labels absent from this frame are
    kept as they were while their stored confidence still clears the threshold.
    Stored confidence is never lowered over time.
    """
    current: Dict[str, InventoryEntry] = {}
    for d in filter_detections(detections, threshold):
        seen = current.get(d.label)
        count = seen.count + 1 if seen else 1
        current[d.label] = InventoryEntry(count=count, last_confidence=d.confidence)

    inventory: Dict[str, InventoryEntry] = {}
    for label, entry in prev.items():
        if label in current:
            inventory[label] = current[label]
        elif entry.last_confidence > threshold:
            inventory[label] = entry
    for label, entry in current.items():
        inventory.setdefault(label, entry)
    return inventory


def _validate_points(points: Sequence[Point]):
    if len(points) < MIN_POLYGON_POINTS:
        raise ValueError(f"A polygon needs at least {MIN_POLYGON_POINTS} points, got {len(points)}")


def _mask_index(frame: Frame, mask_id: str) -> int:
    for i, mask in enumerate(frame.segmentation.masks):
        if mask.id == mask_id:
            return i
    raise KeyError(f"No mask {mask_id} on {frame.id}")


def add_mask(frame: Frame, points: Sequence[Point], mask_id: Optional[str] = None) -> Frame:
    """Append a hand-drawn polygon with the default label, category and confidence."""
    _validate_points(points)
    mask_id = mask_id or f"mask-{uuid.uuid4().hex[:8]}"
    if any(m.id == mask_id for m in frame.segmentation.masks):
        raise ValueError(f"Mask {mask_id} already exists on {frame.id}")

    mask = Mask(
        id=mask_id,
        points=list(points),
        label=NEW_MASK_LABEL,
        confidence=NEW_MASK_CONFIDENCE,
        category=NEW_MASK_CATEGORY,
    )
    return replace(frame, segmentation=Segmentation(frame.segmentation.masks + [mask]))


def update_mask(frame: Frame, mask_id: str, label: Optional[str] = None,
                category: Optional[str] = None, confidence: Optional[float] = None,
                points: Optional[Sequence[Point]] = None) -> Frame:
    changes = {}
    if label is not None:
        changes['label'] = label
    if category is not None:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category: {category}")
        changes['category'] = category
    if confidence is not None:
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"Confidence must be within [0, 1], got {confidence}")
        changes['confidence'] = float(confidence)
    if points is not None:
        _validate_points(points)
        changes['points'] = list(points)

    index = _mask_index(frame, mask_id)
    masks = list(frame.segmentation.masks)
    masks[index] = replace(masks[index], **changes)
    return replace(frame, segmentation=Segmentation(masks))


def delete_mask(frame: Frame, mask_id: str) -> Frame:
    index = _mask_index(frame, mask_id)
    masks = [m for i, m in enumerate(frame.segmentation.masks) if i != index]
    return replace(frame, segmentation=Segmentation(masks))


def count_objects(masks: Iterable[Mask]) -> dict:
    """Per-label counts split by category, plus the total mask count."""
    stats = {'static': {}, 'dynamic': {}, 'total': 0}
    for mask in masks:
        bucket = stats.setdefault(mask.category, {})
        bucket[mask.label] = bucket.get(mask.label, 0) + 1
        stats['total'] += 1
    return stats
