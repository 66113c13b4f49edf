"""
Export - JSON analysis report built from the accumulated session state.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .aggregation import polygon_bbox
from .constants import CONFIDENCE_THRESHOLD
from .errors import ExportError
from .models import Inventory, ProcessedVideoData
from .resolution import scale_to_source

logger = logging.getLogger(__name__)


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def build_export(data: ProcessedVideoData, inventory: Inventory,
                 processed_at: Optional[datetime] = None,
                 threshold: float = CONFIDENCE_THRESHOLD) -> dict:
    """Build the report dict. Points are rescaled to source resolution and
    bounding boxes recomputed from them, so manual polygon edits are honored.
    """
    processed_at = processed_at or datetime.now(timezone.utc)

    try:
        frames = []
        frame_means = []
        unique_labels = set()

        for frame in data.frames:
            objects = []
            for mask in frame.segmentation.masks:
                scaled = scale_to_source(mask, data.source_resolution, data.resolution)
                objects.append({
                    'label': mask.label,
                    'category': mask.category,
                    'confidence': mask.confidence,
                    'points': [p.to_dict() for p in scaled.points],
                    'boundingBox': polygon_bbox(scaled.points),
                })
                unique_labels.add(mask.label)
            frames.append({'timestamp': frame.timestamp, 'objects': objects})
            frame_means.append(_mean(frame.segmentation.confidence))

        detected = {
            label: entry.to_dict()
            for label, entry in inventory.items()
            if entry.last_confidence > threshold
        }

        return {
            'metadata': {
                'duration': data.duration,
                'resolution': data.source_resolution.to_dict(),
                'processedAt': processed_at.isoformat(),
                'totalFrames': len(data.frames),
                'detectedObjects': detected,
            },
            'frames': frames,
            'summary': {
                'uniqueObjects': sorted(unique_labels),
                'averageConfidence': _mean(frame_means),
            },
        }
    except (AttributeError, KeyError, TypeError, ValueError, ZeroDivisionError) as e:
        raise ExportError(f"Cannot build export: {e}") from e


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"video-analysis-{now.strftime('%Y%m%dT%H%M%SZ')}.json"


def write_export(export: dict, directory: Path, now: Optional[datetime] = None) -> Path:
    """Write the report as UTF-8 JSON.

    The report goes to a temporary file first and is renamed into place, so a
    failed serialization or write never leaves a file under the final name.
    """
    try:
        payload = json.dumps(export, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise ExportError(f"Cannot serialize export: {e}") from e

    output_path = Path(directory) / export_filename(now)
    tmp_name = None
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile('w', encoding='utf-8', dir=output_path.parent,
                                         prefix='.video-analysis-', suffix='.tmp',
                                         delete=False) as f:
            tmp_name = f.name
            f.write(payload)
        os.replace(tmp_name, output_path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise ExportError(f"Cannot write {output_path}: {e}") from e

    logger.info(f"Export saved to: {output_path}")
    return output_path
