"""
Object detection - the MediaPipe detector capability and output normalization.
"""

import logging
import math
from pathlib import Path
from typing import List, Optional

from .constants import (
    ANIMAL_LABELS, APP_DIR, DETECTOR_MODEL_NAME, DETECTOR_MODEL_URL, STATIC_LABELS,
)
from .errors import DetectionError
from .models import Detection, Resolution

logger = logging.getLogger(__name__)


def classify_category(label: str) -> str:
    """Static for scenery, dynamic for animals, static when unsure."""
    label = label.lower()
    if any(item in label for item in STATIC_LABELS):
        return "static"
    if any(item in label for item in ANIMAL_LABELS):
        return "dynamic"
    return "static"


def normalize_prediction(prediction: dict) -> Detection:
    """Convert one raw {label, score, box} prediction into a Detection."""
    try:
        label = str(prediction['label']).strip()
        score = float(prediction['score'])
        box = tuple(float(v) for v in prediction['box'])
    except (KeyError, TypeError, ValueError) as e:
        raise DetectionError(f"Malformed prediction {prediction!r}: {e}") from e

    if not label:
        raise DetectionError(f"Prediction without label: {prediction!r}")
    if math.isnan(score) or not 0.0 <= score <= 1.0:
        raise DetectionError(f"Score out of range for {label}: {score}")
    if len(box) != 4 or box[2] < 0 or box[3] < 0:
        raise DetectionError(f"Invalid box for {label}: {box}")

    return Detection(label=label, confidence=score, box=box, category=classify_category(label))


class MediaPipeDetector:
    """Detector capability backed by the MediaPipe Tasks object detector.

    Takes a BGR image and returns [{label, score, box}] with box = [x, y, w, h]
    in the pixel space of that image. Not reentrant.
    """

    def __init__(self, model_path: Optional[Path] = None, model_dir: Path = APP_DIR,
                 score_threshold: float = 0.25, max_results: int = -1):
        self.model_path = Path(model_path) if model_path else Path(model_dir) / DETECTOR_MODEL_NAME
        self.score_threshold = score_threshold
        self.max_results = max_results
        self._detector = None

    def _ensure_model(self):
        if self._detector is not None:
            return self._detector

        from mediapipe.tasks import python
        from mediapipe.tasks.python import vision
        import urllib.request

        if not self.model_path.exists():
            logger.info(f"Downloading object detection model to {self.model_path}...")
            self.model_path.parent.mkdir(parents=True, exist_ok=True)
            urllib.request.urlretrieve(DETECTOR_MODEL_URL, self.model_path)

        logger.info("Initializing object detection...")
        base_options = python.BaseOptions(model_asset_path=str(self.model_path))
        options = vision.ObjectDetectorOptions(
            base_options=base_options,
            score_threshold=self.score_threshold,
            max_results=self.max_results,
        )
        self._detector = vision.ObjectDetector.create_from_options(options)
        return self._detector

    def detect(self, image) -> List[dict]:
        import cv2
        import mediapipe as mp

        detector = self._ensure_model()
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        results = detector.detect(mp_image)

        predictions = []
        for detection in results.detections:
            if not detection.categories:
                continue
            category = detection.categories[0]
            bbox = detection.bounding_box
            predictions.append({
                'label': category.category_name,
                'score': category.score,
                'box': [bbox.origin_x, bbox.origin_y, bbox.width, bbox.height],
            })
        return predictions

    def close(self):
        if self._detector is not None:
            self._detector.close()
            self._detector = None


class DetectionAdapter:
    """Runs the detector at processing resolution and normalizes its output."""

    def __init__(self, detector, source: Resolution, processing: Resolution):
        self.detector = detector
        self.source = source
        self.processing = processing

    def _to_processing(self, image):
        height, width = image.shape[:2]
        if (width, height) == (self.processing.width, self.processing.height):
            return image

        import cv2
        return cv2.resize(image, (self.processing.width, self.processing.height),
                          interpolation=cv2.INTER_AREA)

    def analyze(self, image) -> List[Detection]:
        frame = self._to_processing(image)
        try:
            predictions = self.detector.detect(frame)
        except DetectionError:
            raise
        except Exception as e:
            raise DetectionError(f"Detector failed: {e}") from e

        detections = [normalize_prediction(p) for p in predictions or []]
        logger.debug(f"Detector returned {len(detections)} objects")
        return detections
