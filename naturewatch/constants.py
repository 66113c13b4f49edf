"""
NatureWatch constants and configuration.
"""

import os
from dataclasses import dataclass
from pathlib import Path

# Processing resolution cap (longer-constrained axis is height)
TARGET_HEIGHT = 720

# Sampling rates
PREVIEW_FPS = 2.0  # Thumbnails for the filmstrip
ANALYSIS_FPS = 10.0  # Frames sent to the detector

# Detections must score strictly above this to become masks / inventory entries
CONFIDENCE_THRESHOLD = 0.5

# Max distance in seconds when matching a time to a sampled frame
TIMESTAMP_TOLERANCE = 0.1

# Filmstrip thumbnails
THUMBNAIL_WIDTH = 160
THUMBNAIL_HEIGHT = 90
THUMBNAIL_QUALITY = 70

# Defaults for a hand-drawn mask (no detector ran on it)
NEW_MASK_LABEL = "New Object"
NEW_MASK_CONFIDENCE = 1.0
NEW_MASK_CATEGORY = "static"
MIN_POLYGON_POINTS = 3

CATEGORIES = ("static", "dynamic")

# Caller-side limits for the analysis pipeline
EXTRACT_TIMEOUT = 10.0  # seconds to wait for a seek to complete
MAX_PENDING = 8  # frames held in the queue before the batch producer waits

APP_DIR = Path.home() / ".naturewatch"

DETECTOR_MODEL_NAME = "efficientdet_lite0.tflite"
DETECTOR_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/object_detector/"
    "efficientdet_lite0/float16/1/efficientdet_lite0.tflite"
)

# Label keywords, matched by substring
STATIC_LABELS = (
    "tree", "mountain", "rock", "bush", "lake", "river",
    "forest", "plant", "grass", "flower", "beach", "desert",
    "waterfall", "cave", "cliff", "valley", "meadow",
)

ANIMAL_LABELS = (
    # Common pets and farm animals
    "bird", "cat", "dog", "horse", "sheep", "cow",
    # Large mammals
    "elephant", "bear", "zebra", "giraffe", "tiger", "lion",
    "wolf", "deer", "buffalo", "rhinoceros", "hippopotamus",
    # Primates
    "monkey", "gorilla", "chimpanzee", "orangutan", "panda",
    # Small mammals
    "rabbit", "mouse", "fox", "raccoon", "squirrel", "hamster",
    "hedgehog", "skunk", "beaver",
    # Marine animals
    "whale", "dolphin", "fish", "shark", "seal", "turtle",
    "octopus", "starfish", "crab",
    # Birds
    "duck", "penguin", "eagle", "owl", "parrot", "swan",
    "peacock", "chicken", "turkey", "goose",
    # Reptiles and amphibians
    "snake", "lizard", "frog", "toad", "crocodile", "alligator",
    "iguana", "chameleon",
)


@dataclass
class AnalysisConfig:
    """Tunable pipeline settings. Defaults mirror the module constants."""
    target_height: int = TARGET_HEIGHT
    preview_fps: float = PREVIEW_FPS
    analysis_fps: float = ANALYSIS_FPS
    confidence_threshold: float = CONFIDENCE_THRESHOLD
    timestamp_tolerance: float = TIMESTAMP_TOLERANCE
    extract_timeout: float = EXTRACT_TIMEOUT
    max_pending: int = MAX_PENDING
    model_dir: Path = APP_DIR

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        """Build a config, overriding defaults from NATUREWATCH_* variables."""
        env = os.environ
        return cls(
            target_height=int(env.get("NATUREWATCH_TARGET_HEIGHT", TARGET_HEIGHT)),
            preview_fps=float(env.get("NATUREWATCH_PREVIEW_FPS", PREVIEW_FPS)),
            analysis_fps=float(env.get("NATUREWATCH_ANALYSIS_FPS", ANALYSIS_FPS)),
            confidence_threshold=float(env.get("NATUREWATCH_CONFIDENCE_THRESHOLD", CONFIDENCE_THRESHOLD)),
            timestamp_tolerance=float(env.get("NATUREWATCH_TIMESTAMP_TOLERANCE", TIMESTAMP_TOLERANCE)),
            extract_timeout=float(env.get("NATUREWATCH_EXTRACT_TIMEOUT", EXTRACT_TIMEOUT)),
            max_pending=int(env.get("NATUREWATCH_MAX_PENDING", MAX_PENDING)),
            model_dir=Path(env.get("NATUREWATCH_MODEL_DIR", str(APP_DIR))),
        )
