"""
Exception types raised by the analysis pipeline.
"""


class NatureWatchError(Exception):
    """Base class for NatureWatch failures."""


class ExtractionError(NatureWatchError):
    """A frame could not be decoded at the requested timestamp."""


class DetectionError(NatureWatchError):
    """The detector raised or returned output that cannot be normalized."""


class ExportError(NatureWatchError):
    """The export report could not be built or written."""
