"""Backend route detection for API files."""

from .core import RouteDetector, detect_backend, join_paths, normalize_path, path_params
from .detectors import DEFAULT_DETECTORS, ExpressDetector, NestDetector

__all__ = [
    "DEFAULT_DETECTORS",
    "ExpressDetector",
    "NestDetector",
    "RouteDetector",
    "detect_backend",
    "join_paths",
    "normalize_path",
    "path_params",
]
