"""Per-frame feature extractors."""
from .hand_gesture import HandGestureExtractor, HandGestureConfig
from .face_expression import FaceExpressionExtractor, FaceExpressionConfig

__all__ = [
    "HandGestureExtractor",
    "HandGestureConfig",
    "FaceExpressionExtractor",
    "FaceExpressionConfig",
]
