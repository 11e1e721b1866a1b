"""
Shared domain types for the sign interpreter.

Centralizes enums and immutable result containers passed between the
extractors, the fusion engine, the grammar smoother and the result sinks.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Union


# =============================================================================
# Detection Types
# =============================================================================

class DetectionType(Enum):
    """Which extractor produced a detection."""
    GESTURE = "gesture"
    FACIAL_EXPRESSION = "facial_expression"


class ExpressionType(Enum):
    """Discrete facial expression classes."""
    EXPRESSIVE = "EXPRESSIVE"
    POSITIVE = "POSITIVE"
    NEUTRAL = "NEUTRAL"


def clamp_confidence(value: float) -> float:
    """Clamp a confidence value to [0, 1]."""
    return max(0.0, min(1.0, float(value)))


# =============================================================================
# Data Containers
# =============================================================================

class DetectionResult:
    """Single-frame output of one extractor.

    Uses __slots__ since one is created per frame per extractor.
    """

    __slots__ = ("type", "value", "confidence", "timestamp")

    def __init__(self, detection_type: DetectionType,
                 value: Union[int, ExpressionType], confidence: float):
        self.type = detection_type
        self.value = value
        self.confidence = clamp_confidence(confidence)
        self.timestamp = time.time()

    @classmethod
    def gesture(cls, finger_count: int, confidence: float) -> 'DetectionResult':
        return cls(DetectionType.GESTURE, int(finger_count), confidence)

    @classmethod
    def expression(cls, expression: ExpressionType, confidence: float) -> 'DetectionResult':
        return cls(DetectionType.FACIAL_EXPRESSION, expression, confidence)

    @property
    def label(self) -> str:
        """Token used when this detection is fused ("3", "POSITIVE")."""
        if isinstance(self.value, ExpressionType):
            return self.value.value
        return str(self.value)

    def __repr__(self):
        return f"DetectionResult({self.type.value}, {self.label}, conf={self.confidence:.2f})"


@dataclass(frozen=True)
class FusionResult:
    """A fused (and possibly grammar-corrected) sign with its confidence.

    Frozen: sinks receive the same instance and must not mutate it.
    """
    detected_sign: str
    confidence: float

    def __str__(self):
        return f"Sign: {self.detected_sign} (Confidence: {self.confidence:.2f})"


@dataclass(frozen=True)
class WordInfo:
    """One entry of the grammar smoother's recent history."""
    word: str
    confidence: float
    timestamp: float = field(default_factory=time.time)
