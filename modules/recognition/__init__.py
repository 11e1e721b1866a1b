"""Sign fusion and grammar smoothing."""
from .fusion_engine import FusionEngine
from .grammar_smoother import GrammarSmoother, GrammarRules

__all__ = [
    "FusionEngine",
    "GrammarSmoother",
    "GrammarRules",
]
