"""
Bounded-history grammar correction for the fused sign stream.

Keeps the last few emitted words, rewrites IS/ARE verb forms to agree
with a preceding subject, and adds a small confidence bonus when the
recent history follows SUBJECT -> VERB -> OBJECT ordering.
"""

import time
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, FrozenSet, Iterable, Mapping, Optional, Tuple

from core.events import Channel
from core.ring_buffer import RingBuffer
from core.types import FusionResult, WordInfo, clamp_confidence

logger = logging.getLogger(__name__)

COMPONENT = "GrammarSmoother"

SUBJECT = "SUBJECT"
VERB = "VERB"
OBJECT = "OBJECT"

DEFAULT_CATEGORIES = {
    SUBJECT: ("I", "YOU", "HE", "SHE", "WE", "THEY"),
    VERB: ("AM", "IS", "ARE", "GO", "WANT", "LIKE"),
    OBJECT: ("FOOD", "WATER", "HOME", "SCHOOL", "FRIEND"),
}

DEFAULT_AGREEMENT = {
    "I": "AM",
    "YOU": "ARE",
    "WE": "ARE",
    "THEY": "ARE",
}

# Consecutive category pairs that count as well-formed
VALID_SEQUENCES = ((SUBJECT, VERB), (VERB, OBJECT))


def _freeze(categories: Mapping[str, Iterable[str]]) -> Mapping[str, FrozenSet[str]]:
    return MappingProxyType({name: frozenset(tokens) for name, tokens in categories.items()})


@dataclass(frozen=True)
class GrammarRules:
    """Immutable category table and verb agreement forms.

    Built once and shared by reference; lookups are exact and case-sensitive.
    """
    categories: Mapping[str, FrozenSet[str]] = field(
        default_factory=lambda: _freeze(DEFAULT_CATEGORIES))
    agreement: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_AGREEMENT)))
    default_form: str = "IS"
    rewrite_prefixes: Tuple[str, ...] = ("IS", "ARE")

    @classmethod
    def from_dict(cls, config: dict) -> "GrammarRules":
        """Build rules from the `grammar` section of config.yaml."""
        categories = config.get("categories") or DEFAULT_CATEGORIES
        agreement = config.get("agreement") or DEFAULT_AGREEMENT
        return cls(
            categories=_freeze(categories),
            agreement=MappingProxyType(dict(agreement)),
            default_form=config.get("default_form", "IS"),
            rewrite_prefixes=tuple(config.get("rewrite_prefixes", ("IS", "ARE"))),
        )

    def in_category(self, token: str, category: str) -> bool:
        return token in self.categories.get(category, ())

    def category_of(self, token: str) -> Optional[str]:
        for name, tokens in self.categories.items():
            if token in tokens:
                return name
        return None

    def is_valid_sequence(self, first: str, second: str) -> bool:
        return any(self.in_category(first, a) and self.in_category(second, b)
                   for a, b in VALID_SEQUENCES)

    def agree(self, subject: str, token: str) -> str:
        """Replace a leading IS/ARE in `token` with the subject's verb form."""
        for prefix in self.rewrite_prefixes:
            if token.startswith(prefix):
                form = self.agreement.get(subject, self.default_form)
                return form + token[len(prefix):]
        return token


class GrammarSmoother:
    """Rewrites and re-scores fused results against recent history.

    The history is the only persistent state; it is written by the
    worker thread and may be snapshotted from any thread.
    """

    CONTEXT_WINDOW = 3

    def __init__(
        self,
        rules: Optional[GrammarRules] = None,
        capacity: int = 10,
        max_bonus: float = 0.1,
        error_log=None,
        subscribers: Iterable[Callable[[FusionResult], None]] = (),
        clock: Callable[[], float] = time.time,
    ):
        self._rules = rules or GrammarRules()
        self._history: RingBuffer[WordInfo] = RingBuffer(capacity)
        self._max_bonus = max_bonus
        self._errors = error_log
        self._clock = clock
        self.output: Channel[FusionResult] = Channel("grammar", subscribers)

        logger.info("GrammarSmoother initialized (history=%d, categories=%s)",
                    capacity, sorted(self._rules.categories))

    def process(self, result: FusionResult) -> FusionResult:
        """Record a fused result and return its corrected form.

        On any failure the original result is passed through unchanged.
        """
        try:
            smoothed = self._smooth(result)
        except Exception as e:
            if self._errors is not None:
                self._errors.record(COMPONENT, "Error processing result", e)
            else:
                logger.error("Error processing result: %s", e)
            smoothed = result

        self.output.publish(smoothed)
        return smoothed

    def _smooth(self, result: FusionResult) -> FusionResult:
        self._history.append(WordInfo(result.detected_sign, result.confidence, self._clock()))

        word = self._apply_agreement(result.detected_sign)
        bonus = self.context_bonus()
        confidence = clamp_confidence(result.confidence + bonus)

        if word != result.detected_sign:
            logger.debug("Agreement rewrite: %s -> %s", result.detected_sign, word)
        return FusionResult(word, confidence)

    def _apply_agreement(self, token: str) -> str:
        recent = [w.word for w in self._history.latest(self.CONTEXT_WINDOW)]
        if len(recent) < 2:
            return token

        previous = recent[-2]
        if self._rules.in_category(previous, SUBJECT):
            return self._rules.agree(previous, token)
        return token

    def context_bonus(self) -> float:
        """Share of well-formed consecutive pairs in history, scaled to max_bonus."""
        words = [w.word for w in self._history.snapshot()]
        if len(words) < 2:
            return 0.0

        pairs = list(zip(words, words[1:]))
        valid = sum(1 for first, second in pairs if self._rules.is_valid_sequence(first, second))
        return valid / len(pairs) * self._max_bonus

    def reset(self):
        """Clear the word history."""
        self._history.clear()

    @property
    def rules(self) -> GrammarRules:
        return self._rules

    @property
    def history(self) -> Tuple[WordInfo, ...]:
        """Snapshot of the history, oldest first."""
        return self._history.snapshot()

    @property
    def history_size(self) -> int:
        return len(self._history)

    @property
    def capacity(self) -> int:
        return self._history.capacity
