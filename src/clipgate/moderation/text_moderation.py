"""Transcript moderation: blocklist, benign pre-filter and remote signals."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..ingest.ingest_errors import ClassifierError
from ..providers.providers_base import TextClassificationService, TextSignals

logger = logging.getLogger(__name__)

DEFAULT_BLOCKLIST: tuple[str, ...] = (
    # Explicit profanity
    "fuck",
    "fucking",
    "shit",
    "bitch",
    "asshole",
    "bastard",
    "cunt",
    "dickhead",
    # Hate speech indicators
    "nigger",
    "faggot",
    "retard",
    # Violence and threats
    "kill yourself",
    "die bitch",
    "murder",
    "terrorist",
    "bomb threat",
    "school shooter",
    # Bullying
    "ugly bitch",
    "nobody likes you",
    # Hostile proselytizing
    "burn in hell",
    "god hates",
    "convert or die",
)

INAPPROPRIATE_CATEGORIES: tuple[str, ...] = (
    "Adult",
    "Violence",
    "Toxic",
    "Severe Toxicity",
    "Identity Attack",
    "Insult",
    "Profanity",
    "Threat",
)

_BENIGN_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"^(oh\s+)?(hello|hi|hey)(\s+there)?(\s+world)?$",
        r"^(good\s+)?(morning|afternoon|evening|night)$",
        r"^how\s+are\s+you(\s+doing)?$",
        r"^nice\s+to\s+(meet|see)\s+you$",
        r"^take\s+care$",
        r"^see\s+you\s+(later|soon)$",
        r"^what[’']?s\s+up$",
        r"^how[’']?s\s+it\s+going$",
        r"^(hello\s+)+(hi\s+)*how\s+are\s+you(\s+doing)?$",
        r"^(oh\s+)*(hello|hi|hey)(\s+there)?(\s+world)?(\s+how\s+are\s+you)?$",
        r"^(hello|hi|hey|thanks|thank\s+you|yes|ok|okay|sure|great|good|nice|cool|awesome|wonderful)$",
        r"^(it[’']?s\s+)?(beautiful|nice|lovely|great|good)\s+(day|weather)$",
        r"^(have\s+a\s+)?(good|great|nice|wonderful)\s+(day|time|weekend)$",
    )
)

BENIGN_VOCABULARY = frozenset(
    """
    hello hi hey oh there world how are you doing good morning afternoon
    evening night nice to meet see take care later soon what whats up hows it
    going thanks thank yes ok okay sure great cool awesome wonderful beautiful
    lovely day weather have a time weekend the is its
    """.split()
)
BENIGN_MAX_WORDS = 8


@dataclass(slots=True)
class TextVerdict:
    passed: bool
    reason: str | None = None
    toxicity: float = 0.0
    categories: list[str] = field(default_factory=list)
    source: str = "blocklist"


def normalize_text(text: str) -> str:
    lowered = text.lower().strip()
    lowered = re.sub(r"[.,!?;:]", " ", lowered)
    return re.sub(r"\s+", " ", lowered).strip()


def is_obviously_benign(text: str) -> bool:
    """Short greeting-like phrases that upstream classifiers over-flag."""

    normalized = normalize_text(text)
    if not normalized:
        return True
    if any(pattern.match(normalized) for pattern in _BENIGN_PATTERNS):
        return True
    words = normalized.replace("’", "").replace("'", "").split(" ")
    return len(words) <= BENIGN_MAX_WORDS and all(word in BENIGN_VOCABULARY for word in words)


class Blocklist:
    """Case-insensitive whole-word phrase matcher."""

    def __init__(self, phrases: Iterable[str] = DEFAULT_BLOCKLIST) -> None:
        self.phrases = tuple(dict.fromkeys(phrase.strip().lower() for phrase in phrases if phrase.strip()))
        self._patterns = [
            (phrase, re.compile(rf"\b{re.escape(phrase)}\b", re.IGNORECASE))
            for phrase in self.phrases
        ]

    def find(self, text: str) -> str | None:
        for phrase, pattern in self._patterns:
            if pattern.search(text):
                return phrase
        return None


def evaluate_signals(
    signals: TextSignals,
    *,
    threshold: float,
    categories: Iterable[str] = INAPPROPRIATE_CATEGORIES,
) -> TextVerdict:
    """Turn remote sentiment/category signals into a verdict."""

    reasons: list[str] = []
    toxicity = 0.0
    if signals.score < -0.5 and signals.magnitude > 0.8:
        toxicity = abs(signals.score) * signals.magnitude
        if toxicity > threshold:
            reasons.append("High toxicity detected")

    lowered = [category.lower() for category in categories]
    flagged = [
        name
        for name in signals.categories
        if any(needle in name.lower() for needle in lowered)
    ]
    reasons.extend(f"Inappropriate content category: {name}" for name in flagged)
    return TextVerdict(
        passed=not reasons,
        reason="; ".join(reasons) or None,
        toxicity=toxicity,
        categories=list(signals.categories),
        source="classifier",
    )


@dataclass(slots=True)
class TextModerator:
    """Blocklist first, then the remote classifier unless the text is benign.

    When the remote classifier errors the blocklist verdict stands.
    """

    blocklist: Blocklist = field(default_factory=Blocklist)
    classifier: TextClassificationService | None = None
    threshold: float = 0.7
    video_threshold: float = 0.5
    log: logging.Logger = field(default_factory=lambda: logger)

    async def moderate(self, text: str, *, video_context: bool = False) -> TextVerdict:
        if not text or not text.strip():
            return TextVerdict(passed=True, source="empty")

        phrase = self.blocklist.find(text)
        if phrase is not None:
            self.log.info("moderation.text.blocklisted", extra={"phrase": phrase})
            return TextVerdict(
                passed=False,
                reason=f'Contains inappropriate language: "{phrase}"',
                source="blocklist",
            )

        if self.classifier is None:
            return TextVerdict(passed=True, source="blocklist")

        if is_obviously_benign(text):
            self.log.info("moderation.text.benign_prefilter", extra={"text_len": len(text)})
            return TextVerdict(passed=True, source="prefilter")

        try:
            signals = await self.classifier.analyze(text.strip())
        except ClassifierError as exc:
            self.log.warning(
                "moderation.text.classifier_unavailable",
                extra={"error": str(exc), "category": exc.category.value if exc.category else None},
            )
            return TextVerdict(passed=True, source="blocklist")

        threshold = self.video_threshold if video_context else self.threshold
        verdict = evaluate_signals(signals, threshold=threshold)
        self.log.info(
            "moderation.text.classified",
            extra={
                "passed": verdict.passed,
                "toxicity": round(verdict.toxicity, 3),
                "categories": verdict.categories,
            },
        )
        return verdict


__all__ = [
    "BENIGN_VOCABULARY",
    "Blocklist",
    "DEFAULT_BLOCKLIST",
    "INAPPROPRIATE_CATEGORIES",
    "TextModerator",
    "TextVerdict",
    "evaluate_signals",
    "is_obviously_benign",
    "normalize_text",
]
