"""Search keywords derived from a clip transcript."""

from __future__ import annotations

import re

TOPIC_KEYWORDS: tuple[str, ...] = (
    # Food & drink
    "coffee", "tea", "cooking", "baking", "recipe", "food", "restaurant", "pizza",
    # Outdoors
    "beach", "ocean", "mountain", "hiking", "camping", "forest", "lake", "river",
    "fishing", "hunting", "garden", "park", "sunset", "nature",
    # Places & travel
    "city", "travel", "vacation", "road", "trip",
    # Sports & games
    "football", "soccer", "basketball", "baseball", "tennis", "golf", "running",
    "swimming", "cycling", "gym", "workout", "yoga", "game",
    # Interests
    "technology", "computer", "phone", "art", "music", "dance", "painting",
    "photography", "movie", "book", "fashion", "car",
    # Life
    "family", "friends", "dog", "cat", "pet", "birthday", "wedding", "party",
    "school", "university", "education", "learning", "work", "job",
)

_STEM_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bfishing|\bfished|\bfish\b"), "fishing"),
    (re.compile(r"\bcooking|\bcooked|\bcook\b"), "cooking"),
    (re.compile(r"\btravel(l?ing|l?ed)?\b"), "travel"),
    (re.compile(r"\bhiking|\bhiked|\bhike\b"), "hiking"),
    (re.compile(r"\bswimming|\bswam|\bswim\b"), "swimming"),
    (re.compile(r"\bgaming|\bgamed|\bgame\b"), "game"),
)

_TOPIC_PATTERNS = tuple(
    (re.compile(rf"\b{re.escape(word)}s?\b"), word) for word in TOPIC_KEYWORDS
)


def extract_keywords(transcript: str | None) -> list[str]:
    """Return topic keywords in order of first appearance, without duplicates."""

    if not transcript:
        return []
    text = transcript.lower()
    hits: list[tuple[int, int, str]] = []
    for rank, (pattern, keyword) in enumerate(_TOPIC_PATTERNS + _STEM_PATTERNS):
        match = pattern.search(text)
        if match:
            hits.append((match.start(), rank, keyword))

    keywords: list[str] = []
    for _, _, keyword in sorted(hits):
        if keyword not in keywords:
            keywords.append(keyword)
    return keywords


__all__ = ["TOPIC_KEYWORDS", "extract_keywords"]
