"""Deterministic placeholder thumbnails keyed by item category."""

from __future__ import annotations

import base64
from html import escape

CATEGORY_COLORS: dict[str, str] = {
    "art": "#E91E63",
    "challenge": "#FF9800",
    "nature": "#4CAF50",
    "fyi": "#2196F3",
    "love": "#F44336",
}
DEFAULT_COLOR = "#9C27B0"
TITLE_LIMIT = 25

_SVG_TEMPLATE = """<svg width="320" height="240" xmlns="http://www.w3.org/2000/svg">
  <defs>
    <linearGradient id="bg" x1="0%" y1="0%" x2="100%" y2="100%">
      <stop offset="0%" style="stop-color:{color};stop-opacity:0.8" />
      <stop offset="100%" style="stop-color:{color};stop-opacity:0.6" />
    </linearGradient>
  </defs>
  <rect width="320" height="240" fill="url(#bg)" />
  <circle cx="160" cy="120" r="30" fill="white" opacity="0.9" />
  <polygon points="150,105 180,120 150,135" fill="{color}" />
  <text x="160" y="180" text-anchor="middle" font-family="Arial, sans-serif" font-size="14" font-weight="bold" fill="white">{label}</text>
  <text x="160" y="200" text-anchor="middle" font-family="Arial, sans-serif" font-size="12" fill="white" opacity="0.8">{title}</text>
</svg>"""


def placeholder_thumbnail(category: str | None, title: str | None = None) -> str:
    """Return a ``data:`` URL with an SVG placeholder for the clip."""

    key = (category or "").strip().lower()
    color = CATEGORY_COLORS.get(key, DEFAULT_COLOR)
    label = key.upper() if key else "VIDEO"
    text = title or ""
    if len(text) > TITLE_LIMIT:
        text = text[:TITLE_LIMIT] + "..."
    svg = _SVG_TEMPLATE.format(color=color, label=escape(label), title=escape(text))
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


__all__ = ["CATEGORY_COLORS", "DEFAULT_COLOR", "placeholder_thumbnail"]
