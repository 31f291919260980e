"""ClipGate: ingestion and moderation gate for user-submitted short videos.

Uploaded media is normalised, staged for analysis, classified across the
visual and audio modalities and only then published to the CDN. Rejected
media is routed to the quarantine zone for review.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
