"""Container signature sniffing for uploaded media."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

HEADER_PROBE_BYTES = 1024
EBML_SIGNATURE = b"\x1a\x45\xdf\xa3"

_MOOV_EQUIVALENTS = (b"moov", b"moof", b"styp")


class ContainerFormat(str, Enum):
    MP4 = "mp4"
    WEBM = "webm"
    UNKNOWN = "unknown"


def read_header(path: Path, size: int = HEADER_PROBE_BYTES) -> bytes:
    with path.open("rb") as handle:
        return handle.read(size)


def detect_format(header: bytes) -> ContainerFormat:
    if len(header) >= 8 and header[4:8] == b"ftyp":
        return ContainerFormat.MP4
    if header.startswith(EBML_SIGNATURE):
        return ContainerFormat.WEBM
    return ContainerFormat.UNKNOWN


def is_canonical_mp4(header: bytes) -> bool:
    """Return ``True`` when ``header`` looks like a complete MP4 deliverable.

    Requires the ``ftyp`` signature plus the structural boxes that players
    need: ``ftyp`` with ``mdat`` or ``moov``, or ``mdat`` with ``ftyp`` or
    ``moov``. Fragmented files count ``moof``/``styp`` as ``moov``.
    """

    if detect_format(header) is not ContainerFormat.MP4:
        return False
    has_ftyp = b"ftyp" in header
    has_mdat = b"mdat" in header
    has_moov = any(box in header for box in _MOOV_EQUIVALENTS)
    return (has_ftyp and (has_mdat or has_moov)) or (has_mdat and (has_ftyp or has_moov))


def probe_file(path: Path) -> tuple[ContainerFormat, bool]:
    """Detect the container of ``path`` and whether it is already canonical."""

    header = read_header(path)
    return detect_format(header), is_canonical_mp4(header)


__all__ = [
    "ContainerFormat",
    "EBML_SIGNATURE",
    "detect_format",
    "is_canonical_mp4",
    "probe_file",
    "read_header",
]
