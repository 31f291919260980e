from __future__ import annotations

from pathlib import Path

import pytest

from src.clipgate.media.container_probe import (
    ContainerFormat,
    detect_format,
    is_canonical_mp4,
    probe_file,
)
from tests.mocks.pipeline import BROKEN_WEBM, CANONICAL_MP4


@pytest.mark.unit
def test_detects_mp4_signature() -> None:
    assert detect_format(CANONICAL_MP4) is ContainerFormat.MP4


@pytest.mark.unit
def test_detects_webm_ebml_header() -> None:
    assert detect_format(BROKEN_WEBM) is ContainerFormat.WEBM


@pytest.mark.unit
def test_unknown_for_short_or_foreign_headers() -> None:
    assert detect_format(b"") is ContainerFormat.UNKNOWN
    assert detect_format(b"RIFF\x00\x00\x00\x00AVI ") is ContainerFormat.UNKNOWN


@pytest.mark.unit
def test_canonical_requires_structural_boxes() -> None:
    ftyp_only = b"\x00\x00\x00\x18ftypisom" + b"\x00" * 32
    assert is_canonical_mp4(CANONICAL_MP4) is True
    assert is_canonical_mp4(ftyp_only) is False


@pytest.mark.unit
def test_fragmented_mp4_counts_moof_as_moov() -> None:
    fragmented = b"\x00\x00\x00\x18ftypiso6" + b"\x00\x00\x00\x08moof" + b"\x00" * 16
    assert is_canonical_mp4(fragmented) is True


@pytest.mark.unit
def test_webm_is_never_canonical(tmp_path: Path) -> None:
    path = tmp_path / "clip.webm"
    path.write_bytes(BROKEN_WEBM + b"moovmdat")

    container, canonical = probe_file(path)

    assert container is ContainerFormat.WEBM
    assert canonical is False
