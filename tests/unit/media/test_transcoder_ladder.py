from __future__ import annotations

import sys
from pathlib import Path

import pytest

from src.clipgate.domain.models import ErrorCategory
from src.clipgate.ingest.ingest_errors import TranscodeError
from src.clipgate.media.temp_media_store import TempMediaStore
from src.clipgate.media.transcoder import (
    CommandResult,
    FFmpegTranscoder,
    SubprocessRunner,
    repair_args,
    transcode_args,
)
from src.clipgate.media.container_probe import ContainerFormat
from tests.mocks.pipeline import BROKEN_WEBM, CANONICAL_MP4, ScriptedRunner, failing_rungs


def _source(scratch: TempMediaStore, tmp_path: Path, payload: bytes = BROKEN_WEBM) -> Path:
    upload = tmp_path / "upload.webm"
    upload.write_bytes(payload)
    return scratch.adopt_upload("item-1", upload)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_canonical_input_short_circuits(scratch: TempMediaStore, tmp_path: Path) -> None:
    source = _source(scratch, tmp_path, CANONICAL_MP4)
    runner = ScriptedRunner()
    transcoder = FFmpegTranscoder(scratch=scratch, runner=runner)

    result = await transcoder.normalize("item-1", source)

    assert result == source
    assert runner.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_first_successful_rung_wins(scratch: TempMediaStore, tmp_path: Path) -> None:
    source = _source(scratch, tmp_path)
    runner = ScriptedRunner(results=[CommandResult(returncode=0)])
    transcoder = FFmpegTranscoder(scratch=scratch, runner=runner)

    result = await transcoder.normalize("item-1", source)

    assert result.name.startswith("normalized-remux-")
    assert result.read_bytes() == CANONICAL_MP4
    assert len(runner.ffmpeg_calls) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_rung_outputs_are_discarded(scratch: TempMediaStore, tmp_path: Path) -> None:
    source = _source(scratch, tmp_path)
    runner = ScriptedRunner(
        results=[
            CommandResult(returncode=1, stderr="moov atom not found"),
            CommandResult(returncode=None, timed_out=True),
            CommandResult(returncode=0),
        ]
    )
    transcoder = FFmpegTranscoder(scratch=scratch, runner=runner)

    result = await transcoder.normalize("item-1", source)

    assert result.name.startswith("normalized-transcode-")
    remaining = {path.name for path in scratch.list_files("item-1")}
    assert remaining == {source.name, result.name}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_zero_exit_with_empty_output_is_a_failure(
    scratch: TempMediaStore, tmp_path: Path
) -> None:
    source = _source(scratch, tmp_path)
    runner = ScriptedRunner(results=[CommandResult(returncode=0)] * 3, output_bytes=b"")
    transcoder = FFmpegTranscoder(scratch=scratch, runner=runner)

    with pytest.raises(TranscodeError):
        await transcoder.normalize("item-1", source)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_exhausted_ladder_reports_every_rung(scratch: TempMediaStore, tmp_path: Path) -> None:
    source = _source(scratch, tmp_path)
    runner = ScriptedRunner(results=failing_rungs())
    transcoder = FFmpegTranscoder(scratch=scratch, runner=runner)

    with pytest.raises(TranscodeError) as excinfo:
        await transcoder.normalize("item-1", source)

    error = excinfo.value
    assert [attempt.rung for attempt in error.attempts] == ["remux", "repair", "transcode"]
    assert error.category is ErrorCategory.TECHNICAL
    assert "recovery ladder exhausted" in str(error)
    assert [path.name for path in scratch.list_files("item-1")] == [source.name]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_source_is_a_storage_error(scratch: TempMediaStore, tmp_path: Path) -> None:
    transcoder = FFmpegTranscoder(scratch=scratch, runner=ScriptedRunner())

    with pytest.raises(TranscodeError) as excinfo:
        await transcoder.normalize("item-1", tmp_path / "missing.webm")

    assert excinfo.value.category is ErrorCategory.STORAGE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_binary_is_a_dependency_error(scratch: TempMediaStore, tmp_path: Path) -> None:
    source = _source(scratch, tmp_path)
    transcoder = FFmpegTranscoder(
        scratch=scratch, ffmpeg_binary="/nonexistent/ffmpeg", ffprobe_binary="/nonexistent/ffprobe"
    )

    with pytest.raises(TranscodeError) as excinfo:
        await transcoder.normalize("item-1", source)

    assert excinfo.value.category is ErrorCategory.DEPENDENCY


@pytest.mark.unit
@pytest.mark.asyncio
async def test_duration_hint_trims_when_probe_has_no_duration(
    scratch: TempMediaStore, tmp_path: Path
) -> None:
    source = _source(scratch, tmp_path)
    runner = ScriptedRunner(results=failing_rungs(2) + [CommandResult(returncode=0)], probe_stdout="N/A\n")
    transcoder = FFmpegTranscoder(scratch=scratch, runner=runner)

    await transcoder.normalize("item-1", source, duration_hint=12.5)

    transcode_call = runner.ffmpeg_calls[-1]
    assert transcode_call[transcode_call.index("-t") + 1] == "12.5"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_duration_hint_ignored_when_metadata_is_usable(
    scratch: TempMediaStore, tmp_path: Path
) -> None:
    source = _source(scratch, tmp_path)
    runner = ScriptedRunner(results=failing_rungs(2) + [CommandResult(returncode=0)], probe_stdout="9.84\n")
    transcoder = FFmpegTranscoder(scratch=scratch, runner=runner)

    await transcoder.normalize("item-1", source, duration_hint=12.5)

    assert "-t" not in runner.ffmpeg_calls[-1]


@pytest.mark.unit
def test_repair_forces_matroska_only_for_non_mp4(tmp_path: Path) -> None:
    webm = repair_args(tmp_path / "in", tmp_path / "out.mp4", ContainerFormat.WEBM, None)
    mp4 = repair_args(tmp_path / "in", tmp_path / "out.mp4", ContainerFormat.MP4, None)

    assert webm[1:3] == ["-f", "matroska"]
    assert webm.index("-i") > webm.index("-f")
    assert "matroska" not in mp4


@pytest.mark.unit
def test_transcode_targets_even_dimensions(tmp_path: Path) -> None:
    args = transcode_args(tmp_path / "in", tmp_path / "out.mp4", ContainerFormat.WEBM, None)

    assert args[args.index("-vf") + 1] == "scale=trunc(iw/2)*2:trunc(ih/2)*2"
    assert args[args.index("-c:v") + 1] == "libx264"
    assert args[-1] == str(tmp_path / "out.mp4")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_subprocess_runner_kills_on_timeout() -> None:
    runner = SubprocessRunner()

    result = await runner.run([sys.executable, "-c", "import time; time.sleep(10)"], timeout=0.2)

    assert result.timed_out is True
    assert result.ok is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_subprocess_runner_captures_stderr() -> None:
    runner = SubprocessRunner()

    result = await runner.run(
        [sys.executable, "-c", "import sys; sys.stderr.write('bad header'); sys.exit(3)"],
        timeout=10,
    )

    assert result.returncode == 3
    assert "bad header" in result.stderr
