"""Transcoder adapter: ffmpeg recovery ladder for recorded containers."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..domain.models import ErrorCategory
from ..ingest.ingest_errors import RungAttempt, TranscodeError
from .container_probe import ContainerFormat, probe_file
from .temp_media_store import TempMediaStore

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 500


@dataclass(slots=True)
class CommandResult:
    """Exit status and captured output of a subprocess."""

    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.returncode == 0


class SubprocessRunner:
    """Run a command with a hard timeout; timed out processes are killed."""

    async def run(self, args: Sequence[str], *, timeout: float) -> CommandResult:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await _kill(process)
            return CommandResult(returncode=process.returncode, timed_out=True)
        except asyncio.CancelledError:
            await _kill(process)
            raise
        return CommandResult(
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )


async def _kill(process: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        process.kill()
    with contextlib.suppress(Exception):
        await process.wait()


@dataclass(slots=True)
class Rung:
    name: str
    build_args: Callable[[Path, Path, ContainerFormat, float | None], list[str]]
    timeout_seconds: float


def remux_args(source: Path, output: Path, fmt: ContainerFormat, trim: float | None) -> list[str]:
    return [
        "-hide_banner",
        "-i", str(source),
        "-c", "copy",
        "-avoid_negative_ts", "make_zero",
        "-f", "mp4",
        "-y", str(output),
    ]


def repair_args(source: Path, output: Path, fmt: ContainerFormat, trim: float | None) -> list[str]:
    args = ["-hide_banner"]
    if fmt is not ContainerFormat.MP4:
        # Browser recorders emit Matroska/WebM with damaged headers.
        args += ["-f", "matroska"]
    args += [
        "-fflags", "+genpts+igndts+ignidx+discardcorrupt+nobuffer",
        "-analyzeduration", "2147483647",
        "-probesize", "2147483647",
        "-err_detect", "ignore_err",
        "-i", str(source),
        "-avoid_negative_ts", "make_zero",
        "-c:v", "copy",
        "-c:a", "copy",
        "-f", "mp4",
        "-y", str(output),
    ]
    return args


def transcode_args(source: Path, output: Path, fmt: ContainerFormat, trim: float | None) -> list[str]:
    args = [
        "-hide_banner",
        "-fflags", "+genpts+discardcorrupt+igndts+ignidx",
        "-err_detect", "ignore_err",
        "-i", str(source),
    ]
    if trim is not None and trim > 0:
        args += ["-t", _format_seconds(trim)]
    args += [
        "-c:v", "libx264",
        "-preset", "medium",
        "-crf", "23",
        "-vf", "scale=trunc(iw/2)*2:trunc(ih/2)*2",
        "-pix_fmt", "yuv420p",
        "-profile:v", "main",
        "-level", "4.0",
        "-c:a", "aac",
        "-b:a", "128k",
        "-ar", "44100",
        "-ac", "2",
        "-movflags", "+faststart",
        "-f", "mp4",
        "-y", str(output),
    ]
    return args


def _format_seconds(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


@dataclass(slots=True)
class FFmpegTranscoder:
    """Normalise an uploaded container into a canonical MP4.

    Rungs run in order (direct remux, aggressive repair remux, full
    transcode) and each one writes to a fresh scratch path. The first rung
    that exits cleanly with a non-empty output wins; outputs of failed rungs
    are removed immediately.
    """

    scratch: TempMediaStore
    runner: SubprocessRunner = field(default_factory=SubprocessRunner)
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    remux_timeout_seconds: float = 60.0
    repair_timeout_seconds: float = 60.0
    transcode_timeout_seconds: float = 120.0
    probe_timeout_seconds: float = 15.0
    log: logging.Logger = field(default_factory=lambda: logger)

    def rungs(self) -> list[Rung]:
        return [
            Rung("remux", remux_args, self.remux_timeout_seconds),
            Rung("repair", repair_args, self.repair_timeout_seconds),
            Rung("transcode", transcode_args, self.transcode_timeout_seconds),
        ]

    async def normalize(
        self,
        item_id: str,
        source_path: Path,
        duration_hint: float | None = None,
    ) -> Path:
        if not source_path.exists() or source_path.stat().st_size == 0:
            raise TranscodeError(
                f"Source media not found or empty: {source_path}",
                category=ErrorCategory.STORAGE,
            )

        container, canonical = probe_file(source_path)
        if canonical:
            self.log.info(
                "transcoder.short_circuit",
                extra={"item_id": item_id, "path": str(source_path)},
            )
            return source_path

        trim = await self._trim_for(source_path, duration_hint)
        attempts: list[RungAttempt] = []
        for rung in self.rungs():
            output = self.scratch.fresh_output(item_id, f"normalized-{rung.name}")
            args = [self.ffmpeg_binary, *rung.build_args(source_path, output, container, trim)]
            try:
                result = await self.runner.run(args, timeout=rung.timeout_seconds)
            except FileNotFoundError as exc:
                self.scratch.discard(output)
                raise TranscodeError(
                    f"FFmpeg binary '{self.ffmpeg_binary}' is not available",
                    attempts=attempts,
                    category=ErrorCategory.DEPENDENCY,
                ) from exc
            except BaseException:
                self.scratch.discard(output)
                raise

            if result.ok and output.exists() and output.stat().st_size > 0:
                self.log.info(
                    "transcoder.rung.succeeded",
                    extra={"item_id": item_id, "rung": rung.name, "output": str(output)},
                )
                return output

            self.scratch.discard(output)
            attempt = RungAttempt(
                rung=rung.name,
                returncode=result.returncode,
                timed_out=result.timed_out,
                stderr_tail=result.stderr[-STDERR_TAIL_CHARS:],
            )
            attempts.append(attempt)
            self.log.warning(
                "transcoder.rung.failed",
                extra={
                    "item_id": item_id,
                    "rung": rung.name,
                    "returncode": result.returncode,
                    "timed_out": result.timed_out,
                    "stderr_tail": attempt.stderr_tail,
                },
            )

        summary = ", ".join(
            f"{attempt.rung}={'timeout' if attempt.timed_out else attempt.returncode}"
            for attempt in attempts
        )
        raise TranscodeError(
            f"FFmpeg recovery ladder exhausted ({summary})",
            attempts=attempts,
            category=ErrorCategory.TECHNICAL,
        )

    async def _trim_for(self, source_path: Path, duration_hint: float | None) -> float | None:
        """Return the trim to apply, or ``None`` when the source duration is usable."""
        if duration_hint is None or duration_hint <= 0:
            return None
        duration = await self.probe_duration(source_path)
        if duration is None:
            return duration_hint
        return None

    async def probe_duration(self, source_path: Path) -> float | None:
        """Container duration in seconds, or ``None`` when missing/infinite/zero."""
        args = [
            self.ffprobe_binary,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(source_path),
        ]
        try:
            result = await self.runner.run(args, timeout=self.probe_timeout_seconds)
        except FileNotFoundError:
            return None
        if not result.ok:
            return None
        try:
            value = float(result.stdout.strip().splitlines()[0])
        except (IndexError, ValueError):
            return None
        if not math.isfinite(value) or value <= 0:
            return None
        return value


__all__ = [
    "CommandResult",
    "FFmpegTranscoder",
    "Rung",
    "SubprocessRunner",
    "remux_args",
    "repair_args",
    "transcode_args",
]
