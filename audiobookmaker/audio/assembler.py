"""Combine chunk audio files into one artifact.

Responsibilities:
- Concatenate ordered chunk files with the ffmpeg concat demuxer, without re-encoding.
- Map missing tools, missing inputs, and ffmpeg failures to `AssemblyError`.
- Remove intermediate chunk files when the output layout asks for it.
"""

from __future__ import annotations

from pathlib import Path
import subprocess
from typing import Sequence

from ..errors import AssemblyError
from ..parsing import normalize_optional_string
from ..runtime_tools import resolve_executable


class AudioAssembler:
    """Concatenate same-format audio files using ffmpeg stream copy."""

    def __init__(self, ffmpeg_command: str = "ffmpeg") -> None:
        self.ffmpeg_command = ffmpeg_command

    def concatenate(self, ordered_paths: Sequence[Path], output_path: Path) -> Path:
        """Join `ordered_paths` in the given order into `output_path`.

        The concat list is written beside the output and removed afterwards,
        whether or not ffmpeg succeeds.
        """

        if not ordered_paths:
            raise AssemblyError(
                detail="No chunk audio files to combine.",
                hint="Synthesize at least one chunk before assembling.",
                failure_kind="missing_input",
            )
        for path in ordered_paths:
            if not path.is_file() or path.stat().st_size == 0:
                raise AssemblyError(
                    detail=f"Chunk audio file is missing or empty: {path}",
                    hint="Resume the session so the missing chunk is synthesized again.",
                    failure_kind="missing_input",
                )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        concat_path = output_path.with_suffix(f"{output_path.suffix}.concat.txt")
        concat_path.write_text(
            "\n".join(
                f"file '{self._escape_concat_path(path.resolve())}'" for path in ordered_paths
            )
            + "\n",
            encoding="utf-8",
        )
        command = [
            resolve_executable(self.ffmpeg_command),
            "-hide_banner",
            "-loglevel",
            "error",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            str(concat_path),
            "-c",
            "copy",
            str(output_path),
            "-y",
        ]
        try:
            self._run_ffmpeg(command)
        except FileNotFoundError as exc:
            raise AssemblyError(
                detail="Audio tool `ffmpeg` is not available on PATH.",
                hint=(
                    "Install ffmpeg, then run `audiobookmaker assemble <session-id>`; "
                    "chunk files are kept."
                ),
                failure_kind="muxer_missing",
            ) from exc
        except subprocess.CalledProcessError as exc:
            stderr = normalize_optional_string(exc.stderr) or "no stderr output"
            raise AssemblyError(
                detail=f"ffmpeg failed to combine `{output_path.name}`: {stderr}",
                hint="Check that all chunk files share one audio format.",
                failure_kind="muxer_failed",
            ) from exc
        finally:
            if concat_path.exists():
                concat_path.unlink()

        if not output_path.is_file():
            raise AssemblyError(
                detail=f"ffmpeg did not produce `{output_path}`.",
                failure_kind="muxer_failed",
            )
        return output_path

    def cleanup_segments(self, paths: Sequence[Path]) -> int:
        """Delete chunk files after a successful single-file assembly."""

        removed = 0
        for path in paths:
            if path.exists():
                path.unlink()
                removed += 1
        return removed

    def _run_ffmpeg(self, command: list[str]) -> None:
        subprocess.run(command, check=True, capture_output=True, text=True)

    def _escape_concat_path(self, path: Path) -> str:
        """Escape one file path for ffmpeg concat list format."""

        return str(path).replace("'", "'\\''")
