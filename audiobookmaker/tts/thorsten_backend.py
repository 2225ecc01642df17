"""Local Thorsten-Voice speech backend.

Responsibilities:
- Expose the German Thorsten voices as backend capabilities.
- Run Coqui TTS inside the separately installed virtual environment.
- Report availability from the install marker and interpreter presence.

Notes:
- Installing the runtime is out of scope; `is_available` only inspects it.
- Text is passed on stdin as JSON so quotes and newlines need no escaping.
"""

from __future__ import annotations

import json
from pathlib import Path
import subprocess
import time
from typing import Callable

from ..audio.assembler import AudioAssembler
from ..errors import BackendError
from ..models.datatypes import SynthesisOptions, VoiceDescriptor
from ..runtime_tools import venv_python
from .backend import SpeechBackend

THORSTEN_MODEL_NAME = "tts_models/de/thorsten/vits"
INSTALL_MARKER = ".installation_complete"

THORSTEN_VOICES = (
    VoiceDescriptor(
        "thorsten-male", "Thorsten (German male)", "de", "High-quality native German voice"
    ),
    VoiceDescriptor(
        "thorsten-emotional",
        "Thorsten Emotional (German male)",
        "de",
        "German voice with emotional expression",
    ),
)

_SYNTHESIS_SCRIPT = """
import json
import sys

from TTS.api import TTS

request = json.load(sys.stdin)
tts = TTS(request["model"])
tts.tts_to_file(text=request["text"], file_path=request["output"], speed=request["speed"])
"""


class ThorstenSpeechBackend(SpeechBackend):
    """Speech backend for a locally installed Coqui TTS Thorsten model."""

    provider_id = "thorsten"
    audio_extension = "wav"
    quality_tiers = ("standard",)
    speed_range = (0.5, 2.0)
    chunk_delay_seconds = 0.0

    def __init__(
        self,
        install_dir: Path,
        timeout_seconds: float = 300.0,
        assembler: AudioAssembler | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(assembler=assembler, sleep=sleep)
        self.install_dir = install_dir
        self.timeout_seconds = timeout_seconds

    @property
    def python_path(self) -> Path:
        return venv_python(self.install_dir / "venv")

    def list_voices(self) -> list[VoiceDescriptor]:
        return list(THORSTEN_VOICES)

    def is_available(self) -> bool:
        return (self.install_dir / INSTALL_MARKER).is_file() and self.python_path.is_file()

    def _render(self, text: str, options: SynthesisOptions, output_path: Path) -> None:
        if not self.is_available():
            raise BackendError(
                detail=f"Thorsten-Voice is not installed in `{self.install_dir}`.",
                hint=(
                    "Install Coqui TTS into `<install_dir>/venv` and create the "
                    f"`{INSTALL_MARKER}` marker, or choose `--provider openai`."
                ),
                failure_kind="runtime_missing",
            )
        request = {
            "model": THORSTEN_MODEL_NAME,
            "text": text,
            "output": str(output_path.resolve()),
            "speed": options.speed,
        }
        try:
            subprocess.run(
                [str(self.python_path), "-c", _SYNTHESIS_SCRIPT],
                input=json.dumps(request, ensure_ascii=False),
                cwd=self.install_dir,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise BackendError(
                detail=f"Thorsten-Voice interpreter not found: {self.python_path}",
                hint="Reinstall the Thorsten-Voice runtime.",
                failure_kind="runtime_missing",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise BackendError(
                detail=f"Thorsten-Voice synthesis timed out after {self.timeout_seconds:.0f}s.",
                hint="Use a smaller `--chunk-size`, then resume the session.",
                failure_kind="timeout",
            ) from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip().splitlines()
            detail = stderr[-1] if stderr else f"exit code {exc.returncode}"
            raise BackendError(
                detail=f"Thorsten-Voice generation failed: {detail}",
                hint="Check the Coqui TTS installation in the Thorsten-Voice venv.",
                failure_kind="synthesis_failed",
            ) from exc
        if not output_path.is_file():
            raise BackendError(
                detail=f"Thorsten-Voice did not write `{output_path.name}`.",
                failure_kind="synthesis_failed",
            )
