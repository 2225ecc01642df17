"""External executable resolution helpers.

Responsibilities:
- Resolve external tools (ffmpeg) with an environment override, then `PATH`.
- Locate the interpreter of a separately installed virtual environment.
"""

from __future__ import annotations

import os
from pathlib import Path
import shutil
import sys


def resolve_executable(command_name: str) -> str:
    """Resolve an executable path.

    Resolution order:
    1. `AUDIOBOOKMAKER_<NAME>` environment variable (for example `AUDIOBOOKMAKER_FFMPEG`).
    2. System `PATH`.
    3. Raw command name (allowing subprocess to raise a native missing-binary error).
    """

    normalized = command_name.strip()
    if not normalized:
        return command_name

    override = os.environ.get(f"AUDIOBOOKMAKER_{normalized.upper()}", "").strip()
    if override:
        return override

    resolved_path = shutil.which(normalized)
    if resolved_path is not None:
        return resolved_path
    return normalized


def venv_python(venv_root: Path) -> Path:
    """Return the interpreter path inside a virtual environment directory."""

    if sys.platform.startswith("win"):
        return venv_root / "Scripts" / "python.exe"
    return venv_root / "bin" / "python"
