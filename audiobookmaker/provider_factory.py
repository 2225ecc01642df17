"""Provider factory for speech backends.

Responsibilities:
- Resolve provider identifiers to concrete `SpeechBackend` implementations.
- Keep the orchestrator independent from provider construction details.

Notes:
- The mapping is explicit; adding a provider means adding one branch here.
"""

from __future__ import annotations

from pathlib import Path

from .audio.assembler import AudioAssembler
from .tts.backend import SpeechBackend
from .tts.openai_backend import OpenAISpeechBackend
from .tts.thorsten_backend import ThorstenSpeechBackend

SUPPORTED_PROVIDERS = ("openai", "thorsten")


class ProviderFactory:
    """Factory for provider-backed speech backends."""

    @staticmethod
    def create_backend(
        provider_id: str,
        *,
        api_key: str | None = None,
        thorsten_install_dir: Path | None = None,
        assembler: AudioAssembler | None = None,
    ) -> SpeechBackend:
        """Create a speech backend for a configured provider identifier."""

        if provider_id == "openai":
            return OpenAISpeechBackend(api_key=api_key, assembler=assembler)
        if provider_id == "thorsten":
            if thorsten_install_dir is None:
                raise ValueError("Provider `thorsten` requires an install directory.")
            return ThorstenSpeechBackend(install_dir=thorsten_install_dir, assembler=assembler)
        raise ValueError(
            f"Unsupported speech provider `{provider_id}`. "
            f"Supported: {', '.join(SUPPORTED_PROVIDERS)}."
        )

    @staticmethod
    def requires_api_key(provider_id: str) -> bool:
        """Return whether the provider needs a cloud API key."""

        return provider_id == "openai"
