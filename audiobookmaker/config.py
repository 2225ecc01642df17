"""Configuration model and loaders for Audiobook Maker.

Responsibilities:
- Define application settings (storage directories and conversion defaults)
  as a typed dataclass.
- Provide loader entry points for YAML- and environment-based configuration.
- Resolve the conversion options for one run with deterministic precedence.

Key types:
- `AppConfig`: normalized application settings.
- `ConfigLoader`: static construction helpers for `AppConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models.datatypes import OUTPUT_LAYOUTS, ConversionOptions
from .parsing import normalize_optional_string, parse_speed
from .text.segmenter import MAX_CHUNK_SIZE_CEILING, MIN_CHUNK_SIZE_FLOOR

_DEFAULT_CONFIG_DIR = Path.home() / ".config" / "audiobookmaker"
_SUPPORTED_PROVIDER_IDS = frozenset({"openai", "thorsten"})
_DEFAULT_VOICES = {"openai": "alloy", "thorsten": "thorsten-male"}
_DEFAULT_MODELS = {"openai": "tts-1", "thorsten": "standard"}

_YAML_KEYS = frozenset(
    {
        "config_dir",
        "provider",
        "voice",
        "speed",
        "model",
        "output_layout",
        "output_directory",
        "max_chunk_size",
        "thorsten_install_dir",
    }
)


@dataclass(slots=True)
class AppConfig:
    """Application settings and conversion defaults.

    Attributes:
        config_dir: Application-private directory for sessions and caches.
        provider: Default speech backend identifier.
        voice: Default voice, or `None` for the provider default.
        speed: Default speaking rate multiplier.
        model: Default model / quality tier, or `None` for the provider default.
        output_layout: Default output layout (`single`, `separate`, `both`).
        output_directory: Base directory for per-session output folders.
        max_chunk_size: Segmenter character budget.
        thorsten_install_dir: Install root of the local Thorsten-Voice runtime.
        extra: Additional metadata for future extensions.
    """

    config_dir: Path = _DEFAULT_CONFIG_DIR
    provider: str = "openai"
    voice: str | None = None
    speed: float = 1.0
    model: str | None = None
    output_layout: str = "single"
    output_directory: Path = Path("audiobook_output")
    max_chunk_size: int = 4000
    thorsten_install_dir: Path | None = None
    extra: dict[str, str] = field(default_factory=dict)

    @property
    def progress_dir(self) -> Path:
        return self.config_dir / "progress"

    @property
    def cache_dir(self) -> Path:
        return self.config_dir / "cache"

    @property
    def sessions_file(self) -> Path:
        return self.progress_dir / "sessions.json"

    def resolved_thorsten_install_dir(self) -> Path:
        """Return the Thorsten-Voice install root, defaulting under `config_dir`."""

        if self.thorsten_install_dir is not None:
            return self.thorsten_install_dir
        return self.config_dir / "thorsten-voice"

    def validate(self) -> None:
        """Validate settings before any conversion work starts."""

        if self.provider not in _SUPPORTED_PROVIDER_IDS:
            supported = ", ".join(sorted(_SUPPORTED_PROVIDER_IDS))
            raise ValueError(
                f"Unsupported provider `{self.provider}`. Supported: {supported}."
            )
        if self.output_layout not in OUTPUT_LAYOUTS:
            raise ValueError(
                f"Unsupported output layout `{self.output_layout}`. "
                f"Supported: {', '.join(OUTPUT_LAYOUTS)}."
            )
        if self.speed <= 0:
            raise ValueError("`speed` must be a positive number.")
        if not MIN_CHUNK_SIZE_FLOOR <= self.max_chunk_size <= MAX_CHUNK_SIZE_CEILING:
            raise ValueError(
                "`max_chunk_size` must be between "
                f"{MIN_CHUNK_SIZE_FLOOR} and {MAX_CHUNK_SIZE_CEILING}."
            )

    def conversion_options(self, overrides: Mapping[str, Any] | None = None) -> ConversionOptions:
        """Resolve conversion options with precedence `overrides` > config > provider default.

        `overrides` keys mirror `ConversionOptions` fields; `None` values are ignored.
        """

        values = {key: value for key, value in (overrides or {}).items() if value is not None}
        provider = normalize_optional_string(values.get("provider")) or self.provider
        if provider not in _SUPPORTED_PROVIDER_IDS:
            supported = ", ".join(sorted(_SUPPORTED_PROVIDER_IDS))
            raise ValueError(f"Unsupported provider `{provider}`. Supported: {supported}.")

        provider_changed = provider != self.provider
        default_voice = None if provider_changed else self.voice
        default_model = None if provider_changed else self.model
        voice = (
            normalize_optional_string(values.get("voice"))
            or default_voice
            or _DEFAULT_VOICES[provider]
        )
        model = (
            normalize_optional_string(values.get("model"))
            or default_model
            or _DEFAULT_MODELS[provider]
        )
        speed = parse_speed(values.get("speed", self.speed))
        output_layout = (
            normalize_optional_string(values.get("output_layout")) or self.output_layout
        ).lower()
        if output_layout not in OUTPUT_LAYOUTS:
            raise ValueError(
                f"Unsupported output layout `{output_layout}`. "
                f"Supported: {', '.join(OUTPUT_LAYOUTS)}."
            )
        output_directory = Path(values.get("output_directory", self.output_directory))
        max_chunk_size = int(values.get("max_chunk_size", self.max_chunk_size))

        return ConversionOptions(
            provider=provider,
            voice=voice,
            speed=speed,
            model=model,
            output_layout=output_layout,
            output_directory=output_directory.expanduser(),
            max_chunk_size=max_chunk_size,
        )

    def with_config_dir(self, config_dir: Path) -> AppConfig:
        """Return a copy rooted at another application directory."""

        return replace(self, config_dir=config_dir)


class ConfigLoader:
    """Factory methods for constructing `AppConfig` objects."""

    @staticmethod
    def from_yaml(path: Path) -> AppConfig:
        """Load configuration from a YAML file."""

        raw_text = path.read_text(encoding="utf-8")
        try:
            payload = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` is not valid YAML: {exc}") from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` root must be a mapping.")
        return ConfigLoader._build_config_from_mapping(payload, f"YAML config `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> AppConfig:
        """Load configuration from `AUDIOBOOKMAKER_*` environment variables."""

        source = os.environ if env is None else env
        mapping = {
            "config_dir": source.get("AUDIOBOOKMAKER_CONFIG_DIR"),
            "provider": source.get("AUDIOBOOKMAKER_PROVIDER"),
            "voice": source.get("AUDIOBOOKMAKER_VOICE"),
            "speed": source.get("AUDIOBOOKMAKER_SPEED"),
            "model": source.get("AUDIOBOOKMAKER_MODEL"),
            "output_layout": source.get("AUDIOBOOKMAKER_OUTPUT_LAYOUT"),
            "output_directory": source.get("AUDIOBOOKMAKER_OUTPUT_DIR"),
            "max_chunk_size": source.get("AUDIOBOOKMAKER_CHUNK_SIZE"),
            "thorsten_install_dir": source.get("AUDIOBOOKMAKER_THORSTEN_DIR"),
        }
        payload = {
            key: value
            for key, value in mapping.items()
            if normalize_optional_string(value) is not None
        }
        return ConfigLoader._build_config_from_mapping(payload, "Environment")

    @staticmethod
    def load(config_file: Path | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
        """Load from YAML when a file is given, otherwise from the environment.

        `AUDIOBOOKMAKER_CONFIG_DIR` still relocates storage when a YAML file
        does not set `config_dir`.
        """

        if config_file is None:
            return ConfigLoader.from_env(env)
        config = ConfigLoader.from_yaml(config_file)
        source = os.environ if env is None else env
        env_dir = normalize_optional_string(source.get("AUDIOBOOKMAKER_CONFIG_DIR"))
        if env_dir is not None and config.config_dir == _DEFAULT_CONFIG_DIR:
            return config.with_config_dir(Path(env_dir).expanduser())
        return config

    @staticmethod
    def _build_config_from_mapping(payload: Mapping[str, Any], source_label: str) -> AppConfig:
        """Build and validate `AppConfig` from a flat key/value mapping."""

        unknown = sorted(str(key) for key in payload if key not in _YAML_KEYS)
        if unknown:
            raise ValueError(
                f"{source_label} contains unsupported keys: {', '.join(unknown)}."
            )

        defaults = AppConfig()
        config = AppConfig(
            config_dir=ConfigLoader._optional_path(payload, "config_dir", defaults.config_dir),
            provider=ConfigLoader._optional_string(payload, "provider") or defaults.provider,
            voice=ConfigLoader._optional_string(payload, "voice"),
            speed=(
                parse_speed(payload["speed"], "speed")
                if "speed" in payload
                else defaults.speed
            ),
            model=ConfigLoader._optional_string(payload, "model"),
            output_layout=(
                ConfigLoader._optional_string(payload, "output_layout")
                or defaults.output_layout
            ).lower(),
            output_directory=ConfigLoader._optional_path(
                payload, "output_directory", defaults.output_directory
            ),
            max_chunk_size=ConfigLoader._optional_positive_int(
                payload, "max_chunk_size", source_label, defaults.max_chunk_size
            ),
            thorsten_install_dir=(
                ConfigLoader._optional_path(payload, "thorsten_install_dir", None)
                if "thorsten_install_dir" in payload
                else None
            ),
        )
        config.validate()
        return config

    @staticmethod
    def _optional_string(payload: Mapping[str, Any], key: str) -> str | None:
        return normalize_optional_string(payload.get(key))

    @staticmethod
    def _optional_path(payload: Mapping[str, Any], key: str, default: Path | None) -> Path:
        value = normalize_optional_string(payload.get(key))
        if value is None:
            return default  # type: ignore[return-value]
        return Path(value).expanduser()

    @staticmethod
    def _optional_positive_int(
        payload: Mapping[str, Any], key: str, source_label: str, default: int
    ) -> int:
        """Read and validate a positive integer payload field."""

        if key not in payload:
            return default

        raw_value = payload[key]
        if isinstance(raw_value, bool):
            raise ValueError(f"{source_label} field `{key}` must be a positive integer.")
        if isinstance(raw_value, int):
            parsed = raw_value
        else:
            normalized = normalize_optional_string(raw_value)
            if normalized is None:
                return default
            try:
                parsed = int(normalized)
            except ValueError as exc:
                raise ValueError(
                    f"{source_label} field `{key}` must be a positive integer."
                ) from exc

        if parsed <= 0:
            raise ValueError(f"{source_label} field `{key}` must be a positive integer.")
        return parsed
