"""Canonical voice preview phrases.

Responsibilities:
- Hold one short and one long preview phrase per supported language.
- Guess a voice's language from its identifier.
- Build deterministic cache filenames for generated previews.
"""

from __future__ import annotations

import re

PREVIEW_TEXTS: dict[str, dict[str, str]] = {
    "german": {
        "short": "Das ist eine Vorschau der ausgewählten Stimme für deutsche Texte.",
        "long": (
            "Willkommen beim Audiobook Maker! Diese deutsche Stimme wandelt Ihren Text "
            "in natürlich klingende Sprache um. Sie können die Geschwindigkeit und "
            "Qualität nach Ihren Wünschen anpassen."
        ),
    },
    "english": {
        "short": "This is a preview of the selected voice for English texts.",
        "long": (
            "Welcome to Audiobook Maker! This English voice converts your text into "
            "natural-sounding speech. You can adjust the speed and quality to match "
            "your preferences."
        ),
    },
    "french": {
        "short": "Ceci est un aperçu de la voix sélectionnée pour les textes français.",
        "long": (
            "Bienvenue dans Audiobook Maker! Cette voix française convertit votre texte "
            "en parole naturelle. Vous pouvez ajuster la vitesse et la qualité selon "
            "vos préférences."
        ),
    },
    "default": {
        "short": "This is a preview of the selected voice.",
        "long": (
            "Welcome to Audiobook Maker! This voice will convert your text into "
            "natural-sounding speech with customizable speed and quality settings."
        ),
    },
}

_LANGUAGE_KEYS = {
    "de": "german",
    "en": "english",
    "fr": "french",
    "german": "german",
    "english": "english",
    "french": "french",
}


def get_preview_text(language: str | None = "en", length: str = "short") -> str:
    """Return the preview phrase for a language code or name.

    Unknown languages fall back to the neutral default catalogue entry, and
    unknown lengths fall back to `short`.
    """

    key = _LANGUAGE_KEYS.get((language or "").lower(), "default")
    texts = PREVIEW_TEXTS[key]
    return texts.get(length, texts["short"])


def detect_voice_language(voice: str) -> str:
    """Guess a short language code (`de`, `fr`, `en`) from a voice identifier."""

    lowered = voice.lower()
    if any(marker in lowered for marker in ("de-", "german", "deutsch", "thorsten")):
        return "de"
    if any(marker in lowered for marker in ("fr-", "french", "français")):
        return "fr"
    return "en"


def preview_cache_filename(provider: str, voice: str, language: str, extension: str) -> str:
    """Return `preview_<provider>_<voice>_<language>.<ext>` with a sanitized voice."""

    sanitized = re.sub(r"[^a-zA-Z0-9]", "_", voice)
    return f"preview_{provider}_{sanitized}_{language}.{extension.lstrip('.')}"
