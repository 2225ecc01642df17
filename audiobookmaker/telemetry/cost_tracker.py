"""Cost and duration estimates for speech synthesis.

Responsibilities:
- Estimate provider cost from character counts before a conversion starts.
- Estimate processing time from provider throughput.
- Accumulate actual synthesized characters during a run.
"""

from __future__ import annotations

from dataclasses import dataclass
import math

_COST_PER_1K_CHARS = {
    ("openai", "tts-1"): 0.015,
    ("openai", "tts-1-hd"): 0.030,
}
_CHARS_PER_SECOND = {
    ("openai", "tts-1"): 100,
    ("openai", "tts-1-hd"): 50,
}
_DEFAULT_CHARS_PER_SECOND = 100


def estimate_cost_usd(provider: str, model: str | None, character_count: int) -> float:
    """Return estimated USD cost; local providers are free."""

    rate = _COST_PER_1K_CHARS.get((provider, model or ""))
    if rate is None:
        if provider == "openai":
            rate = _COST_PER_1K_CHARS[("openai", "tts-1")]
        else:
            return 0.0
    return round(max(0, character_count) / 1000 * rate, 4)


def estimate_seconds(provider: str, model: str | None, character_count: int) -> int:
    """Return estimated processing seconds, rounded up."""

    throughput = _CHARS_PER_SECOND.get((provider, model or ""), _DEFAULT_CHARS_PER_SECOND)
    return math.ceil(max(0, character_count) / throughput)


def format_duration(seconds: int) -> str:
    """Render seconds as `Xh Ym`, `Ym Zs`, or `Zs`."""

    hours, remainder = divmod(max(0, int(seconds)), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


@dataclass(slots=True)
class CostTracker:
    """Collect synthesized characters and their estimated cost for one run."""

    provider: str
    model: str | None = None
    characters: int = 0

    def add_chunk(self, character_count: int) -> None:
        """Add one synthesized chunk's character count."""

        self.characters += max(0, character_count)

    @property
    def cost_usd(self) -> float:
        return estimate_cost_usd(self.provider, self.model, self.characters)

    def summary(self) -> dict[str, float]:
        """Return a summary dictionary for reporting."""

        return {"characters": float(self.characters), "tts_cost_usd": self.cost_usd}
