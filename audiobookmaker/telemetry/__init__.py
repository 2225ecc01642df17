"""Telemetry and observability helpers.

This package tracks estimated costs and run events for deterministic auditing.
"""

from .cost_tracker import CostTracker, estimate_cost_usd, estimate_seconds
from .logger import RunLogger

__all__ = ["CostTracker", "RunLogger", "estimate_cost_usd", "estimate_seconds"]
