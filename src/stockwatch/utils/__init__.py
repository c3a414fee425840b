"""Shared helpers."""

from .clock import is_within_trading_hours, utcnow

__all__ = ["is_within_trading_hours", "utcnow"]
