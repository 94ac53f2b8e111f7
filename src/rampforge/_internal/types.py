"""Shared type aliases for RampForge."""

from __future__ import annotations

# HTTP headers dictionary.
Headers = dict[str, str]

# Pacing delay: fixed seconds, or a (min_seconds, max_seconds) range.
Pacing = float | tuple[float, float]
