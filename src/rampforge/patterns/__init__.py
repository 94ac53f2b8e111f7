"""Concurrency patterns for RampForge.

A pattern maps elapsed run time to the number of virtual users that should
be active.  :class:`StagePattern` interpolates across a script's stages;
:class:`ConstantPattern` backs the ``--vus`` / ``--duration`` overrides.
"""

from __future__ import annotations

from rampforge.patterns.base import LoadPattern
from rampforge.patterns.constant import ConstantPattern
from rampforge.patterns.stages import Stage, StagePattern, parse_duration

__all__ = [
    "ConstantPattern",
    "LoadPattern",
    "Stage",
    "StagePattern",
    "parse_duration",
]
