# Copyright (c) 2025 Eirik Varnes
# Licensed under the MIT License. See LICENSE file for details.

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Tuple


@dataclass(frozen=True)
class Record:
    """One bag entry, in stored order."""
    topic: str
    msgtype: str
    timestamp_ns: int
    message: Any


@dataclass(frozen=True)
class ImuSample:
    angular_velocity: Tuple[float, float, float]
    linear_acceleration: Tuple[float, float, float]

    def values(self) -> Tuple[float, ...]:
        return self.angular_velocity + self.linear_acceleration


@dataclass(frozen=True)
class PoseSample:
    """Position (x, y, z) and orientation quaternion, scalar first (w, x, y, z)."""
    position: Tuple[float, float, float]
    orientation: Tuple[float, float, float, float]

    def values(self) -> Tuple[float, ...]:
        return self.position + self.orientation


__all__ = ["Record", "ImuSample", "PoseSample"]
