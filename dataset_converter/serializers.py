# Copyright (c) 2025 Eirik Varnes
# Licensed under the MIT License. See LICENSE file for details.

"""
One CSV line writer per sensor kind.

Floats are printed with 17 significant digits so values parse back to the
exact same double. Camera images are named after their timestamp; two
frames with the same timestamp on one camera overwrite each other.
"""

from __future__ import annotations
from typing import Callable, Dict

import numpy as np

from .config import SensorKind
from .images import write_image
from .layout import OutputSink
from .records import ImuSample, PoseSample

DOUBLE_PRECISION: int = 17

# registry map: sensor kind -> serializer fn(sink, timestamp_ns, payload)
serializers: Dict[SensorKind, Callable] = {}


def register_serializer(kind: SensorKind):
    """Decorator to register the serializer of a sensor kind."""
    def decorator(fn):
        serializers[kind] = fn
        return fn
    return decorator


def format_float(value: float) -> str:
    return f"{float(value):.{DOUBLE_PRECISION}g}"


def _csv_line(timestamp_ns: int, values) -> str:
    return ",".join([str(int(timestamp_ns))] + [format_float(v) for v in values])


@register_serializer(SensorKind.CAMERA)
def write_camera(sink: OutputSink, timestamp_ns: int, image: np.ndarray) -> str:
    """Store ``<image dir>/<ts>.png`` and append ``<ts>,<ts>.png``."""
    filename = f"{int(timestamp_ns)}.png"
    write_image(sink.data_dir / filename, image)
    sink.write_line(f"{int(timestamp_ns)},{filename}")
    return filename


@register_serializer(SensorKind.IMU)
def write_imu(sink: OutputSink, timestamp_ns: int, sample: ImuSample) -> None:
    sink.write_line(_csv_line(timestamp_ns, sample.values()))


@register_serializer(SensorKind.VICON)
def write_vicon(sink: OutputSink, timestamp_ns: int, sample: PoseSample) -> None:
    sink.write_line(_csv_line(timestamp_ns, sample.values()))


__all__ = [
    "DOUBLE_PRECISION", "serializers", "register_serializer", "format_float",
    "write_camera", "write_imu", "write_vicon",
]
