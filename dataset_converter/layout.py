# Copyright (c) 2025 Eirik Varnes
# Licensed under the MIT License. See LICENSE file for details.

"""
Output directory tree and per-sensor CSV streams.

The output root is wiped and rebuilt on every run, so a previous (possibly
partial) conversion never leaks into a new one.
"""

from __future__ import annotations
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, IO, Iterable, Iterator, List, Optional, Union

from .config import SensorEntry, SensorKind
from .errors import OutputError

logger = logging.getLogger(__name__)

CSV_HEADERS: Dict[SensorKind, List[str]] = {
    SensorKind.CAMERA: ["timestamp_ns", "filename"],
    SensorKind.IMU: [
        "timestamp_ns",
        "angular_velocity_x", "angular_velocity_y", "angular_velocity_z",
        "linear_acceleration_x", "linear_acceleration_y", "linear_acceleration_z",
    ],
    SensorKind.VICON: [
        "timestamp_ns",
        "position_x", "position_y", "position_z",
        "orientation_w", "orientation_x", "orientation_y", "orientation_z",
    ],
}


def csv_header(kind: SensorKind) -> str:
    return ",".join(CSV_HEADERS[kind])


def output_root_for_bag(bag_path: Union[str, Path]) -> Path:
    """``<bagDir>/<bagNameNoExt>`` for a bag file or rosbag2 directory."""
    bag_path = Path(bag_path)
    return bag_path.parent / bag_path.stem


# ------------------------------ Sinks ------------------------------

@dataclass
class OutputSink:
    """Open CSV stream of one sensor plus its image directory (cameras)."""
    entry: SensorEntry
    csv_file: IO[str]
    csv_path: Path
    data_dir: Optional[Path] = None
    lines_written: int = 0
    closed: bool = False

    def write_line(self, line: str) -> None:
        try:
            self.csv_file.write(line + "\n")
        except (OSError, ValueError) as e:
            raise OutputError(f"Could not write to {self.csv_path}: {e}") from e
        self.lines_written += 1

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.csv_file.close()


class OutputLayout:
    """
    Every sink of one conversion run, keyed by configured topic.

    Use as a context manager: leaving the block closes each sink exactly
    once, whatever way the block ends.
    """

    def __init__(self, root: Path, sinks: Dict[str, OutputSink]):
        self.root = root
        self._sinks = sinks

    def sink(self, entry: SensorEntry) -> OutputSink:
        return self._sinks[entry.topic]

    def __iter__(self) -> Iterator[OutputSink]:
        return iter(self._sinks.values())

    def __len__(self) -> int:
        return len(self._sinks)

    @property
    def closed(self) -> bool:
        return all(s.closed for s in self._sinks.values())

    def close(self) -> None:
        errors = []
        for sink in self._sinks.values():
            try:
                sink.close()
            except OSError as e:
                errors.append(f"{sink.csv_path}: {e}")
        if errors:
            raise OutputError("Could not close output file(s): " + "; ".join(errors))

    def __enter__(self) -> "OutputLayout":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# ------------------------------ Builder ------------------------------

def _make_clean_dir(root: Path) -> None:
    if root.exists():
        logger.info("Cleaning previous dataset %s", root)
        shutil.rmtree(root)
    logger.info("Creating dataset folder %s", root)
    root.mkdir(parents=True)


def build_output_layout(output_root: Union[str, Path], entries: Iterable[SensorEntry]) -> OutputLayout:
    """
    Recreate ``output_root``, the per-sensor folders and the CSV streams.

    Each CSV starts with the header of its sensor kind. Any filesystem
    failure raises OutputError; streams opened before the failure are closed.
    """
    root = Path(output_root)
    entries = list(entries)
    try:
        _make_clean_dir(root)
        for entry in entries:
            (root / entry.folder).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(f"Could not create dataset folders under {root}: {e}") from e

    sinks: Dict[str, OutputSink] = {}
    try:
        for entry in entries:
            csv_path = root / entry.csv_path
            csv_path.parent.mkdir(parents=True, exist_ok=True)
            f = open(csv_path, "w", encoding="utf-8", newline="")
            sink = OutputSink(
                entry=entry,
                csv_file=f,
                csv_path=csv_path,
                data_dir=(root / entry.folder) if entry.kind is SensorKind.CAMERA else None,
            )
            sinks[entry.topic] = sink
            f.write(csv_header(entry.kind) + "\n")
    except OSError as e:
        for sink in sinks.values():
            sink.close()
        raise OutputError(f"Could not open CSV output under {root}: {e}") from e

    logger.info("Opened %d CSV stream(s) under %s", len(sinks), root)
    return OutputLayout(root, sinks)


__all__ = [
    "CSV_HEADERS", "csv_header", "output_root_for_bag",
    "OutputSink", "OutputLayout", "build_output_layout",
]
