# Copyright (c) 2025 Eirik Varnes
# Licensed under the MIT License. See LICENSE file for details.

"""
Bag -> dataset conversion driver.

The driver walks through three states:

* INITIALIZING: resolve the configured sensors against the bag topics and
  build the output layout. Any failure ends the run here.
* STREAMING: pull records one at a time in stored order, resolve each
  topic, decode the payload for the sensor kind and hand it to the kind's
  serializer. Records on unmapped topics only advance the progress.
* FINALIZING: close every CSV stream, on every exit path.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

from tqdm import tqdm

from .bag_io import IMU_TYPES, POSE_TYPES, BagReader, extract_imu_sample, extract_pose_sample
from .config import TYPESTORE_DEFAULT, SensorConfig, SensorEntry, SensorKind
from .errors import ConfigurationError
from .images import COMPRESSED_IMAGE_TYPES, RAW_IMAGE_TYPES, decode_image
from .layout import OutputLayout, build_output_layout, output_root_for_bag
from .records import Record
from .serializers import serializers
from .topics import TopicResolver

logger = logging.getLogger(__name__)


class ConverterState(Enum):
    INITIALIZING = "initializing"
    STREAMING = "streaming"
    FINALIZING = "finalizing"


@dataclass
class ConversionResult:
    output_root: Path
    total: int
    seen: int = 0
    written: int = 0
    skipped: int = 0
    per_sensor: Dict[str, int] = field(default_factory=dict)

    @property
    def percent(self) -> float:
        """Records seen so far over the total known up front."""
        if self.total <= 0:
            return 100.0
        return 100.0 * self.seen / self.total


# kind -> fn(record) returning the serializer payload
PAYLOAD_EXTRACTORS: Dict[SensorKind, Callable[[Record], Any]] = {
    SensorKind.CAMERA: lambda record: decode_image(record.message, record.msgtype),
    SensorKind.IMU: lambda record: extract_imu_sample(record.message),
    SensorKind.VICON: lambda record: extract_pose_sample(record.message),
}

# kind -> message types its extractor understands
MESSAGE_TYPES: Dict[SensorKind, Tuple[str, ...]] = {
    SensorKind.CAMERA: RAW_IMAGE_TYPES + COMPRESSED_IMAGE_TYPES,
    SensorKind.IMU: IMU_TYPES,
    SensorKind.VICON: POSE_TYPES,
}


class DatasetConverter:
    """
    Converts the records of one bag into the per-sensor dataset layout.

    ``reader`` must provide ``topics()``, ``message_count(topics)`` and
    ``records(topics)``; see ``bag_io.BagReader``.
    """

    def __init__(
        self,
        config: SensorConfig,
        reader,
        output_root: Union[str, Path],
        *,
        progress: bool = True,
        desc: Optional[str] = None,
    ):
        self.config = config
        self.reader = reader
        self.output_root = Path(output_root)
        self.progress = progress
        self.desc = desc or self.output_root.name
        self.state = ConverterState.INITIALIZING

    def run(self) -> ConversionResult:
        self.state = ConverterState.INITIALIZING
        layout: Optional[OutputLayout] = None
        try:
            resolver = TopicResolver(self.config)
            bag_topics = list(self.reader.topics())
            routed = resolver.routed_topics(bag_topics)
            for entry in resolver.unmatched_sensors(bag_topics):
                logger.warning('No topic matching "%s" for sensor "%s" in the bag', entry.topic, entry.name)
            total = self.reader.message_count(routed)
            logger.info("Routing %d topic(s), %d message(s)", len(routed), total)

            layout = build_output_layout(self.output_root, resolver.entries)
            result = ConversionResult(
                output_root=self.output_root,
                total=total,
                per_sensor={e.name: 0 for e in resolver.entries},
            )

            self.state = ConverterState.STREAMING
            self._stream(resolver, layout, routed, result)
        finally:
            self._finalize(layout)

        logger.info(
            "Wrote %d record(s), skipped %d of %d (%.2f %%)",
            result.written, result.skipped, result.total, result.percent,
        )
        return result

    def _stream(self, resolver: TopicResolver, layout: OutputLayout, routed, result: ConversionResult) -> None:
        logger.info("Parsing the bag...")
        with tqdm(total=result.total, desc=self.desc, unit=" msg", ncols=100, disable=not self.progress) as pbar:
            for record in self.reader.records(routed):
                entry = resolver.resolve(record.topic)
                if entry is None:
                    result.skipped += 1
                else:
                    self._dispatch(entry, layout, record)
                    result.written += 1
                    result.per_sensor[entry.name] += 1
                result.seen += 1
                pbar.update(1)

    def _dispatch(self, entry: SensorEntry, layout: OutputLayout, record: Record) -> None:
        if record.msgtype not in MESSAGE_TYPES[entry.kind]:
            raise ConfigurationError(
                f'Sensor "{entry.name}" ({entry.kind.value}) cannot read {record.msgtype} '
                f"messages on {record.topic}"
            )
        payload = PAYLOAD_EXTRACTORS[entry.kind](record)
        serializers[entry.kind](layout.sink(entry), record.timestamp_ns, payload)
        logger.debug("%s %d -> %s", record.topic, record.timestamp_ns, entry.name)

    def _finalize(self, layout: Optional[OutputLayout]) -> None:
        self.state = ConverterState.FINALIZING
        if layout is not None:
            logger.info("Closing files...")
            layout.close()


def _check_output_root(bag_path: Path, output_root: Path) -> None:
    bag = bag_path.resolve()
    root = output_root.resolve()
    if root == bag or root in bag.parents:
        raise ConfigurationError(
            f"Output folder {root} would overwrite the bag {bag}; choose another output folder"
        )


def convert_bag(
    bag_path: Union[str, Path],
    config: SensorConfig,
    *,
    output_root: Optional[Union[str, Path]] = None,
    typestore: str = TYPESTORE_DEFAULT,
    progress: bool = True,
) -> ConversionResult:
    """Convert ``bag_path`` into ``<bagDir>/<bagNameNoExt>`` (or ``output_root``)."""
    bag_path = Path(bag_path)
    output_root = Path(output_root) if output_root is not None else output_root_for_bag(bag_path)
    _check_output_root(bag_path, output_root)

    with BagReader(bag_path, typestore=typestore) as reader:
        converter = DatasetConverter(config, reader, output_root, progress=progress, desc=bag_path.name)
        return converter.run()


__all__ = [
    "ConverterState", "ConversionResult", "PAYLOAD_EXTRACTORS", "MESSAGE_TYPES",
    "DatasetConverter", "convert_bag",
]
