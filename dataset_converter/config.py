# Copyright (c) 2025 Eirik Varnes
# Licensed under the MIT License. See LICENSE file for details.

"""Sensor configuration for the dataset converter.

The YAML layout mirrors the ROS parameter server layout used by the
recording launch files::

    sensors: [cam0, imu0]
    data_file: data.csv
    info:
      cam0: {topic: /cam0/image_raw, type: camera, data_dir: data}
      imu0: {topic: /imu0, type: imu}

Every sensor listed under ``sensors`` needs an ``info/<name>`` block with a
``topic`` and a ``type``. Cameras store their frames under ``data_dir``
when given, otherwise directly in the sensor folder.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# --- Parameter keys ---
SENSOR_LIST_KEY: str = "sensors"
CSV_FILE_KEY: str = "data_file"
INFO_KEY: str = "info"
TOPIC_KEY: str = "topic"
TYPE_KEY: str = "type"
DATA_DIR_KEY: str = "data_dir"

TOPIC_SEPARATOR: str = "/"

# --- Defaults ---
TYPESTORE_DEFAULT: str = "ros2_humble"


class SensorKind(str, Enum):
    CAMERA = "camera"
    IMU = "imu"
    VICON = "vicon"


@dataclass(frozen=True)
class SensorEntry:
    """One configured sensor; paths are relative to the output root."""
    name: str
    topic: str
    kind: SensorKind
    csv_path: str
    data_dir: Optional[str] = None

    @property
    def folder(self) -> str:
        """Directory created for the sensor: its data dir, else its own folder."""
        return self.data_dir if self.data_dir is not None else self.name


@dataclass(frozen=True)
class SensorConfig:
    csv_filename: str
    sensors: Tuple[SensorEntry, ...]

    def __iter__(self):
        return iter(self.sensors)

    def __len__(self) -> int:
        return len(self.sensors)


# ------------------------------ Parsing ------------------------------

def _missing(key: str) -> ConfigurationError:
    return ConfigurationError(f'Missing "{key}" parameter. Check your yaml or launch file')


def _lookup(params: Mapping[str, Any], key: str) -> Any:
    """Look up ``key``, accepting both nested mappings and flat ``a/b`` keys."""
    if key in params:
        return params[key]
    head, sep, tail = key.partition("/")
    if sep and isinstance(params.get(head), Mapping):
        return _lookup(params[head], tail)
    raise KeyError(key)


def _parse_kind(sensor: str, raw: Any) -> SensorKind:
    try:
        return SensorKind(str(raw).strip().lower())
    except ValueError:
        allowed = ", ".join(k.value for k in SensorKind)
        raise ConfigurationError(
            f'Unknown type {raw!r} for sensor "{sensor}" (expected one of: {allowed})'
        ) from None


def _parse_entry(sensor: str, params: Mapping[str, Any], csv_filename: str) -> SensorEntry:
    block_key = f"{INFO_KEY}/{sensor}"
    try:
        block = _lookup(params, block_key)
    except KeyError:
        raise _missing(block_key) from None
    if not isinstance(block, Mapping):
        raise ConfigurationError(f'"{block_key}" must be a mapping, got {type(block).__name__}')

    for key in (TOPIC_KEY, TYPE_KEY):
        if block.get(key) in (None, ""):
            raise _missing(f"{block_key}/{key}")

    kind = _parse_kind(sensor, block[TYPE_KEY])

    data_dir = block.get(DATA_DIR_KEY)
    if data_dir is not None:
        data_dir = f"{sensor}/{data_dir}"

    return SensorEntry(
        name=sensor,
        topic=str(block[TOPIC_KEY]),
        kind=kind,
        csv_path=f"{sensor}/{csv_filename}",
        data_dir=data_dir,
    )


def load_sensor_config(params: Mapping[str, Any]) -> SensorConfig:
    """
    Build the validated sensor set from already parsed key/value parameters.

    Raises ConfigurationError when the sensor list, the CSV filename, a
    per-sensor block or its topic/type are missing, when a type is unknown,
    or when two sensors share a name or (separator-normalized) topic.
    """
    logger.info("Retrieving sensor list...")
    try:
        sensor_list = _lookup(params, SENSOR_LIST_KEY)
    except KeyError:
        raise _missing(SENSOR_LIST_KEY) from None
    if isinstance(sensor_list, (str, bytes)) or not isinstance(sensor_list, (list, tuple)):
        raise ConfigurationError(f'"{SENSOR_LIST_KEY}" must be a list of sensor names')

    logger.info("Retrieving CSV filename...")
    try:
        csv_filename = _lookup(params, CSV_FILE_KEY)
    except KeyError:
        raise _missing(CSV_FILE_KEY) from None
    if not csv_filename:
        raise _missing(CSV_FILE_KEY)
    csv_filename = str(csv_filename)

    logger.info("Retrieving sensor information...")
    entries = []
    names = set()
    topics = {}
    for raw_name in sensor_list:
        name = str(raw_name)
        if name in names:
            raise ConfigurationError(f'Sensor "{name}" is listed more than once')
        names.add(name)

        entry = _parse_entry(name, params, csv_filename)
        normalized = entry.topic[1:] if entry.topic.startswith(TOPIC_SEPARATOR) else entry.topic
        if normalized in topics:
            raise ConfigurationError(
                f'Sensors "{topics[normalized]}" and "{name}" share topic {entry.topic!r}'
            )
        topics[normalized] = name
        entries.append(entry)
        logger.debug("  %s: %s (%s)", name, entry.topic, entry.kind.value)

    return SensorConfig(csv_filename=csv_filename, sensors=tuple(entries))


def load_config_file(path: Union[str, Path]) -> SensorConfig:
    """Read a YAML sensor configuration from disk."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            params = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Could not read configuration {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        raise ConfigurationError(f"Configuration {path} must contain a mapping at top level")
    logger.info("Read config from %s", path)
    return load_sensor_config(params)


__all__ = [
    "SENSOR_LIST_KEY", "CSV_FILE_KEY", "INFO_KEY", "TOPIC_KEY", "TYPE_KEY", "DATA_DIR_KEY",
    "TOPIC_SEPARATOR", "TYPESTORE_DEFAULT",
    "SensorKind", "SensorEntry", "SensorConfig",
    "load_sensor_config", "load_config_file",
]
