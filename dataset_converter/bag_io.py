# Copyright (c) 2025 Eirik Varnes
# Licensed under the MIT License. See LICENSE file for details.

"""
Bag access through ``rosbags``: topic listing, filtered record iteration and
the message -> payload extraction for IMU and pose messages.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

import pandas as pd
from rosbags.highlevel import AnyReader, AnyReaderError
from rosbags.rosbag1 import ReaderError as Rosbag1ReaderError
from rosbags.rosbag2 import ReaderError as Rosbag2ReaderError
from rosbags.typesys import Stores, TypesysError, get_typestore

from .config import TYPESTORE_DEFAULT, SensorConfig
from .errors import BagReadError, ConfigurationError
from .records import ImuSample, PoseSample, Record
from .topics import TopicResolver

logger = logging.getLogger(__name__)

IMU_TYPES = ("sensor_msgs/msg/Imu", "sensor_msgs/Imu")
POSE_TYPES = (
    "geometry_msgs/msg/TransformStamped", "geometry_msgs/TransformStamped",
    "geometry_msgs/msg/PoseStamped", "geometry_msgs/PoseStamped",
)


# ------------------------------ Timestamps ------------------------------

def stamp_nanoseconds(msg, fallback_t_ns: Optional[int] = None) -> Optional[int]:
    """Header stamp in integer nanoseconds (ROS2 -> ROS1 -> bag time)."""
    try:
        return int(msg.header.stamp.sec) * 1_000_000_000 + int(msg.header.stamp.nanosec)
    except AttributeError:
        pass
    try:
        return int(msg.header.stamp.secs) * 1_000_000_000 + int(msg.header.stamp.nsecs)
    except AttributeError:
        pass
    return int(fallback_t_ns) if fallback_t_ns is not None else None


# ------------------------------ Payloads ------------------------------

def _xyz(v) -> tuple:
    return (float(v.x), float(v.y), float(v.z))


def extract_imu_sample(msg) -> ImuSample:
    """Angular velocity and linear acceleration of a sensor_msgs/Imu."""
    return ImuSample(
        angular_velocity=_xyz(msg.angular_velocity),
        linear_acceleration=_xyz(msg.linear_acceleration),
    )


def extract_pose_sample(msg) -> PoseSample:
    """Pose of a geometry_msgs/TransformStamped (or PoseStamped), quaternion w first."""
    if hasattr(msg, "transform"):
        position, rotation = msg.transform.translation, msg.transform.rotation
    else:
        position, rotation = msg.pose.position, msg.pose.orientation
    return PoseSample(
        position=_xyz(position),
        orientation=(float(rotation.w), float(rotation.x), float(rotation.y), float(rotation.z)),
    )


# ------------------------------ Reader ------------------------------

def _typestore(name: str):
    try:
        return get_typestore(Stores(name))
    except ValueError:
        allowed = ", ".join(s.value for s in Stores)
        raise ConfigurationError(f"Unknown typestore {name!r} (expected one of: {allowed})") from None


class BagReader:
    """
    Sequential, stored-order access to one bag.

    ::

        with BagReader(bag_path) as reader:
            topics = reader.topics()
            for record in reader.records(["/imu0"]):
                ...
    """

    def __init__(self, bag_path: Union[str, Path], typestore: str = TYPESTORE_DEFAULT):
        self.bag_path = Path(bag_path)
        self.typestore_name = typestore
        self._reader: Optional[AnyReader] = None

    def open(self) -> "BagReader":
        if not self.bag_path.exists():
            raise ConfigurationError(f"Bag not found: {self.bag_path}")
        logger.info("Opening bag %s", self.bag_path)
        typestore = _typestore(self.typestore_name)
        try:
            reader = AnyReader([self.bag_path], default_typestore=typestore)
            reader.open()
        except AnyReaderError as e:
            raise ConfigurationError(f"Could not open bag {self.bag_path}: {e}") from e
        self._reader = reader
        return self

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None

    def __enter__(self) -> "BagReader":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def reader(self) -> AnyReader:
        if self._reader is None:
            raise RuntimeError("BagReader is not open")
        return self._reader

    def _connections(self, topics: Optional[Iterable[str]] = None):
        conns = self.reader.connections
        if topics is None:
            return list(conns)
        wanted = set(topics)
        return [c for c in conns if c.topic in wanted]

    def topics(self) -> Dict[str, str]:
        """Every topic in the bag with its message type."""
        return {c.topic: c.msgtype for c in self._connections()}

    def message_count(self, topics: Optional[Iterable[str]] = None) -> int:
        return sum(int(c.msgcount) for c in self._connections(topics))

    def records(self, topics: Optional[Iterable[str]] = None) -> Iterator[Record]:
        """Deserialized records of ``topics``, one at a time, in stored order."""
        conns = self._connections(topics)
        # an empty connection list makes AnyReader stream the whole bag
        if not conns:
            return
        try:
            for con, t_ns, raw in self.reader.messages(connections=conns):
                msg = self._deserialize(raw, con)
                yield Record(
                    topic=con.topic,
                    msgtype=con.msgtype,
                    timestamp_ns=stamp_nanoseconds(msg, t_ns),
                    message=msg,
                )
        except (Rosbag1ReaderError, Rosbag2ReaderError) as e:
            raise BagReadError(f"Could not read {self.bag_path}: {e}") from e

    def _deserialize(self, raw, con):
        try:
            return self.reader.deserialize(raw, con.msgtype)
        except (AnyReaderError, TypesysError, KeyError) as e:
            # KeyError: msgtype missing from the typestore
            raise BagReadError(
                f"Could not deserialize {con.msgtype} on {con.topic} (typestore {self.typestore_name}): {e}"
            ) from e


# ------------------------------ Topic listing ------------------------------

def list_topics_in_bag(
    bag_path: Union[str, Path],
    config: Optional[SensorConfig] = None,
    typestore: str = TYPESTORE_DEFAULT,
) -> pd.DataFrame:
    """
    One row per bag topic: topic, msgtype, messages and, when a sensor
    configuration is given, the sensor the topic resolves to.
    """
    resolver = TopicResolver(config) if config is not None else None
    rows: List[Dict] = []
    with BagReader(bag_path, typestore=typestore) as reader:
        for topic, msgtype in sorted(reader.topics().items()):
            entry = resolver.resolve(topic) if resolver is not None else None
            rows.append({
                "topic": topic,
                "msgtype": msgtype,
                "messages": reader.message_count([topic]),
                "sensor": entry.name if entry is not None else None,
            })
    return pd.DataFrame(rows, columns=["topic", "msgtype", "messages", "sensor"])


__all__ = [
    "IMU_TYPES", "POSE_TYPES",
    "stamp_nanoseconds", "extract_imu_sample", "extract_pose_sample",
    "BagReader", "list_topics_in_bag",
]
