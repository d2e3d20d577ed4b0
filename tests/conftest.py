import pathlib
import sys
from types import SimpleNamespace

import numpy as np
import pytest
from rosbags.rosbag2 import Writer
from rosbags.typesys import Stores, get_typestore

# Ensure the repo root is on path for direct test execution
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dataset_converter.bag_io import stamp_nanoseconds  # noqa: E402
from dataset_converter.records import Record  # noqa: E402

IMAGE_TYPE = "sensor_msgs/msg/Image"
IMU_TYPE = "sensor_msgs/msg/Imu"
TRANSFORM_TYPE = "geometry_msgs/msg/TransformStamped"


def header(ts_ns):
    return SimpleNamespace(stamp=SimpleNamespace(sec=ts_ns // 1_000_000_000, nanosec=ts_ns % 1_000_000_000))


def vec(x, y, z):
    return SimpleNamespace(x=x, y=y, z=z)


def imu_msg(ts_ns, av=(0.1, 0.2, 0.3), la=(9.81, -0.5, 0.25)):
    return SimpleNamespace(header=header(ts_ns), angular_velocity=vec(*av), linear_acceleration=vec(*la))


def transform_msg(ts_ns, p=(1.0, 2.0, 3.0), q=(1.0, 0.0, 0.0, 0.0)):
    w, x, y, z = q
    return SimpleNamespace(
        header=header(ts_ns),
        transform=SimpleNamespace(translation=vec(*p), rotation=SimpleNamespace(w=w, x=x, y=y, z=z)),
    )


def image_msg(ts_ns, height=4, width=6, seed=0):
    pixels = np.random.default_rng(seed).integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    return SimpleNamespace(
        header=header(ts_ns),
        height=height,
        width=width,
        encoding="bgr8",
        is_bigendian=0,
        step=width * 3,
        data=pixels.tobytes(),
    )


def record(topic, msgtype, msg):
    return Record(topic=topic, msgtype=msgtype, timestamp_ns=stamp_nanoseconds(msg), message=msg)


def write_ros2_bag(path):
    """
    Small rosbag2 recording with messages written in this order:

    * bag time 100: /imu0 Imu, header stamp 1_000_000_001
    * bag time 150: /chatter String (not a sensor)
    * bag time 200: /vicon/body TransformStamped, header stamp 1_000_000_002
    * bag time 300: /imu0 Imu, header stamp 1_000_000_003
    """
    typestore = get_typestore(Stores.ROS2_HUMBLE)
    types = typestore.types
    Time = types["builtin_interfaces/msg/Time"]
    Header = types["std_msgs/msg/Header"]
    Vector3 = types["geometry_msgs/msg/Vector3"]
    Quaternion = types["geometry_msgs/msg/Quaternion"]
    Imu = types[IMU_TYPE]
    Transform = types["geometry_msgs/msg/Transform"]
    TransformStamped = types[TRANSFORM_TYPE]
    String = types["std_msgs/msg/String"]

    def stamped(ts_ns):
        return Header(stamp=Time(sec=ts_ns // 1_000_000_000, nanosec=ts_ns % 1_000_000_000), frame_id="base")

    def imu(ts_ns, wx):
        return Imu(
            header=stamped(ts_ns),
            orientation=Quaternion(x=0.0, y=0.0, z=0.0, w=1.0),
            orientation_covariance=np.zeros(9, dtype=np.float64),
            angular_velocity=Vector3(x=wx, y=0.25, z=-2.0),
            angular_velocity_covariance=np.zeros(9, dtype=np.float64),
            linear_acceleration=Vector3(x=0.0, y=0.0, z=9.8125),
            linear_acceleration_covariance=np.zeros(9, dtype=np.float64),
        )

    pose = TransformStamped(
        header=stamped(1_000_000_002),
        child_frame_id="body",
        transform=Transform(
            translation=Vector3(x=1.0, y=2.0, z=3.0),
            rotation=Quaternion(x=0.0, y=0.0, z=0.5, w=0.75),
        ),
    )

    with Writer(path, version=9) as writer:
        imu_conn = writer.add_connection("/imu0", IMU_TYPE, typestore=typestore)
        chatter_conn = writer.add_connection("/chatter", "std_msgs/msg/String", typestore=typestore)
        pose_conn = writer.add_connection("/vicon/body", TRANSFORM_TYPE, typestore=typestore)

        writer.write(imu_conn, 100, typestore.serialize_cdr(imu(1_000_000_001, 1.5), IMU_TYPE))
        writer.write(chatter_conn, 150, typestore.serialize_cdr(String(data="hello"), "std_msgs/msg/String"))
        writer.write(pose_conn, 200, typestore.serialize_cdr(pose, TRANSFORM_TYPE))
        writer.write(imu_conn, 300, typestore.serialize_cdr(imu(1_000_000_003, -0.5), IMU_TYPE))
    return path


class FakeReader:
    """In-memory stand-in for BagReader."""

    def __init__(self, records, honor_filter=True, fail_at=None):
        self._records = list(records)
        self.honor_filter = honor_filter
        self.fail_at = fail_at
        self.requested_topics = None

    def topics(self):
        return {r.topic: r.msgtype for r in self._records}

    def _selected(self, topics):
        if topics is None or not self.honor_filter:
            return self._records
        wanted = set(topics)
        return [r for r in self._records if r.topic in wanted]

    def message_count(self, topics=None):
        return len(self._selected(topics))

    def records(self, topics=None):
        self.requested_topics = list(topics) if topics is not None else None
        for i, r in enumerate(self._selected(topics)):
            if self.fail_at is not None and i == self.fail_at:
                raise RuntimeError("bag read failed")
            yield r


@pytest.fixture
def sensor_params():
    return {
        "sensors": ["cam0", "imu0", "vicon0"],
        "data_file": "data.csv",
        "info": {
            "cam0": {"topic": "/cam0/image", "type": "camera", "data_dir": "data"},
            "imu0": {"topic": "imu0", "type": "imu"},
            "vicon0": {"topic": "/vicon/body", "type": "vicon"},
        },
    }
