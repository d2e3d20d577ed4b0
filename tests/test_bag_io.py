from types import SimpleNamespace

import pytest

from conftest import IMU_TYPE, TRANSFORM_TYPE, header, imu_msg, transform_msg, vec, write_ros2_bag
from dataset_converter.bag_io import (
    BagReader, extract_imu_sample, extract_pose_sample, list_topics_in_bag, stamp_nanoseconds,
)
from dataset_converter.config import load_sensor_config
from dataset_converter.errors import BagReadError, ConfigurationError


@pytest.fixture
def ros2_bag(tmp_path):
    return write_ros2_bag(tmp_path / "run1")


def test_stamp_ros2():
    assert stamp_nanoseconds(imu_msg(1403636579758555392)) == 1403636579758555392


def test_stamp_ros1():
    msg = SimpleNamespace(header=SimpleNamespace(stamp=SimpleNamespace(secs=12, nsecs=5)))
    assert stamp_nanoseconds(msg) == 12_000_000_005


def test_stamp_falls_back_to_bag_time():
    assert stamp_nanoseconds(SimpleNamespace(), fallback_t_ns=77) == 77
    assert stamp_nanoseconds(SimpleNamespace()) is None


def test_extract_imu_sample():
    sample = extract_imu_sample(imu_msg(1, av=(1, 2, 3), la=(4.5, 5.5, 6.5)))
    assert sample.values() == (1.0, 2.0, 3.0, 4.5, 5.5, 6.5)


def test_extract_pose_from_transform_is_scalar_first():
    sample = extract_pose_sample(transform_msg(1, p=(1, 2, 3), q=(0.9, 0.1, 0.2, 0.3)))
    assert sample.position == (1.0, 2.0, 3.0)
    assert sample.orientation == (0.9, 0.1, 0.2, 0.3)


def test_extract_pose_from_pose_stamped():
    msg = SimpleNamespace(
        header=header(1),
        pose=SimpleNamespace(position=vec(4, 5, 6), orientation=SimpleNamespace(x=0.0, y=0.0, z=0.0, w=1.0)),
    )
    assert extract_pose_sample(msg).values() == (4.0, 5.0, 6.0, 1.0, 0.0, 0.0, 0.0)


def test_reader_rejects_missing_bag(tmp_path):
    with pytest.raises(ConfigurationError, match="Bag not found"):
        BagReader(tmp_path / "missing.bag").open()


def test_reader_rejects_unknown_typestore(tmp_path):
    bag = tmp_path / "run.bag"
    bag.write_bytes(b"")
    with pytest.raises(ConfigurationError, match="typestore"):
        BagReader(bag, typestore="ros0_unknown").open()


def test_reader_requires_open(tmp_path):
    with pytest.raises(RuntimeError):
        BagReader(tmp_path / "run.bag").topics()


def test_reader_lists_topics_and_counts(ros2_bag):
    with BagReader(ros2_bag) as reader:
        assert reader.topics() == {
            "/imu0": IMU_TYPE,
            "/chatter": "std_msgs/msg/String",
            "/vicon/body": TRANSFORM_TYPE,
        }
        assert reader.message_count() == 4
        assert reader.message_count(["/imu0", "/vicon/body"]) == 3
        assert reader.message_count([]) == 0


def test_reader_yields_stored_order_with_header_stamps(ros2_bag):
    with BagReader(ros2_bag) as reader:
        records = list(reader.records(["/imu0", "/vicon/body"]))

    assert [r.topic for r in records] == ["/imu0", "/vicon/body", "/imu0"]
    assert [r.timestamp_ns for r in records] == [1_000_000_001, 1_000_000_002, 1_000_000_003]
    assert [r.msgtype for r in records] == [IMU_TYPE, TRANSFORM_TYPE, IMU_TYPE]
    assert extract_imu_sample(records[0].message).values() == (1.5, 0.25, -2.0, 0.0, 0.0, 9.8125)
    assert extract_pose_sample(records[1].message).values() == (1.0, 2.0, 3.0, 0.75, 0.0, 0.0, 0.5)


def test_reader_with_no_matching_topics_yields_nothing(ros2_bag):
    with BagReader(ros2_bag) as reader:
        assert list(reader.records([])) == []
        assert list(reader.records(["/not/in/bag"])) == []


def test_reader_wraps_deserialization_failures(ros2_bag):
    con = SimpleNamespace(topic="/custom", msgtype="custom_msgs/msg/Unknown")
    with BagReader(ros2_bag) as reader:
        with pytest.raises(BagReadError, match="custom_msgs/msg/Unknown"):
            reader._deserialize(b"\x00\x01\x00\x00", con)


def test_list_topics_in_bag(ros2_bag, sensor_params):
    df = list_topics_in_bag(ros2_bag, load_sensor_config(sensor_params))

    assert list(df.columns) == ["topic", "msgtype", "messages", "sensor"]
    assert df["topic"].tolist() == ["/chatter", "/imu0", "/vicon/body"]
    assert df["messages"].tolist() == [1, 2, 1]
    # "imu0" is configured without the leading separator
    assert df["sensor"].tolist() == [None, "imu0", "vicon0"]


def test_list_topics_without_config(ros2_bag):
    df = list_topics_in_bag(ros2_bag)
    assert df["sensor"].isna().all()
    assert len(df) == 3
