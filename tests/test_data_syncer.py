import numpy as np
import pytest
import yaml
from PIL import Image

from robocup_vision.data_syncer import (
    DEPTH_BUFFER_LENGTH,
    POSE_BUFFER_LENGTH,
    DataBlock,
    DataSyncer,
    SyncedDataBlock,
)
from robocup_vision.pose import Pose


def _write_frame(directory, stamp, color=(255, 0, 0), depth=None, pose=None, wrap=True):
    rgb = np.zeros((8, 8, 3), dtype=np.uint8)
    rgb[:, :] = color
    Image.fromarray(rgb).save(directory / f"color_{stamp}.jpg", quality=95)
    if depth is not None:
        Image.fromarray(depth).save(directory / f"depth_{stamp}.png")
    if pose is not None:
        node = {"pose": pose.to_yaml()} if wrap else pose.to_yaml()
        (directory / f"pose_{stamp}.yaml").write_text(yaml.safe_dump(node))


def test_load_data_missing_directory(tmp_path):
    syncer = DataSyncer(False)
    with pytest.raises(FileNotFoundError):
        syncer.load_data(tmp_path / "missing")


def test_load_data_sorts_timestamps_and_ignores_other_files(tmp_path):
    _write_frame(tmp_path, "2.500000")
    _write_frame(tmp_path, "1.250000")
    (tmp_path / "notes.txt").write_text("x")
    (tmp_path / "color_7.jpg").write_text("x")
    syncer = DataSyncer(False)
    syncer.load_data(tmp_path)
    assert syncer.timestamps == [1.25, 2.5]


def test_next_recorded_without_data_raises():
    with pytest.raises(LookupError):
        DataSyncer(False).next_recorded()


def test_next_recorded_reads_color_pose_and_cycles(tmp_path):
    pose_a = Pose.from_euler(1.0, 2.0, 3.0, 0.1, 0.2, 0.3)
    pose_b = Pose.from_euler(-1.0, 0.5, 0.0, 0.0, 0.0, 1.0)
    _write_frame(tmp_path, "1.000000", pose=pose_a, wrap=True)
    _write_frame(tmp_path, "2.000000", pose=pose_b, wrap=False)
    syncer = DataSyncer(False)
    syncer.load_data(tmp_path)

    first = syncer.next_recorded()
    assert first.color_data.timestamp == 1.0
    assert first.color_data.data.shape == (8, 8, 3)
    # saved as red RGB, read back in BGR order
    assert first.color_data.data[4, 4, 2] > 200
    assert first.color_data.data[4, 4, 0] < 60
    assert first.pose_data.data == pose_a
    assert first.pose_data.timestamp == 1.0

    second = syncer.next_recorded()
    assert second.pose_data.data == pose_b

    third = syncer.next_recorded()
    assert third.color_data.timestamp == 1.0


def test_next_recorded_reads_16bit_depth(tmp_path):
    depth = np.array([[0, 1000], [2000, 65000]], dtype=np.uint16)
    _write_frame(tmp_path, "3.000000", depth=depth)
    syncer = DataSyncer(True)
    syncer.load_data(tmp_path)
    block = syncer.next_recorded()
    assert block.depth_data.data.dtype == np.uint16
    np.testing.assert_array_equal(block.depth_data.data, depth)
    assert block.depth_data.timestamp == 3.0


def test_next_recorded_missing_files_keep_defaults(tmp_path):
    _write_frame(tmp_path, "4.000000")
    syncer = DataSyncer(True)
    syncer.load_data(tmp_path)
    block = syncer.next_recorded()
    assert block.depth_data.data is None
    assert block.pose_data.timestamp == 0.0
    assert block.pose_data.data == Pose()


def test_sync_picks_nearest_pose():
    syncer = DataSyncer(False)
    poses = {t: Pose.from_euler(t, 0, 0, 0, 0, 0) for t in (1.0, 2.0, 3.0)}
    for t, pose in poses.items():
        syncer.add_pose(DataBlock(pose, t))
    color = DataBlock(np.zeros((2, 2, 3), dtype=np.uint8), 2.1)
    synced = syncer.sync(color)
    assert synced.pose_data.timestamp == 2.0
    assert synced.pose_data.data == poses[2.0]
    assert synced.color_data is color


def test_sync_without_poses_returns_default_pose():
    syncer = DataSyncer(False)
    synced = syncer.sync(DataBlock(None, 5.0))
    assert synced.pose_data.timestamp == 0.0
    assert synced.pose_data.data == Pose()


def test_depth_ignored_when_disabled():
    syncer = DataSyncer(False)
    syncer.add_depth(DataBlock(np.ones((2, 2), dtype=np.uint16), 1.0))
    synced = syncer.sync(DataBlock(None, 1.0))
    assert synced.depth_data.data is None
    assert synced.depth_data.timestamp == 0.0


def test_depth_synced_and_copied_when_enabled():
    syncer = DataSyncer(True)
    depth = np.full((2, 2), 7, dtype=np.uint16)
    syncer.add_depth(DataBlock(depth, 1.0))
    syncer.add_depth(DataBlock(np.zeros((2, 2), dtype=np.uint16), 5.0))
    synced = syncer.sync(DataBlock(None, 1.2))
    assert synced.depth_data.timestamp == 1.0
    np.testing.assert_array_equal(synced.depth_data.data, depth)
    depth[0, 0] = 0
    assert synced.depth_data.data[0, 0] == 7


def test_pose_buffer_keeps_only_newest_entries():
    syncer = DataSyncer(False)
    for t in range(POSE_BUFFER_LENGTH + 10):
        syncer.add_pose(DataBlock(Pose(), float(t + 1)))
    # the oldest poses have been pushed out, so the nearest kept one is the oldest kept
    synced = syncer.sync(DataBlock(None, 0.0))
    assert synced.pose_data.timestamp == float(11)
    assert DEPTH_BUFFER_LENGTH < POSE_BUFFER_LENGTH


def test_synced_block_defaults():
    block = SyncedDataBlock()
    assert block.color_data.data is None
    assert block.pose_data.data == Pose()