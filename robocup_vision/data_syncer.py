"""Pairs colour frames with the depth images and head poses nearest in time."""

from __future__ import annotations

import logging
import math
import re
import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Deque

import numpy as np
import yaml
from PIL import Image

from robocup_vision.pose import Pose

logger = logging.getLogger(__name__)

DEPTH_BUFFER_LENGTH = 30
POSE_BUFFER_LENGTH = 500

_COLOR_FILE = re.compile(r"color_([0-9]+\.[0-9]+)\.jpg")


@dataclass
class DataBlock:
    """One piece of sensor data with its timestamp in seconds."""

    data: Any = None
    timestamp: float = 0.0


def _pose_block() -> DataBlock:
    return DataBlock(Pose(), 0.0)


@dataclass
class SyncedDataBlock:
    """A colour frame together with the depth image and pose closest to it."""

    color_data: DataBlock = field(default_factory=DataBlock)
    depth_data: DataBlock = field(default_factory=DataBlock)
    pose_data: DataBlock = field(default_factory=_pose_block)


def _read_color(path: Path) -> np.ndarray:
    with Image.open(path) as image:
        rgb = np.array(image.convert("RGB"))
    return np.ascontiguousarray(rgb[:, :, ::-1])


def _read_depth(path: Path) -> np.ndarray:
    with Image.open(path) as image:
        if image.mode.startswith("I;16") or image.mode == "I":
            return np.array(image).astype(np.uint16)
        return np.array(image.convert("L"))


def _read_pose(path: Path) -> Pose:
    with path.open("r", encoding="utf-8") as stream:
        node = yaml.safe_load(stream)
    if isinstance(node, dict) and node.get("pose") is not None:
        node = node["pose"]
    return Pose.from_yaml(node)


def _closest(buffer: Deque[DataBlock], timestamp: float) -> DataBlock | None:
    """Walk from the newest entry while the time difference keeps shrinking."""
    best_diff = math.inf
    chosen = None
    for block in reversed(buffer):
        diff = abs(block.timestamp - timestamp)
        if diff < best_diff:
            best_diff = diff
            chosen = block
        else:
            break
    return chosen


class DataSyncer:
    """Buffers depth images and poses and matches them to colour frames."""

    def __init__(self, enable_depth: bool):
        self.enable_depth = enable_depth
        self._depth_lock = threading.Lock()
        self._pose_lock = threading.Lock()
        self._depth_buffer: Deque[DataBlock] = deque(
            (DataBlock() for _ in range(DEPTH_BUFFER_LENGTH)), maxlen=DEPTH_BUFFER_LENGTH
        )
        self._pose_buffer: Deque[DataBlock] = deque(
            (_pose_block() for _ in range(POSE_BUFFER_LENGTH)), maxlen=POSE_BUFFER_LENGTH
        )
        self._data_dir: Path | None = None
        self._timestamps: list[float] = []
        self._index = 0

    @property
    def timestamps(self) -> list[float]:
        """Timestamps of the recorded frames, in ascending order."""
        return list(self._timestamps)

    def load_data(self, data_dir: str | Path) -> None:
        """Index the recorded ``color_<timestamp>.jpg`` frames in a directory."""
        directory = Path(data_dir)
        if not directory.is_dir():
            raise FileNotFoundError(f"data directory does not exist: {data_dir}")
        self._data_dir = directory
        for entry in directory.iterdir():
            match = _COLOR_FILE.fullmatch(entry.name)
            if match:
                timestamp = float(match.group(1))
                logger.info("found timestamp : %f", timestamp)
                self._timestamps.append(timestamp)
        self._timestamps.sort()
        self._index = 0
        logger.info("loaded %d data", len(self._timestamps))

    def add_depth(self, block: DataBlock) -> None:
        if not self.enable_depth:
            return
        with self._depth_lock:
            self._depth_buffer.append(block)

    def add_pose(self, block: DataBlock) -> None:
        with self._pose_lock:
            self._pose_buffer.append(block)

    def next_recorded(self) -> SyncedDataBlock:
        """Load the next recorded frame, cycling back to the first after the last."""
        if self._data_dir is None or not self._timestamps:
            raise LookupError("no recorded data loaded")
        timestamp = self._timestamps[self._index]
        stem = f"{timestamp:.6f}"
        color_path = self._data_dir / f"color_{stem}.jpg"
        depth_path = self._data_dir / f"depth_{stem}.png"
        pose_path = self._data_dir / f"pose_{stem}.yaml"
        synced = SyncedDataBlock()

        if color_path.exists():
            synced.color_data = DataBlock(_read_color(color_path), timestamp)
        else:
            logger.warning("color file not found: %s", color_path)

        if self.enable_depth:
            if depth_path.exists():
                synced.depth_data = DataBlock(_read_depth(depth_path), timestamp)
            else:
                logger.warning("depth file not found: %s", depth_path)

        if pose_path.exists():
            synced.pose_data = DataBlock(_read_pose(pose_path), timestamp)
        else:
            logger.warning("pose file not found: %s", pose_path)

        self._index = (self._index + 1) % len(self._timestamps)
        if self._index == 0:
            logger.info("looped all data, reset index to 0")
        return synced

    def sync(self, color: DataBlock) -> SyncedDataBlock:
        """Pair a colour frame with the buffered depth image and pose nearest in time."""
        synced = SyncedDataBlock(color_data=color)
        with self._depth_lock:
            depth_buffer = deque(self._depth_buffer)
        with self._pose_lock:
            pose_buffer = deque(self._pose_buffer)

        if self.enable_depth:
            depth = _closest(depth_buffer, color.timestamp)
            if depth is not None:
                data = depth.data.copy() if isinstance(depth.data, np.ndarray) else depth.data
                synced.depth_data = DataBlock(data, depth.timestamp)

        pose = _closest(pose_buffer, color.timestamp)
        if pose is not None:
            synced.pose_data = DataBlock(pose.data, pose.timestamp)
        return synced