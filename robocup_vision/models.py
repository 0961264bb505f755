"""Detection and segmentation result types, model interfaces and pre-processing helpers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

INPUT_TENSOR_NAME = "images"
OUTPUT_TENSOR_NAME = "output"
NUM_CLASS = 9
BATCH_SIZE = 1
GPU_ID = 0
INPUT_H = 640
INPUT_W = 640
NMS_THRESH = 0.45
CONF_THRESH = 0.5
CONF_THRESH_KEYPOINTS = 0.5
MAX_INPUT_IMAGE_SIZE = 3000 * 3000
MAX_NUM_OUTPUT_BBOX = 1000
INPUT_QUANTIZATION_FOLDER = "./coco_calib"

CLS_NUM_CLASS = 1000
CLS_INPUT_H = 224
CLS_INPUT_W = 224

POSE_NUM_CLASS = 1
NUMBER_OF_POINTS = 17

OBB_NUM_CLASS = 15

Rect = tuple[int, int, int, int]


@dataclass
class DetectionRes:
    """One detected object: box (x, y, width, height), class and confidence."""

    bbox: Rect = (0, 0, 0, 0)
    class_id: int = 0
    class_name: str = ""
    confidence: float = 0.0


@dataclass
class SegmentationRes:
    """One segmented object: mask, outline contours, box, class and confidence."""

    mask: np.ndarray = field(default_factory=lambda: np.zeros((0, 0), dtype=np.uint8))
    contour: list[list[tuple[int, int]]] = field(default_factory=list)
    bbox: Rect = (0, 0, 0, 0)
    class_id: int = 0
    class_name: str = ""
    confidence: float = 0.0


class Detector(ABC):
    """An object detection model with an adjustable confidence threshold."""

    def __init__(self, model_path: str, confidence: float):
        self._model_path = str(model_path)
        self.confidence = float(confidence)

    @property
    def model_path(self) -> str:
        return self._model_path

    @abstractmethod
    def infer(self, image: np.ndarray) -> list[DetectionRes]:
        """Detect objects in a BGR image."""


class Segmentor(ABC):
    """An instance segmentation model with an adjustable confidence threshold."""

    def __init__(self, model_path: str, confidence: float = 0.2):
        self._model_path = str(model_path)
        self.confidence = float(confidence)

    @property
    def model_path(self) -> str:
        return self._model_path

    @abstractmethod
    def infer(self, image: np.ndarray) -> list[SegmentationRes]:
        """Segment objects in a BGR image."""


def letterbox_layout(width: int, height: int, input_width: int, input_height: int) -> Rect:
    """Where an image of the given size lands, aspect kept, inside the network input.

    Returns (x, y, w, h) of the resized image within the padded input.
    """
    if width <= 0 or height <= 0:
        raise ValueError("image size must be positive")
    r_w = input_width / float(width)
    r_h = input_height / float(height)
    if r_h > r_w:
        w = input_width
        h = int(r_w * height)
        x = 0
        y = (input_height - h) // 2
    else:
        w = int(r_h * width)
        h = input_height
        x = (input_width - w) // 2
        y = 0
    return (x, y, w, h)


def trim_whitespace(text: str) -> str:
    """Strip leading and trailing spaces; a string of only spaces is returned unchanged."""
    stripped = text.strip(" ")
    return stripped if stripped else text


def format_precision(value: float, digits: int = 2) -> str:
    """Fixed-point text of a single-precision value with ``digits`` decimals."""
    return f"{float(np.float32(value)):.{digits}f}"


def read_labels(path: str | Path) -> dict[int, str]:
    """Read one label per line, keyed by line index, with spaces trimmed."""
    with open(path, "r", encoding="utf-8", newline="") as stream:
        text: Any = stream.read()
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return {index: trim_whitespace(line) for index, line in enumerate(lines)}