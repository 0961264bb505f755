"""Conversion of raw image messages into numpy arrays."""

from __future__ import annotations

import re
from dataclasses import dataclass

import numpy as np


class ImageEncodingError(ValueError):
    """Raised for an unknown encoding or a malformed image message."""


@dataclass
class ImageMessage:
    """A raw image as carried by a camera message."""

    height: int
    width: int
    encoding: str
    is_bigendian: bool = False
    step: int = 0
    data: bytes = b""


_DEPTH_CODES = {"8U": 0, "8S": 1, "16U": 2, "16S": 3, "32S": 4, "32F": 5, "64F": 6}
_BIT_DEPTHS = {0: 8, 1: 8, 2: 16, 3: 16, 4: 32, 5: 32, 6: 64}
_DTYPES = {0: "u1", 1: "i1", 2: "u2", 3: "i2", 4: "i4", 5: "f4", 6: "f8"}
_CN_SHIFT = 3

_NAMED = {
    "bgr8": (0, 3),
    "mono8": (0, 1),
    "rgb8": (0, 3),
    "mono16": (2, 1),
    "bgr16": (2, 3),
    "rgb16": (2, 3),
    "bgra8": (0, 4),
    "rgba8": (0, 4),
    "bgra16": (2, 4),
    "rgba16": (2, 4),
    "bayer_rggb8": (0, 1),
    "bayer_bggr8": (0, 1),
    "bayer_gbrg8": (0, 1),
    "bayer_grbg8": (0, 1),
    "bayer_rggb16": (2, 1),
    "bayer_bggr16": (2, 1),
    "bayer_gbrg16": (2, 1),
    "bayer_grbg16": (2, 1),
    "yuv422": (0, 2),
    "yuv422_yuy2": (0, 2),
}

_GENERIC_WITH_CHANNELS = re.compile(r"(8U|8S|16U|16S|32S|32F|64F)C([0-9]+)")
_GENERIC = re.compile(r"(8U|8S|16U|16S|32S|32F|64F)")


def _parse(encoding: str) -> tuple[int, int]:
    """Return (depth code, channel count) of an encoding."""
    if encoding in _NAMED:
        return _NAMED[encoding]
    match = _GENERIC_WITH_CHANNELS.fullmatch(encoding)
    if match:
        return _DEPTH_CODES[match.group(1)], int(match.group(2))
    match = _GENERIC.fullmatch(encoding)
    if match:
        return _DEPTH_CODES[match.group(1)], 1
    raise ImageEncodingError(f"Unrecognized image encoding [{encoding}]")


def cv_type(encoding: str) -> int:
    """The OpenCV matrix type code for an image encoding."""
    depth, channels = _parse(encoding)
    return depth + ((channels - 1) << _CN_SHIFT)


def _shape(height: int, width: int, channels: int) -> tuple[int, ...]:
    return (height, width) if channels == 1 else (height, width, channels)


def to_array(message: ImageMessage) -> np.ndarray:
    """Decode an image message into an array in native byte order.

    Single-channel images come back as (height, width), others as
    (height, width, channels). ``bgra8`` images lose their alpha channel.
    """
    height, width = message.height, message.width
    data = bytes(message.data)

    if message.encoding == "mono16":
        needed = height * width * 2
        if len(data) < needed:
            raise ImageEncodingError(
                f"Image is wrongly formed: mono16 needs {needed} bytes, got {len(data)}"
            )
        order = ">" if message.is_bigendian else "<"
        values = np.frombuffer(data, dtype=f"{order}u2", count=height * width)
        return values.astype(np.uint16).reshape(height, width)

    if message.encoding == "bgra8":
        needed = height * width * 4
        if len(data) < needed:
            raise ImageEncodingError(
                f"Image is wrongly formed: bgra8 needs {needed} bytes, got {len(data)}"
            )
        bgra = np.frombuffer(data, dtype=np.uint8, count=needed).reshape(height, width, 4)
        return np.ascontiguousarray(bgra[:, :, :3])

    depth, channels = _parse(message.encoding)
    if channels < 1:
        raise ImageEncodingError(f"encoding [{message.encoding}] has no channels")
    byte_depth = _BIT_DEPTHS[depth] // 8
    row_bytes = width * byte_depth * channels

    if message.step < row_bytes:
        raise ImageEncodingError(
            "Image is wrongly formed: step < width * byte_depth * num_channels  or  "
            f"{message.step} != {width} * {byte_depth} * {channels}"
        )
    if height * message.step != len(data):
        raise ImageEncodingError(
            "Image is wrongly formed: height * step != size  or  "
            f"{height} * {message.step} != {len(data)}"
        )

    rows = np.frombuffer(data, dtype=np.uint8).reshape(height, message.step)
    packed = np.ascontiguousarray(rows[:, :row_bytes])
    order = ">" if message.is_bigendian else "<"
    source_dtype = np.dtype(f"{order}{_DTYPES[depth]}")
    values = packed.view(source_dtype).astype(source_dtype.newbyteorder("="))
    return values.reshape(_shape(height, width, channels))