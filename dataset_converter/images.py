# Copyright (c) 2025 Eirik Varnes
# Licensed under the MIT License. See LICENSE file for details.

"""Image decoding (ROS image messages -> BGR8) and image writing via OpenCV."""

from __future__ import annotations
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from .errors import ConverterError, OutputError

RAW_IMAGE_TYPES = ("sensor_msgs/msg/Image", "sensor_msgs/Image")
COMPRESSED_IMAGE_TYPES = ("sensor_msgs/msg/CompressedImage", "sensor_msgs/CompressedImage")

# encoding -> (numpy dtype, channels, cv2 conversion to BGR or None)
_RAW_ENCODINGS = {
    "bgr8":   (np.uint8, 3, None),
    "rgb8":   (np.uint8, 3, cv2.COLOR_RGB2BGR),
    "bgra8":  (np.uint8, 4, cv2.COLOR_BGRA2BGR),
    "rgba8":  (np.uint8, 4, cv2.COLOR_RGBA2BGR),
    "mono8":  (np.uint8, 1, cv2.COLOR_GRAY2BGR),
    "8uc1":   (np.uint8, 1, cv2.COLOR_GRAY2BGR),
    "8uc3":   (np.uint8, 3, None),
    "mono16": (np.uint16, 1, cv2.COLOR_GRAY2BGR),
    "16uc1":  (np.uint16, 1, cv2.COLOR_GRAY2BGR),
}


class ImageDecodeError(ConverterError):
    """An image message could not be turned into a BGR8 buffer."""


def _decode_compressed_to_bgr(msg) -> np.ndarray:
    arr = np.frombuffer(bytes(msg.data), np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if img is None:
        fmt = getattr(msg, "format", "") or "unknown"
        raise ImageDecodeError(f"Could not decode compressed image (format: {fmt})")
    return img


def _decode_raw_to_bgr(msg) -> np.ndarray:
    enc = (getattr(msg, "encoding", "") or "").lower()
    if enc not in _RAW_ENCODINGS:
        raise ImageDecodeError(f"Unsupported image encoding {enc!r}")
    dtype, channels, conversion = _RAW_ENCODINGS[enc]

    h = int(msg.height)
    w = int(msg.width)
    itemsize = np.dtype(dtype).itemsize
    step = int(getattr(msg, "step", 0) or w * channels * itemsize)
    buf = np.frombuffer(bytes(msg.data), dtype=np.uint8)
    if buf.size < h * step or step < w * channels * itemsize:
        raise ImageDecodeError(
            f"Image buffer of {buf.size} bytes does not fit {w}x{h} {enc} (step {step})"
        )

    # rows may carry padding beyond width * channels
    rows = buf[: h * step].reshape(h, step)[:, : w * channels * itemsize]
    order = ">" if getattr(msg, "is_bigendian", False) else "<"
    pixels = np.ascontiguousarray(rows).view(np.dtype(dtype).newbyteorder(order))
    pixels = pixels.reshape(h, w, channels) if channels > 1 else pixels.reshape(h, w)

    if dtype is np.uint16:
        pixels = (pixels.astype(np.float64) * (255.0 / 65535.0)).round().astype(np.uint8)
    else:
        pixels = pixels.astype(np.uint8, copy=False)

    if conversion is not None:
        return cv2.cvtColor(pixels, conversion)
    return np.ascontiguousarray(pixels)


def decode_image(msg, msgtype: str) -> np.ndarray:
    """Decode a raw or compressed image message into a BGR8 pixel buffer."""
    try:
        if msgtype in COMPRESSED_IMAGE_TYPES:
            return _decode_compressed_to_bgr(msg)
        if msgtype in RAW_IMAGE_TYPES:
            return _decode_raw_to_bgr(msg)
    except cv2.error as e:
        raise ImageDecodeError(f"OpenCV could not decode {msgtype}: {e}") from e
    raise ImageDecodeError(f"Message type {msgtype!r} is not an image")


def write_image(path: Union[str, Path], image: np.ndarray) -> Path:
    """Persist a pixel buffer; the format follows the file extension."""
    path = Path(path)
    try:
        ok = cv2.imwrite(str(path), image)
    except cv2.error as e:
        raise OutputError(f"Could not write image {path}: {e}") from e
    if not ok:
        raise OutputError(f"Could not write image {path}")
    return path


__all__ = [
    "RAW_IMAGE_TYPES", "COMPRESSED_IMAGE_TYPES",
    "ImageDecodeError", "decode_image", "write_image",
]
