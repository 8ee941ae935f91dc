"""Frame validation and conversion to FFmpeg ``rgb24`` input."""
from __future__ import annotations

import cv2
import numpy as np

from .errors import EmptyFrameError, FrameDimensionError


def check_frame(frame) -> np.ndarray:
    """Return ``frame`` as an array after the empty/dimension checks."""
    arr = np.asarray(frame)
    if arr.size == 0:
        raise EmptyFrameError("Frame is empty.")
    if arr.size == 1 or arr.ndim < 2 or arr.ndim > 3:
        raise FrameDimensionError(f"Frame must be a 2D or 3D array, got shape {arr.shape}.")
    return arr


def to_uint8(arr: np.ndarray) -> np.ndarray:
    """Quantize samples to 8 bits the way image libraries do."""
    if arr.dtype == np.uint8:
        return arr
    if arr.dtype == np.bool_:
        return arr.astype(np.uint8) * 255
    if np.issubdtype(arr.dtype, np.floating):
        scaled = np.clip(np.nan_to_num(arr, nan=0.0), 0.0, 1.0) * 255.0
        return np.rint(scaled).astype(np.uint8)
    if arr.dtype == np.uint16:
        return np.rint(arr / 257.0).astype(np.uint8)
    if arr.dtype == np.int16:
        return np.rint((arr.astype(np.int32) + 32768) / 257.0).astype(np.uint8)
    if np.issubdtype(arr.dtype, np.integer):
        return np.clip(arr, 0, 255).astype(np.uint8)
    raise FrameDimensionError(f"Unsupported sample type {arr.dtype}.")


def normalize_frame(frame) -> np.ndarray:
    """Return ``frame`` as a contiguous H x W x 3 ``uint8`` RGB array.

    Gray frames (H x W or H x W x 1) are replicated to three channels and an
    alpha channel is dropped. Any other channel count is rejected.
    """
    arr = check_frame(frame)
    if arr.ndim == 3:
        channels = arr.shape[2]
        if channels == 1:
            arr = arr[:, :, 0]
        elif channels == 4:
            arr = arr[:, :, :3]
        elif channels != 3:
            raise FrameDimensionError(f"Frame must have 1, 3 or 4 channels, got {channels}.")
    arr = to_uint8(arr)
    if arr.ndim == 2:
        arr = cv2.cvtColor(np.ascontiguousarray(arr), cv2.COLOR_GRAY2RGB)
    return np.ascontiguousarray(arr)


def frame_to_bytes(frame) -> bytes:
    """Row-major, channel-interleaved bytes of a normalized frame."""
    return normalize_frame(frame).tobytes()
