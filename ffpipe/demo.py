"""Synthetic frames for trying out an encoder setup."""
from __future__ import annotations

from typing import Iterator, List

import cv2
import numpy as np

BACKGROUND = 60
TEXT_RGB = (30, 30, 255)


def numbered_frame(width: int, height: int, number: int) -> np.ndarray:
    """Gray RGB frame with ``number`` drawn in blue at the centre."""
    img = np.full((height, width, 3), BACKGROUND, dtype=np.uint8)
    text = str(number)
    font = cv2.FONT_HERSHEY_SIMPLEX
    scale = max(height / 80.0, 0.5)
    thickness = max(int(scale * 2), 1)
    (tw, th), _ = cv2.getTextSize(text, font, scale, thickness)
    org = ((width - tw) // 2, (height + th) // 2)
    cv2.putText(img, text, org, font, scale, TEXT_RGB, thickness, cv2.LINE_AA)
    return img


def numbered_frames(width: int, height: int, count: int) -> Iterator[np.ndarray]:
    for i in range(1, count + 1):
        yield numbered_frame(width, height, i)


def gif_command(ffmpeg: str, width: int, height: int, fps: float, output: str) -> List[str]:
    """Custom command encoding an animated GIF with a generated palette."""
    return [
        ffmpeg,
        "-y",
        "-video_size", f"{width}x{height}",
        "-pixel_format", "rgb24",
        "-f", "rawvideo",
        "-framerate", str(fps),
        "-color_primaries", "bt709",
        "-color_trc", "bt709",
        "-colorspace", "bt709",
        "-i", "pipe:",
        "-vf", "split[s0][s1];[s0]palettegen[p];[s1][p]paletteuse",
        "-loop", "0",
        output,
    ]
