from __future__ import annotations
from pathlib import Path
from typing import Iterable, Union, Iterator
import logging
import math
import os
import numpy as np
import cv2
from dotenv import load_dotenv

from ..models.image import Image
from ..repositories.image_repository import ImageRepository

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255)


def round_half_up(value: float) -> int:
    """Round halves towards +inf (2.5 → 3, -2.5 → -2); round() would go to even."""
    return int(math.floor(value + 0.5))


class ImageService:
    """Pixel-level filters plus I/O helpers.  No detection logic here."""
    def __init__(self):
        self.MAX_DIMENSION = int(os.getenv("MAX_DIMENSION", "1024"))
        self.image_repository = ImageRepository()

    def create_image(self, pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        return self.image_repository.create_image(pixels, path)

    def decode_upload(self, data: bytes) -> Image:
        return self.image_repository.decode_bytes(data)

    def from_rgba_buffer(self, data: bytes, width: int, height: int) -> Image:
        return self.image_repository.from_rgba_buffer(data, width, height)

    def to_rgba_buffer(self, image: Image) -> bytes:
        return self.image_repository.to_rgba_buffer(image)

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder,
                                              recursive=recursive,
                                              exts=exts)

    def save(self, image: Image) -> None:
        self.image_repository.save(image)

    def to_base64(self, image: Image) -> str:
        return self.image_repository.encode_base64(image)

    def crop_pixels(self, img: Image, bound_r, bound_l, bound_t, bound_b):
        if bound_l >= bound_r or bound_t >= bound_b:
            width = bound_r - bound_l
            height = bound_b - bound_t
            logger.error(f"Invalid crop bounds: left={bound_l}, right={bound_r}, "
                         f"top={bound_t}, bottom={bound_b}")
            raise ValueError(f"Invalid crop bounds would create {width}x{height} image")

        return img.pixels[bound_t:bound_b, bound_l:bound_r].copy()

    # ─── Pre-detection filters ────────────────────────────────────────
    def scale_to_max_dimension(self, pixels: np.ndarray, max_dimension: int | None = None) -> np.ndarray:
        """
        Downscale so the longest side is at most *max_dimension*.
        Never upscales; returns a copy either way.
        """
        max_dimension = max_dimension or self.MAX_DIMENSION
        height, width = pixels.shape[:2]
        scale = min(1.0, max_dimension / max(width, height))
        if scale >= 1.0:
            return pixels.copy()

        new_width = max(1, round_half_up(width * scale))
        new_height = max(1, round_half_up(height * scale))
        return cv2.resize(pixels, (new_width, new_height), interpolation=cv2.INTER_AREA)

    @staticmethod
    def enhance_contrast(pixels: np.ndarray) -> np.ndarray:
        """
        Linear contrast stretch: the darkest pixel (by RGB average) maps to 0,
        the brightest to 255, every channel shifted and scaled alike.
        """
        if pixels.size == 0:
            return pixels.copy()

        rgb = pixels[..., :3].astype(np.float64)
        avg = rgb.sum(axis=2) / 3
        lo, hi = float(avg.min()), float(avg.max())
        value_range = hi - lo
        if value_range <= 0:
            # flat image, nothing to stretch
            return pixels.copy()

        stretched = (rgb - lo) / value_range * 255
        out = pixels.copy()
        out[..., :3] = np.clip(np.rint(stretched), 0, 255).astype(np.uint8)
        return out

    @staticmethod
    def rotate(pixels: np.ndarray, degrees: float) -> np.ndarray:
        """
        Rotate around the centre on a same-size canvas. Positive degrees turn
        clockwise as seen on screen; uncovered corners are white.
        """
        if degrees == 0:
            return pixels.copy()

        height, width = pixels.shape[:2]
        # OpenCV's positive angle is counter-clockwise
        matrix = cv2.getRotationMatrix2D((width / 2, height / 2), -degrees, 1.0)
        return cv2.warpAffine(
            pixels, matrix, (width, height),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            # white, not black: these corners can end up inside the cropped panel
            borderValue=WHITE,
        )

    def prepare_for_detection(self, img: Image) -> np.ndarray:
        """Scale down, then contrast-stretch. Returns new pixels."""
        scaled = self.scale_to_max_dimension(img.pixels)
        return self.enhance_contrast(scaled)
