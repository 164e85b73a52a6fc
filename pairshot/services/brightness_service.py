from __future__ import annotations
import logging
import os
from typing import Tuple
import numpy as np
from dotenv import load_dotenv

from ..models.brightness_adjustment import BrightnessAdjustment
from .image_service import round_half_up

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Rec. 709 luma weights
LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722])


class BrightnessService:
    """
    Pulls a composite's mean luminance towards a fixed target with a
    single multiplicative gain.
    """

    def __init__(self, target: float | None = None, tolerance: int | None = None):
        self.target = target if target is not None else float(os.getenv("TARGET_BRIGHTNESS", "0.65"))
        self.tolerance = tolerance if tolerance is not None else int(os.getenv("BRIGHTNESS_TOLERANCE", "2"))

    @staticmethod
    def average_brightness(pixels: np.ndarray) -> float:
        """Mean luminance in [0, 1]; 0.0 for an empty image."""
        if pixels.size == 0:
            return 0.0
        rgb = pixels[..., :3].reshape(-1, 3).astype(np.float64) / 255
        return float((rgb @ LUMA_WEIGHTS).mean())

    def compute_adjustment(self, pixels: np.ndarray) -> BrightnessAdjustment:
        current = self.average_brightness(pixels)
        return BrightnessAdjustment(
            current=current,
            target=self.target,
            adjustment=round_half_up((self.target - current) * 100),
            tolerance=self.tolerance,
        )

    def normalize(self, pixels: np.ndarray) -> Tuple[np.ndarray, BrightnessAdjustment]:
        adjustment = self.compute_adjustment(pixels)
        logger.info(f"Brightness adjustment: {adjustment}")
        if not adjustment.applied:
            return pixels.copy(), adjustment
        return adjustment.apply_to_pixels(pixels), adjustment
