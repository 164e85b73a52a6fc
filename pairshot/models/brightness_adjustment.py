from __future__ import annotations
from dataclasses import dataclass
import numpy as np


@dataclass
class BrightnessAdjustment:
    """
    Value-object describing one brightness correction.
    `current` and `target` are mean luminance in [0, 1]; `adjustment`
    is the correction in whole percent (e.g. +12 → ×1.12).
    """
    current: float
    target: float
    adjustment: int
    tolerance: int = 2

    @property
    def factor(self) -> float:
        return 1 + self.adjustment / 100

    @property
    def applied(self) -> bool:
        return abs(self.adjustment) > self.tolerance

    def apply_to_pixels(self, pixels: np.ndarray) -> np.ndarray:
        """Multiplicative correction, rounded half-up and clamped to [0, 255]."""
        if not self.applied:
            return pixels.copy()
        scaled = np.floor(pixels.astype(np.float64) * self.factor + 0.5)
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def __str__(self) -> str:
        return (f"Current={self.current * 100:.1f}%, "
                f"Target={self.target * 100:.1f}%, "
                f"Adjustment={self.adjustment}")
