from __future__ import annotations
from dataclasses import dataclass, field
from typing import List
from .image import Image
from .detection import DetectionAttempt
from .crop_box import CropBox
from .brightness_adjustment import BrightnessAdjustment


@dataclass
class CompositeResult:
    """
    Data object containing a finished composite and how it was produced.
    One entry per input image in `attempts` and `crops`, in input order.
    """
    image: Image
    attempts: List[DetectionAttempt] = field(default_factory=list)
    crops: List[CropBox] = field(default_factory=list)
    brightness: BrightnessAdjustment | None = None

    def detection_summary(self) -> dict:
        """JSON-friendly per-image summary (dimensions + detections)."""
        summary = {}
        for i, attempt in enumerate(self.attempts, 1):
            h, w = attempt.pixels.shape[:2]
            summary[f"image{i}"] = {
                "dimensions": {"width": int(w), "height": int(h)},
                "angle": attempt.angle,
                "detections": [
                    {"class": d.label, "score": round(d.score, 4)}
                    for d in attempt.detections
                ],
            }
        return summary
