from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Tuple
import numpy as np


@dataclass
class Detection:
    label: str                                  # COCO class name, e.g. "bottle"
    score: float                                # detection confidence
    bbox: Tuple[float, float, float, float]     # (x, y, width, height)

    @property
    def area(self) -> float:
        return self.bbox[2] * self.bbox[3]

    @property
    def aspect_ratio(self) -> float:
        """Height / width. Zero for a degenerate box."""
        if self.bbox[2] <= 0:
            return 0.0
        return self.bbox[3] / self.bbox[2]

    @property
    def center(self) -> Tuple[float, float]:
        x, y, w, h = self.bbox
        return x + w / 2, y + h / 2

    def relative_size(self, frame_width: int, frame_height: int) -> float:
        frame_area = frame_width * frame_height
        if frame_area <= 0:
            return 0.0
        return self.area / frame_area

    def describe(self) -> str:
        box = ", ".join(f"{v:.1f}" for v in self.bbox)
        return f"{self.label} {self.score * 100:.1f}% at [{box}]"

    @classmethod
    def from_torchvision(cls, box, label: str, score) -> "Detection":
        """Build from an (x1, y1, x2, y2) box as returned by torchvision detectors."""
        x1, y1, x2, y2 = (float(v) for v in box)
        return cls(label=label, score=float(score), bbox=(x1, y1, x2 - x1, y2 - y1))


@dataclass
class DetectionAttempt:
    """
    Outcome of the rotation retry loop for one image.
    `pixels` is the frame the detections' coordinates refer to.
    """
    name: str
    angle: float
    pixels: np.ndarray
    detections: List[Detection] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return len(self.detections) > 0
