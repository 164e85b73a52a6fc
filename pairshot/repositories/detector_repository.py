from __future__ import annotations
import os
from typing import List
import numpy as np
from dotenv import load_dotenv

from ..models.detector_engine import DetectorEngine
from ..models.detection import Detection

# Load environment variables
load_dotenv()


class DetectorRepository:
    """
    Thin wrapper around DetectorEngine that turns raw model output into
    Detection objects, the way the browser COCO-SSD `detect()` call does:
    boxes as (x, y, w, h), score threshold 0.5 and 20 boxes by default.
    """

    def __init__(self, engine: DetectorEngine | None = None):
        self.engine = engine or DetectorEngine()  # Singleton is handled inside
        self.default_threshold = float(os.getenv("DETECTOR_SCORE_THRESHOLD", "0.5"))
        self.max_detections = int(os.getenv("DETECTOR_MAX_DETECTIONS", "20"))

    def infer_detections(self, pixels_rgb: np.ndarray, score_threshold: float | None = None) -> List[Detection]:
        threshold = self.default_threshold if score_threshold is None else score_threshold
        raw = self.engine.predict(pixels_rgb)

        detections = [
            Detection.from_torchvision(box, label, score)
            for box, label, score in zip(raw["boxes"], raw["labels"], raw["scores"])
            if score >= threshold
        ]
        return detections[:self.max_detections]
