from __future__ import annotations
import logging
import os
import threading
from typing import Dict, List
import numpy as np
import torch
from torchvision.models.detection import (
    SSDLite320_MobileNet_V3_Large_Weights,
    ssdlite320_mobilenet_v3_large,
)
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class DetectorEngine:
    """
    Singleton wrapper around torchvision's SSDLite / MobileNetV3 detector
    trained on COCO.

    Loads the weights once per Python process and exposes
    .predict(rgb) → raw boxes, scores and class names.
    """

    _instance: DetectorEngine | None = None  # Class-level cache for singleton
    _lock = threading.RLock()

    def __new__(cls, device: str | None = None):
        """
        Ensure model is loaded only once (Singleton pattern).
        The instance is only cached after a successful load, so a failed
        download can be retried.
        """
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._init_engine(device)
                cls._instance = instance
            return cls._instance

    @classmethod
    def is_loaded(cls) -> bool:
        return cls._instance is not None

    def _init_engine(self, device: str | None = None):
        """
        Load and prepare the COCO detector on first instantiation.

        Args:
            device (str): "cuda", "mps" or "cpu". Defaults to DETECTOR_DEVICE,
                          then to the best available backend.
        """
        device = device or os.getenv("DETECTOR_DEVICE")
        # ─── DEVICE SELECTION ────────────────────────────────────────────────
        # Priority: CUDA -> MPS -> CPU
        if not device or device == "auto":
            if torch.cuda.is_available():
                device = "cuda"
            elif hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
                device = "mps"
            else:
                device = "cpu"
        self.device = device

        weights = SSDLite320_MobileNet_V3_Large_Weights.COCO_V1
        self.categories: List[str] = list(weights.meta["categories"])
        self.transforms = weights.transforms()

        # Keep low-confidence boxes; thresholds are applied per call.
        model = ssdlite320_mobilenet_v3_large(
            weights=weights,
            score_thresh=float(os.getenv("DETECTOR_MIN_SCORE", "0.05")),
        )
        self.model = model.to(self.device).eval()

        logger.info(f"Object detector using: {self.device} | {len(self.categories)} COCO classes")

    # ───────────────────────── public API
    @torch.inference_mode()
    def predict(self, rgb: np.ndarray) -> Dict[str, np.ndarray]:
        """
        Args
        ----
        rgb : np.ndarray  (H, W, 3)  uint8  RGB order

        Returns
        -------
        dict with "boxes" (N, 4) x1y1x2y2, "scores" (N,), "labels" (N,) str,
        sorted by descending score.
        """
        if not rgb.flags["C_CONTIGUOUS"]:
            rgb = np.ascontiguousarray(rgb)

        tensor = torch.from_numpy(rgb).permute(2, 0, 1)
        batch = [self.transforms(tensor).to(self.device)]
        output = self.model(batch)[0]

        labels = [self.categories[i] for i in output["labels"].cpu().tolist()]
        return {
            "boxes": output["boxes"].cpu().numpy(),
            "scores": output["scores"].cpu().numpy(),
            "labels": np.array(labels, dtype=object),
        }
