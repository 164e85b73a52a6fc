from __future__ import annotations
import logging
import os
from typing import List, Sequence, Tuple
import numpy as np
from dotenv import load_dotenv

from ..models.detection import Detection, DetectionAttempt
from ..repositories.detector_repository import DetectorRepository
from .image_service import ImageService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# (name, angle in degrees). Order matters: the first attempt that yields
# an acceptable candidate wins. The tail is densely packed around -15°,
# where hand-held product shots most often need correcting.
ROTATION_ATTEMPTS: Tuple[Tuple[str, float], ...] = (
    ("original", 0),
    ("rotated slightly left", -5),
    ("rotated slightly right", 5),
    ("rotated left", -10),
    ("rotated right", 10),
    ("rotated more left", -15),
    ("rotated slight more left", -12),
    ("rotated slight more right", 12),
    ("rotated more right", 15),
    ("rotated precise 1", -13),
    ("rotated precise 2", -14),
    ("rotated precise 3", -16),
    ("rotated precise 4", -17),
)

MAIN_OBJECT_CLASSES = ("bottle", "wine glass", "vase")


class DetectionService:
    """
    Finds the dominant product in a frame.

    *   Retries detection over a fixed list of small rotations.
    *   Filters candidates with size / shape heuristics.
    *   Chooses a single main object per image.
    """

    BOTTLE_MIN_ASPECT = 1.5     # bottles are clearly taller than wide
    BOTTLE_MAX_SIZE = 0.5       # share of the frame
    OTHER_MAX_SIZE = 0.3

    def __init__(self,
                 detector_repository: DetectorRepository | None = None,
                 image_service: ImageService | None = None,
                 attempts: Sequence[Tuple[str, float]] = ROTATION_ATTEMPTS):
        self.detector_repository = detector_repository or DetectorRepository()
        self.image_service = image_service or ImageService()
        self.attempts = tuple(attempts)
        self.MIN_SCORE = float(os.getenv("CANDIDATE_MIN_SCORE", "0.3"))
        self.FALLBACK_SCORE_THRESHOLD = float(os.getenv("FALLBACK_SCORE_THRESHOLD", "0.1"))

    def detect(self, pixels: np.ndarray, score_threshold: float | None = None) -> List[Detection]:
        return self.detector_repository.infer_detections(pixels, score_threshold=score_threshold)

    # ─── Candidate heuristics ──────────────────────────────────────
    def is_good_candidate(self, detection: Detection, frame_width: int, frame_height: int) -> bool:
        if detection.score <= self.MIN_SCORE:
            return False

        _, _, width, height = detection.bbox
        if width <= 0 or height <= 0:
            return False

        relative_size = detection.relative_size(frame_width, frame_height)
        if detection.label == "bottle":
            return (detection.aspect_ratio > self.BOTTLE_MIN_ASPECT
                    and relative_size < self.BOTTLE_MAX_SIZE)

        # Anything else must be a small part of the frame
        return relative_size < self.OTHER_MAX_SIZE

    @staticmethod
    def rank_candidates(detections: List[Detection]) -> List[Detection]:
        """Bottles first, then by descending score."""
        return sorted(detections, key=lambda d: (d.label != "bottle", -d.score))

    # ─── Retry loop ────────────────────────────────────────────────
    def detect_with_retry(self, pixels: np.ndarray, prefix: str = "") -> DetectionAttempt:
        """
        Run detection on each rotation in turn and return the first attempt
        with an acceptable candidate. Falls back to one low-confidence pass
        on the unrotated frame, returning its raw detections.
        """
        height, width = pixels.shape[:2]

        for name, angle in self.attempts:
            try:
                rotated = self.image_service.rotate(pixels, angle)
                predictions = self.detect(rotated)
            except Exception as err:
                logger.warning(f"{prefix}Error in {name} attempt: {err}")
                continue

            found = ", ".join(p.describe() for p in predictions)
            logger.debug(f"{prefix}Attempt with {name} (angle: {angle}°): found {len(predictions)} objects"
                         + (f" ({found})" if predictions else "")
                         + f"\nCanvas dimensions: {width}x{height}")

            candidates = self.rank_candidates(
                [p for p in predictions if self.is_good_candidate(p, width, height)]
            )
            if candidates:
                best = candidates[0]
                logger.info(f"{prefix}Using {name} attempt - Best prediction: {best.describe()}\n"
                            f"Aspect ratio: {best.aspect_ratio:.2f}, "
                            f"Relative size: {best.relative_size(width, height) * 100:.1f}% of image")
                return DetectionAttempt(name=name, angle=angle, pixels=rotated, detections=candidates)

        logger.info(f"{prefix}No objects detected in any orientation attempt")

        try:
            final_attempt = self.detect(pixels, score_threshold=self.FALLBACK_SCORE_THRESHOLD)
        except Exception as err:
            logger.warning(f"{prefix}Error in final low-confidence attempt: {err}")
            final_attempt = []

        if final_attempt:
            logger.info(f"{prefix}Found objects with lower confidence: "
                        + ", ".join(f"{p.label} {p.score * 100:.1f}%" for p in final_attempt))

        return DetectionAttempt(name="low confidence", angle=0, pixels=pixels, detections=final_attempt)

    # ─── Main object choice ────────────────────────────────────────
    def pick_main_object(self, detections: List[Detection]) -> Detection | None:
        """
        Highest-scoring bottle-like object; failing that the largest
        detection of any class; None when nothing was detected.
        """
        containers = [d for d in detections
                      if d.label in MAIN_OBJECT_CLASSES and d.score > self.MIN_SCORE]
        if containers:
            return max(containers, key=lambda d: d.score)

        if not detections:
            return None
        return max(detections, key=lambda d: d.area)
