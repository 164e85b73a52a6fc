"""
Pair Compositor Pipeline
Turns one or two product photos into a uniform, brightness-normalised
side-by-side composite:

    scale → contrast stretch → detect (with rotation retries)
    → main object → crop box → centred panel → composite → brightness
"""
from __future__ import annotations
import logging
from typing import List

from ..exceptions import DetectionFailedError
from ..models.image import Image
from ..models.composite_result import CompositeResult
from ..services.image_service import ImageService
from ..services.detection_service import DetectionService
from ..services.cropping_service import CroppingService
from ..services.composite_service import CompositeService
from ..services.brightness_service import BrightnessService

logger = logging.getLogger(__name__)

DETECTION_FAILED_MESSAGE = (
    "Object detection failed. Try adjusting the angle of your camera slightly when taking the photos."
)


def process_images(
    images: List[Image],
    *,
    detection_service: DetectionService | None = None,
    image_service: ImageService | None = None,
    cropping_service: CroppingService | None = None,
    composite_service: CompositeService | None = None,
    brightness_service: BrightnessService | None = None,
) -> CompositeResult:
    """
    Run every stage for a group of images (one panel per image).

    Raises:
        DetectionFailedError: if any image has no detectable object at all.
    """
    if not images:
        raise ValueError("Need at least one image to process")

    image_service = image_service or ImageService()
    detection_service = detection_service or DetectionService(image_service=image_service)
    cropping_service = cropping_service or CroppingService(image_service=image_service)
    composite_service = composite_service or CompositeService(layout=cropping_service.layout)
    brightness_service = brightness_service or BrightnessService()

    logger.debug("Starting detection attempts...")
    attempts = []
    for i, img in enumerate(images, 1):
        prepared = image_service.prepare_for_detection(img)
        attempts.append(detection_service.detect_with_retry(prepared, prefix=f"Image {i}: "))

    logger.info("Final results - " + ", ".join(
        f"Image {i}: {len(a.detections)} objects" for i, a in enumerate(attempts, 1)))

    main_objects = [detection_service.pick_main_object(a.detections) for a in attempts]
    if any(obj is None for obj in main_objects):
        for i, attempt in enumerate(attempts, 1):
            h, w = attempt.pixels.shape[:2]
            objects = ", ".join(f"{d.label} ({d.score * 100:.1f}%)" for d in attempt.detections)
            logger.warning(f"Detection summary - Image {i} {w}x{h}: {objects or 'no objects detected'}")
        raise DetectionFailedError(DETECTION_FAILED_MESSAGE)

    crops, panels = [], []
    for attempt, main_object in zip(attempts, main_objects):
        crop_box, panel = cropping_service.crop_around_object(attempt.pixels, main_object)
        crops.append(crop_box)
        panels.append(panel)

    logger.info("Crop dimensions:\n" + "\n".join(
        f"Image {i}: {crop}" for i, crop in enumerate(crops, 1)))

    canvas = composite_service.compose(panels)
    final_pixels, adjustment = brightness_service.normalize(canvas)

    layout = composite_service.layout
    logger.info(f"Final output dimensions:\n"
                f"Target dimensions per image: {layout.panel_width}x{layout.panel_height}\n"
                f"Full canvas: {final_pixels.shape[1]}x{final_pixels.shape[0]}\n"
                f"Border width: {layout.border}, Separator width: {layout.separator}")

    return CompositeResult(
        image=image_service.create_image(final_pixels),
        attempts=attempts,
        crops=crops,
        brightness=adjustment,
    )


def process_image_pair(img1: Image, img2: Image, **services) -> CompositeResult:
    """Composite two photos side by side."""
    return process_images([img1, img2], **services)


def process_single_image(img: Image, **services) -> CompositeResult:
    """Composite a single photo into a one-panel canvas."""
    return process_images([img], **services)
