from __future__ import annotations
import logging
import os
import numpy as np
import cv2
from dotenv import load_dotenv

from ..models.image import Image
from ..models.detection import Detection
from ..models.crop_box import CropBox
from ..models.panel_layout import PanelLayout
from .image_service import ImageService, round_half_up

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class CroppingService:
    def __init__(self, image_service: ImageService | None = None, layout: PanelLayout | None = None):
        self.image_service = image_service or ImageService()
        self.layout = layout or PanelLayout.from_env()
        self.target_aspect_ratio = float(os.getenv("CROP_ASPECT_RATIO", "2.1"))  # height / width
        self.padding = float(os.getenv("CROP_PADDING", "0.25"))  # per side, relative to bbox

    def get_padded_size(self, detection: Detection):
        """
        Pad the bbox on every side, then grow the short side until the box
        reaches the target height/width ratio.
        """
        _, _, width, height = detection.bbox
        padded_width = width * (1 + self.padding * 2)
        padded_height = height * (1 + self.padding * 2)

        if padded_height / padded_width < self.target_aspect_ratio:
            # Too wide, increase height
            padded_height = padded_width * self.target_aspect_ratio
        else:
            # Too tall, increase width
            padded_width = padded_height / self.target_aspect_ratio

        return padded_width, padded_height

    def get_crop_box(self, detection: Detection | None, frame_width: int, frame_height: int) -> CropBox:
        """
        Crop rectangle centred on *detection*, with its origin kept inside the
        frame. The box may still extend past the right/bottom edge when it is
        larger than the frame. No (or a degenerate) detection → whole frame.
        """
        if detection is None or detection.bbox[2] <= 0 or detection.bbox[3] <= 0:
            return CropBox(0, 0, frame_width, frame_height)

        padded_width, padded_height = self.get_padded_size(detection)
        center_x, center_y = detection.center

        x = center_x - padded_width / 2
        y = center_y - padded_height / 2
        x = max(0, min(x, frame_width - padded_width))
        y = max(0, min(y, frame_height - padded_height))

        return CropBox(
            x=round_half_up(x),
            y=round_half_up(y),
            width=max(1, round_half_up(padded_width)),
            height=max(1, round_half_up(padded_height)),
        )

    def extract_region(self, pixels: np.ndarray, crop_box: CropBox) -> np.ndarray:
        """
        Pixels under *crop_box*; the part of the box outside the frame is white.
        """
        frame_height, frame_width = pixels.shape[:2]
        region = np.full((crop_box.height, crop_box.width, 3), 255, dtype=np.uint8)

        bound_l = max(crop_box.x, 0)
        bound_t = max(crop_box.y, 0)
        bound_r = min(crop_box.x + crop_box.width, frame_width)
        bound_b = min(crop_box.y + crop_box.height, frame_height)
        if bound_l >= bound_r or bound_t >= bound_b:
            return region

        inside = self.image_service.crop_pixels(Image(pixels), bound_r=bound_r, bound_l=bound_l,
                                                bound_t=bound_t, bound_b=bound_b)
        region[bound_t - crop_box.y:bound_b - crop_box.y,
               bound_l - crop_box.x:bound_r - crop_box.x] = inside[..., :3]
        return region

    def draw_centered_and_scaled(self, pixels: np.ndarray, crop_box: CropBox) -> np.ndarray:
        """
        Fit the crop into a white panel: fill the full panel height first,
        fall back to the panel width when the crop is too wide, and centre it.
        """
        panel_width, panel_height = self.layout.panel_width, self.layout.panel_height
        aspect_ratio = crop_box.aspect_ratio

        scaled_height = panel_height
        scaled_width = scaled_height * aspect_ratio
        if scaled_width > panel_width:
            scaled_width = panel_width
            scaled_height = scaled_width / aspect_ratio

        x = round_half_up((panel_width - scaled_width) / 2)
        y = round_half_up((panel_height - scaled_height) / 2)
        dst_width = min(max(1, round_half_up(scaled_width)), panel_width - x)
        dst_height = min(max(1, round_half_up(scaled_height)), panel_height - y)

        region = self.extract_region(pixels, crop_box)
        upscale = dst_width > crop_box.width or dst_height > crop_box.height
        resized = cv2.resize(region, (dst_width, dst_height),
                             interpolation=cv2.INTER_CUBIC if upscale else cv2.INTER_AREA)

        panel = np.full((panel_height, panel_width, 3), 255, dtype=np.uint8)
        panel[y:y + dst_height, x:x + dst_width] = resized
        return panel

    def crop_around_object(self, pixels: np.ndarray, detection: Detection | None):
        """Crop box + finished panel for one frame."""
        frame_height, frame_width = pixels.shape[:2]
        crop_box = self.get_crop_box(detection, frame_width, frame_height)
        return crop_box, self.draw_centered_and_scaled(pixels, crop_box)
