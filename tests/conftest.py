import numpy as np
import pytest

from pairshot.models.detection import Detection
from pairshot.models.panel_layout import PanelLayout
from pairshot.services.image_service import ImageService
from pairshot.services.detection_service import DetectionService


class FakeDetectorRepository:
    """
    Stands in for the neural network.

    `responses` are handed out one per default-threshold call (an Exception
    instance is raised instead); once exhausted, `default` is returned.
    Calls with an explicit threshold return `fallback`.
    """

    def __init__(self, responses=None, default=None, fallback=None):
        self.responses = list(responses or [])
        self.default = default or []
        self.fallback = fallback or []
        self.calls = []

    def infer_detections(self, pixels, score_threshold=None):
        self.calls.append({"shape": pixels.shape, "score_threshold": score_threshold})
        if score_threshold is not None:
            return list(self.fallback)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return list(response)
        return list(self.default)


def make_product_photo(height=400, width=300, box=(120, 100, 60, 200), color=(40, 60, 90)):
    """White frame with a dark upright 'bottle' rectangle at box=(x, y, w, h)."""
    pixels = np.full((height, width, 3), 235, dtype=np.uint8)
    x, y, w, h = box
    pixels[y:y + h, x:x + w] = color
    return pixels


@pytest.fixture
def image_service():
    return ImageService()


@pytest.fixture
def layout():
    return PanelLayout()


@pytest.fixture
def bottle():
    return Detection(label="bottle", score=0.9, bbox=(120.0, 100.0, 60.0, 200.0))


@pytest.fixture
def fake_repository(bottle):
    return FakeDetectorRepository(default=[bottle])


@pytest.fixture
def detection_service(fake_repository, image_service):
    return DetectionService(detector_repository=fake_repository, image_service=image_service)


@pytest.fixture
def product_photo():
    return make_product_photo()
