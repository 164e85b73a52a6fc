import numpy as np
import pytest

from pairshot.models.detection import Detection, DetectionAttempt
from pairshot.models.crop_box import CropBox
from pairshot.models.panel_layout import PanelLayout
from pairshot.models.brightness_adjustment import BrightnessAdjustment


def test_detection_geometry():
    det = Detection(label="bottle", score=0.8, bbox=(10.0, 20.0, 30.0, 90.0))
    assert det.area == 2700
    assert det.aspect_ratio == pytest.approx(3.0)
    assert det.center == (25.0, 65.0)
    assert det.relative_size(100, 100) == pytest.approx(0.27)


def test_degenerate_detection_has_zero_aspect_ratio():
    det = Detection(label="cup", score=0.8, bbox=(10.0, 20.0, 0.0, 90.0))
    assert det.aspect_ratio == 0.0
    assert det.relative_size(0, 0) == 0.0


def test_detection_from_corner_box():
    det = Detection.from_torchvision(np.array([10, 20, 50, 120]), "vase", np.float32(0.75))
    assert det.bbox == (10.0, 20.0, 40.0, 100.0)
    assert det.label == "vase"
    assert isinstance(det.score, float)


def test_attempt_success_flag():
    pixels = np.zeros((4, 4, 3), dtype=np.uint8)
    assert not DetectionAttempt("original", 0, pixels).succeeded
    det = Detection("bottle", 0.9, (0, 0, 1, 2))
    assert DetectionAttempt("original", 0, pixels, [det]).succeeded


def test_crop_box_str():
    assert str(CropBox(1, 2, 30, 40)) == "30x40 at (1,2)"


def test_panel_layout_sizes():
    layout = PanelLayout()
    assert layout.pair_size == (530, 540)
    assert layout.single_size == (280, 540)
    assert layout.panel_origin(0) == (20, 20)
    assert layout.panel_origin(1) == (270, 20)


def test_brightness_adjustment_within_tolerance_is_not_applied():
    adj = BrightnessAdjustment(current=0.64, target=0.65, adjustment=1)
    pixels = np.full((2, 2, 3), 100, dtype=np.uint8)
    assert not adj.applied
    np.testing.assert_array_equal(adj.apply_to_pixels(pixels), pixels)


def test_brightness_adjustment_factor():
    adj = BrightnessAdjustment(current=0.4, target=0.65, adjustment=25)
    assert adj.factor == pytest.approx(1.25)
    assert adj.applied
    out = adj.apply_to_pixels(np.array([[[100, 220, 2]]], dtype=np.uint8))
    assert out.tolist() == [[[125, 255, 3]]]
