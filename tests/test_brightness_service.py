import numpy as np
import pytest

from pairshot.services.brightness_service import BrightnessService


@pytest.fixture
def brightness_service():
    return BrightnessService(target=0.65, tolerance=2)


def test_average_brightness_extremes(brightness_service):
    assert brightness_service.average_brightness(np.full((4, 4, 3), 255, dtype=np.uint8)) == pytest.approx(1.0)
    assert brightness_service.average_brightness(np.zeros((4, 4, 3), dtype=np.uint8)) == 0.0
    assert brightness_service.average_brightness(np.zeros((0, 0, 3), dtype=np.uint8)) == 0.0


def test_average_brightness_uses_luma_weights(brightness_service):
    green = np.zeros((2, 2, 3), dtype=np.uint8)
    green[..., 1] = 255
    assert brightness_service.average_brightness(green) == pytest.approx(0.7152)


def test_dark_image_is_brightened(brightness_service):
    pixels = np.full((10, 10, 3), 100, dtype=np.uint8)
    out, adjustment = brightness_service.normalize(pixels)

    assert adjustment.adjustment == 26           # 65% - 39.2%
    assert adjustment.applied
    assert (out == 126).all()


def test_white_image_is_darkened(brightness_service):
    pixels = np.full((10, 10, 3), 255, dtype=np.uint8)
    out, adjustment = brightness_service.normalize(pixels)

    assert adjustment.adjustment == -35
    assert (out == 166).all()


def test_close_to_target_is_untouched(brightness_service):
    pixels = np.full((10, 10, 3), 166, dtype=np.uint8)
    out, adjustment = brightness_service.normalize(pixels)

    assert not adjustment.applied
    np.testing.assert_array_equal(out, pixels)


def test_result_stays_in_range(brightness_service):
    pixels = np.zeros((10, 10, 3), dtype=np.uint8)
    pixels[0, 0] = 255
    out, adjustment = brightness_service.normalize(pixels)

    assert adjustment.factor > 1.5
    assert out.dtype == np.uint8
    assert out[0, 0].tolist() == [255, 255, 255]
