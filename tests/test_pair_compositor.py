import numpy as np
import pytest

from pairshot.exceptions import DetectionFailedError
from pairshot.models.detection import Detection
from pairshot.models.image import Image
from pairshot.pipeline.pair_compositor import process_image_pair, process_single_image, process_images
from pairshot.services.detection_service import DetectionService
from conftest import FakeDetectorRepository, make_product_photo


def test_pair_composite(detection_service, image_service, fake_repository):
    left = Image(make_product_photo())
    right = Image(make_product_photo(color=(120, 30, 30)))

    result = process_image_pair(left, right, detection_service=detection_service, image_service=image_service)

    assert result.image.pixels.shape == (540, 530, 3)
    assert result.image.pixels.dtype == np.uint8
    assert [a.angle for a in result.attempts] == [0, 0]
    assert len(result.crops) == 2
    assert result.brightness is not None
    # one detection call per image, original orientation succeeded
    assert len(fake_repository.calls) == 2


def test_single_composite(detection_service, image_service):
    result = process_single_image(Image(make_product_photo()),
                                  detection_service=detection_service, image_service=image_service)
    assert result.image.pixels.shape == (540, 280, 3)
    assert len(result.crops) == 1


def test_large_images_are_scaled_before_detection(detection_service, image_service, fake_repository):
    big = Image(np.full((3000, 1500, 3), 128, dtype=np.uint8))
    process_single_image(big, detection_service=detection_service, image_service=image_service)
    assert fake_repository.calls[0]["shape"] == (1024, 512, 3)


def test_non_container_object_is_used(image_service):
    remote = Detection("remote", 0.8, (130, 150, 40, 90))
    repo = FakeDetectorRepository(default=[remote])
    service = DetectionService(detector_repository=repo, image_service=image_service)

    result = process_single_image(Image(make_product_photo()),
                                  detection_service=service, image_service=image_service)
    assert result.attempts[0].detections == [remote]
    assert result.crops[0].height == round(90 * 1.5)


def test_one_image_without_objects_fails_the_pair(image_service):
    bottle = Detection("bottle", 0.9, (120, 100, 60, 200))
    # first image succeeds at once, second finds nothing anywhere
    repo = FakeDetectorRepository(responses=[[bottle]])
    service = DetectionService(detector_repository=repo, image_service=image_service)

    with pytest.raises(DetectionFailedError, match="Object detection failed"):
        process_image_pair(Image(make_product_photo()), Image(make_product_photo()),
                           detection_service=service, image_service=image_service)


def test_empty_input_is_rejected(detection_service):
    with pytest.raises(ValueError):
        process_images([], detection_service=detection_service)


def test_detection_summary(detection_service, image_service):
    result = process_single_image(Image(make_product_photo()),
                                  detection_service=detection_service, image_service=image_service)
    summary = result.detection_summary()
    assert summary["image1"]["dimensions"] == {"width": 300, "height": 400}
    assert summary["image1"]["detections"][0]["class"] == "bottle"


def test_crop_comes_from_rotated_frame(image_service):
    # flat grey frame: the contrast stretch leaves it alone, so the only
    # white pixels after detection are the corners the rotation uncovered
    photo = np.full((400, 300, 3), 40, dtype=np.uint8)
    tucked_in_corner = Detection("bottle", 0.9, (10, 10, 60, 150))
    repo = FakeDetectorRepository(responses=[[], [tucked_in_corner]])
    service = DetectionService(detector_repository=repo, image_service=image_service)

    result = process_single_image(Image(photo), detection_service=service, image_service=image_service)

    attempt = result.attempts[0]
    assert attempt.angle == -5
    assert attempt.pixels[0, 0].tolist() == [255, 255, 255]
    # crop is clamped into the top-left corner of the rotated frame
    assert (result.crops[0].x, result.crops[0].y) == (0, 0)

    x, y = result.image.pixels.shape[1] // 2, result.image.pixels.shape[0] // 2
    assert result.image.pixels[y, x].max() < 100
    # just inside the drawn panel area, top-left: rotation corner, not grey
    assert result.image.pixels[22, 23].min() > 200
