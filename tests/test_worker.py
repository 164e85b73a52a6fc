import logging

import numpy as np
import pytest

from pairshot.pipeline.worker import ProcessingWorker
from pairshot.services.detection_service import DetectionService
from conftest import FakeDetectorRepository, make_product_photo


def rgba_buffer(pixels):
    h, w = pixels.shape[:2]
    rgba = np.dstack([pixels, np.full((h, w), 255, dtype=np.uint8)])
    return {"data": rgba.tobytes(), "width": w, "height": h}


@pytest.fixture
def model_loader(bottle, image_service):
    return lambda: DetectionService(detector_repository=FakeDetectorRepository(default=[bottle]),
                                    image_service=image_service)


def run_messages(messages, loader):
    replies = []
    with ProcessingWorker(replies.append, model_loader=loader) as worker:
        for message in messages:
            worker.post_message(message)
    return replies


def of_type(replies, msg_type):
    return [r for r in replies if r["type"] == msg_type]


def test_process_pair(model_loader):
    replies = run_messages([
        {"type": "init"},
        {"type": "process", "data": {"img1": rgba_buffer(make_product_photo()),
                                     "img2": rgba_buffer(make_product_photo())}},
    ], model_loader)

    non_debug = [r for r in replies if r["type"] != "debug"]
    assert non_debug[0] == {"type": "modelLoaded"}
    processed = of_type(replies, "processed")
    assert len(processed) == 1
    image_data = processed[0]["imageData"]
    assert (image_data["width"], image_data["height"]) == (530, 540)
    assert len(image_data["data"]) == 530 * 540 * 4
    summaries = [r for r in of_type(replies, "debug") if "image2" in r["data"]]
    assert summaries and summaries[0]["data"]["image1"]["detections"][0]["class"] == "bottle"


def test_process_single(model_loader):
    replies = run_messages([
        {"type": "init"},
        {"type": "processSingle", "data": {"img": rgba_buffer(make_product_photo())}},
    ], model_loader)

    image_data = of_type(replies, "processed")[0]["imageData"]
    assert (image_data["width"], image_data["height"]) == (280, 540)


def test_process_before_init(model_loader):
    replies = run_messages([
        {"type": "process", "data": {"img1": rgba_buffer(make_product_photo()),
                                     "img2": rgba_buffer(make_product_photo())}},
    ], model_loader)
    assert of_type(replies, "error")[0]["error"] == "Model not initialized"
    assert not of_type(replies, "processed")


def test_unknown_command(model_loader):
    replies = run_messages([{"type": "resize"}], model_loader)
    assert of_type(replies, "error") == [{"type": "error", "error": "Unknown command"}]


def test_short_pixel_buffer_reports_error(model_loader):
    bad = {"data": b"\x00" * 10, "width": 4, "height": 4}
    replies = run_messages([
        {"type": "init"},
        {"type": "processSingle", "data": {"img": bad}},
        {"type": "processSingle", "data": {"img": rgba_buffer(make_product_photo())}},
    ], model_loader)

    errors = of_type(replies, "error")
    assert len(errors) == 1 and "expected 64" in errors[0]["error"]
    # the worker keeps going after a bad job
    assert len(of_type(replies, "processed")) == 1


def test_model_load_failure():
    def broken_loader():
        raise RuntimeError("weights unavailable")

    replies = run_messages([{"type": "init"}], broken_loader)
    assert of_type(replies, "error")[0]["error"] == "Failed to load model: weights unavailable"


def test_detection_failure_is_reported(image_service):
    loader = lambda: DetectionService(detector_repository=FakeDetectorRepository(),
                                      image_service=image_service)
    replies = run_messages([
        {"type": "init"},
        {"type": "processSingle", "data": {"img": rgba_buffer(make_product_photo())}},
    ], loader)
    assert "Object detection failed" in of_type(replies, "error")[0]["error"]


def test_message_id_is_echoed(model_loader):
    replies = run_messages([
        {"type": "init"},
        {"id": 7, "type": "processSingle", "data": {"img": rgba_buffer(make_product_photo())}},
    ], model_loader)
    assert of_type(replies, "processed")[0]["id"] == 7
    assert "id" not in of_type(replies, "modelLoaded")[0]


def test_pipeline_logs_are_forwarded_at_default_level(bottle, image_service):
    loader = lambda: DetectionService(detector_repository=FakeDetectorRepository(responses=[[], [bottle]]),
                                      image_service=image_service)
    replies = run_messages([
        {"type": "init"},
        {"type": "processSingle", "data": {"img": rgba_buffer(make_product_photo())}},
    ], loader)

    messages = [r["data"].get("message", "") for r in of_type(replies, "debug")]
    assert any("Attempt with original" in m for m in messages)
    assert any("Using rotated slightly left attempt" in m for m in messages)
    assert of_type(replies, "processed")


def test_logger_state_is_restored_after_stop(model_loader):
    namespace = logging.getLogger("pairshot")
    before = (namespace.level, namespace.propagate, list(namespace.handlers))

    run_messages([{"type": "init"}], model_loader)

    assert (namespace.level, namespace.propagate, list(namespace.handlers)) == before


def test_debug_records_stay_off_the_console(model_loader, caplog):
    caplog.set_level(logging.INFO, logger="pairshot")
    run_messages([
        {"type": "init"},
        {"type": "processSingle", "data": {"img": rgba_buffer(make_product_photo())}},
    ], model_loader)

    pipeline_records = [r for r in caplog.records if r.name.startswith("pairshot.")]
    assert pipeline_records
    assert all(r.levelno >= logging.INFO for r in pipeline_records)
