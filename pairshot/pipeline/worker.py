"""
Background processing worker.

The foreground posts plain-dict messages; one background thread owns the
detector and answers each message, in order, through a single callback.

Inbound:
    {"type": "init"}
    {"type": "process",       "data": {"img1": buf, "img2": buf}}
    {"type": "processSingle", "data": {"img": buf}}
    where buf = {"data": RGBA bytes, "width": int, "height": int}

Outbound:
    {"type": "modelLoaded"}
    {"type": "debug",     "data": {...}}
    {"type": "processed", "imageData": buf}
    {"type": "error",     "error": str}

An optional "id" on an inbound message is echoed on every reply it causes.
"""
from __future__ import annotations
import logging
import queue
import threading
from typing import Callable, List

from ..exceptions import ModelNotInitializedError, PairshotError
from ..services.image_service import ImageService
from ..services.detection_service import DetectionService
from .pair_compositor import process_images

logger = logging.getLogger(__name__)

_STOP = object()


class _MessageLogHandler(logging.Handler):
    """
    Forwards records logged on the worker thread as debug messages.

    While installed, the namespace logger is opened to DEBUG and stops
    propagating; records at or above `passthrough_level` are handed on to the
    parent handlers so regular console output is unchanged.
    """

    def __init__(self, worker: "ProcessingWorker"):
        super().__init__(level=logging.DEBUG)
        self.worker = worker
        self.passthrough_level = logging.WARNING
        self._local = threading.local()
        self._saved = None
        self._parent = None

    def install(self, namespace_logger: logging.Logger) -> None:
        self._saved = (namespace_logger.level, namespace_logger.propagate)
        self._parent = namespace_logger.parent if namespace_logger.propagate else None
        self.passthrough_level = namespace_logger.getEffectiveLevel()
        namespace_logger.setLevel(logging.DEBUG)
        namespace_logger.propagate = False
        namespace_logger.addHandler(self)

    def uninstall(self, namespace_logger: logging.Logger) -> None:
        namespace_logger.removeHandler(self)
        if self._saved is not None:
            level, namespace_logger.propagate = self._saved
            namespace_logger.setLevel(level)
            self._saved = None

    def emit(self, record: logging.LogRecord) -> None:
        if record.levelno >= self.passthrough_level and self._parent is not None:
            self._parent.handle(record)

        if record.thread != self.worker.thread_ident or getattr(self._local, "busy", False):
            return
        self._local.busy = True
        try:
            self.worker.post({"type": "debug", "data": {"message": record.getMessage()}})
        finally:
            self._local.busy = False


class ProcessingWorker:
    """
    Single background thread with a FIFO inbox. No cancellation and no
    backpressure: every posted message is handled, one at a time.
    """

    def __init__(
        self,
        on_message: Callable[[dict], None],
        *,
        model_loader: Callable[[], DetectionService] = DetectionService,
        image_service: ImageService | None = None,
        log_namespace: str = "pairshot",
    ):
        self.on_message = on_message
        self.model_loader = model_loader
        self.image_service = image_service or ImageService()
        self.detection_service: DetectionService | None = None

        self._inbox: queue.Queue = queue.Queue()
        self._current_id = None
        self._thread = threading.Thread(target=self._run, name="pairshot-worker", daemon=True)
        self._log_handler = _MessageLogHandler(self)
        self._log_namespace = log_namespace

    # ─── Foreground API ────────────────────────────────────────────
    @property
    def thread_ident(self):
        return self._thread.ident

    def start(self) -> "ProcessingWorker":
        self._log_handler.install(logging.getLogger(self._log_namespace))
        self._thread.start()
        return self

    def post_message(self, message: dict) -> None:
        self._inbox.put(message)

    def stop(self, timeout: float | None = None) -> None:
        """Finish the queued messages, then stop the thread."""
        if self._thread.is_alive():
            self._inbox.put(_STOP)
            self._thread.join(timeout)
        self._log_handler.uninstall(logging.getLogger(self._log_namespace))

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    # ─── Background side ───────────────────────────────────────────
    def post(self, reply: dict) -> None:
        if self._current_id is not None:
            reply = {**reply, "id": self._current_id}
        self.on_message(reply)

    def _run(self) -> None:
        while True:
            message = self._inbox.get()
            if message is _STOP:
                break
            self._current_id = message.get("id") if isinstance(message, dict) else None
            try:
                self._handle(message)
            except PairshotError as err:
                logger.warning(f"Job failed: {err}")
                self.post({"type": "error", "error": str(err)})
            except Exception as err:
                logger.exception("Worker failed to handle message")
                self.post({"type": "error", "error": str(err)})
            finally:
                self._current_id = None

    def _handle(self, message: dict) -> None:
        msg_type = message.get("type")
        data = message.get("data") or {}

        if msg_type == "init":
            self._init_model()
        elif msg_type == "process":
            self._process([data["img1"], data["img2"]])
        elif msg_type == "processSingle":
            self._process([data["img"]])
        else:
            self.post({"type": "error", "error": "Unknown command"})

    def _init_model(self) -> None:
        try:
            self.detection_service = self.model_loader()
        except Exception as err:
            logger.error(f"Failed to load model: {err}")
            self.post({"type": "error", "error": f"Failed to load model: {err}"})
            return
        self.post({"type": "modelLoaded"})

    def _process(self, buffers: List[dict]) -> None:
        if self.detection_service is None:
            raise ModelNotInitializedError("Model not initialized")

        images = [
            self.image_service.from_rgba_buffer(buf["data"], buf["width"], buf["height"])
            for buf in buffers
        ]
        result = process_images(images,
                                detection_service=self.detection_service,
                                image_service=self.image_service)

        self.post({"type": "debug", "data": result.detection_summary()})
        self.post({
            "type": "processed",
            "imageData": {
                "data": self.image_service.to_rgba_buffer(result.image),
                "width": result.image.width,
                "height": result.image.height,
            },
        })
