from __future__ import annotations
from pathlib import Path
from typing import Union, Iterable, Iterator
from io import BytesIO
import base64
import logging
import os
import numpy as np
import cv2
from PIL import Image as PILImage
from dotenv import load_dotenv

from ..models.image import Image
from ..exceptions import InvalidImageBufferError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ImageRepository:
    """
    Handles file I/O, byte decoding and pixel updates for Image entities.
    """
    def __init__(self):
        exts = os.getenv("VALID_IMAGE_EXTENSIONS", ".jpg,.jpeg,.png,.webp,.bmp")
        self.VALID_EXTS = {ext.strip().lower() for ext in exts.split(",") if ext.strip()}
        self.JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "95"))

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        if path is None:
            return Image(pixels)
        return Image(pixels=pixels, path=Path(path))

    @staticmethod
    def load(path: Union[str, Path]) -> Image:
        path = Path(path)
        arr_bgr = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if arr_bgr is None:
            raise FileNotFoundError(f"Image not found or unreadable: {path}")

        return Image(pixels=cv2.cvtColor(arr_bgr, cv2.COLOR_BGR2RGB), path=path)

    @staticmethod
    def decode_bytes(data: bytes) -> Image:
        """Decode an encoded (JPEG/PNG/...) upload into an RGB Image."""
        arr = np.frombuffer(data, dtype=np.uint8)
        arr_bgr = cv2.imdecode(arr, cv2.IMREAD_COLOR) if arr.size else None
        if arr_bgr is None:
            raise ValueError("Uploaded file is not a decodable image")
        return Image(pixels=cv2.cvtColor(arr_bgr, cv2.COLOR_BGR2RGB))

    @staticmethod
    def from_rgba_buffer(data: bytes, width: int, height: int) -> Image:
        """
        Wrap a raw RGBA byte buffer (canvas ImageData layout) as an RGB Image.
        """
        width, height = int(width), int(height)
        if width <= 0 or height <= 0:
            raise InvalidImageBufferError(f"Invalid image dimensions {width}x{height}")

        expected = width * height * 4
        if len(data) != expected:
            raise InvalidImageBufferError(
                f"Pixel buffer holds {len(data)} bytes, expected {expected} for {width}x{height} RGBA"
            )
        rgba = np.frombuffer(data, dtype=np.uint8).reshape(height, width, 4)
        return Image(pixels=cv2.cvtColor(rgba, cv2.COLOR_RGBA2RGB))

    @staticmethod
    def to_rgba_buffer(image: Image) -> bytes:
        """Opaque RGBA bytes, row-major, ready to hand back to a canvas."""
        rgba = cv2.cvtColor(np.ascontiguousarray(image.pixels), cv2.COLOR_RGB2RGBA)
        return rgba.tobytes()

    def save(self, image: Image) -> None:
        path = Path(image.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        PILImage.fromarray(image.pixels).save(path, quality=self.JPEG_QUALITY)

    def encode_jpeg(self, image: Image) -> bytes:
        buffer = BytesIO()
        PILImage.fromarray(image.pixels).save(buffer, format="JPEG", quality=self.JPEG_QUALITY)
        return buffer.getvalue()

    def encode_base64(self, image: Image) -> str:
        base64_string = base64.b64encode(self.encode_jpeg(image)).decode("utf-8")
        return f"data:image/jpeg;base64,{base64_string}"

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield Image objects one at a time, in file-name order so that
        consecutive files form pairs.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed:
                logger.debug(f"Skipping due to extension: {p}")
                continue
            if not p.is_file():
                logger.debug(f"Skipping because not file: {p}")
                continue
            try:
                yield self.load(p)
            except FileNotFoundError as err:
                logger.warning(f"Skipping {p.name}: {err}")
