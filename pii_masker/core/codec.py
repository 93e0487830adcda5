"""Image codec boundary: bytes <-> PixelBuffer.

The engine only depends on the `Codec` protocol. `ImageCodec` is the Pillow
implementation used by the service and the CLI.
"""

from __future__ import annotations

import io
import logging
from typing import Iterable, Optional, Protocol

import numpy as np
from PIL import Image, UnidentifiedImageError

from pii_masker.core.buffer import PixelBuffer
from pii_masker.core.config import ProcessingConfig
from pii_masker.core.errors import DecodeError, EncodeError

logger = logging.getLogger("pii_masker.codec")

# MIME types reported for the formats Pillow identifies
FORMAT_MIME_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}


class Codec(Protocol):
    def decode(self, data: bytes) -> PixelBuffer:
        ...

    def encode(self, buffer: PixelBuffer) -> bytes:
        ...


class ImageCodec:
    """Pillow-backed codec.

    Decoding always yields RGBA. Animated inputs contribute their first frame
    only. Encoding defaults to PNG, which is lossless, so
    ``decode(encode(buf))`` reproduces ``buf`` exactly.
    """

    def __init__(
        self,
        supported_formats: Optional[Iterable[str]] = None,
        output_format: str = "PNG",
        max_image_pixels: Optional[int] = None,
    ):
        formats = supported_formats if supported_formats is not None else ProcessingConfig().supported_formats
        self.supported_formats = {f.upper() for f in formats}
        self.output_format = output_format.upper()
        self.max_image_pixels = max_image_pixels

    @classmethod
    def from_config(cls, config: ProcessingConfig) -> "ImageCodec":
        return cls(
            supported_formats=config.supported_formats,
            output_format=config.output_format,
            max_image_pixels=config.max_image_pixels,
        )

    @property
    def output_mime_type(self) -> str:
        return FORMAT_MIME_TYPES.get(self.output_format, "application/octet-stream")

    def decode(self, data: bytes) -> PixelBuffer:
        if not data:
            raise DecodeError("Empty image payload")
        try:
            with Image.open(io.BytesIO(data)) as img:
                fmt = (img.format or "").upper()
                if fmt not in self.supported_formats:
                    raise DecodeError(f"Unsupported image format: {fmt or 'unknown'}")
                w, h = img.size
                if w <= 0 or h <= 0:
                    raise DecodeError(f"Image has no pixels ({w}x{h})")
                if self.max_image_pixels is not None and w * h > self.max_image_pixels:
                    raise DecodeError(f"Image too large: {w}x{h} exceeds {self.max_image_pixels} pixels")
                img.seek(0)
                rgba = img.convert("RGBA")
                pixels = np.array(rgba, dtype=np.uint8)
        except DecodeError:
            raise
        except (UnidentifiedImageError, OSError, EOFError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
            logger.warning("Failed to decode image payload of %d bytes: %s", len(data), exc)
            raise DecodeError(f"Could not decode image: {exc}") from exc
        logger.debug("Decoded %s image %dx%d", fmt, w, h)
        return PixelBuffer.from_array(pixels)

    def encode(self, buffer: PixelBuffer) -> bytes:
        out = io.BytesIO()
        try:
            img = Image.fromarray(buffer.pixels)
            if self.output_format == "JPEG":
                # JPEG has no alpha channel
                img = img.convert("RGB")
            img.save(out, format=self.output_format)
        except (OSError, ValueError, KeyError) as exc:
            logger.error("Failed to encode %dx%d buffer as %s: %s", buffer.width, buffer.height, self.output_format, exc)
            raise EncodeError(f"Could not encode image as {self.output_format}: {exc}") from exc
        return out.getvalue()


__all__ = ["Codec", "ImageCodec", "FORMAT_MIME_TYPES"]
