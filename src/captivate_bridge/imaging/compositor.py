"""Overlay compositing for feedback button images."""

from __future__ import annotations

import base64
import binascii
import io
import logging

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


class CompositingError(RuntimeError):
    """Raised when an overlay cannot be blended onto its base image."""


class ImageCompositor:
    """Pillow-backed decode/resize/composite/encode for base64 PNG payloads."""

    def decode(self, data: str | bytes) -> Image.Image:
        try:
            raw = base64.b64decode(data, validate=False)
            with Image.open(io.BytesIO(raw)) as img:
                img.load()
                return img.convert("RGBA")
        except (binascii.Error, UnidentifiedImageError, OSError, ValueError) as exc:
            raise CompositingError(f"cannot decode image: {exc}") from exc

    def resize(self, image: Image.Image, width: int) -> Image.Image:
        """Scale ``image`` to ``width`` keeping its aspect ratio."""

        if width <= 0 or image.width <= 0:
            return image
        if image.width == width:
            return image
        height = max(1, round(image.height * width / image.width))
        return image.resize((int(width), int(height)), Image.Resampling.BILINEAR)

    def composite(self, base: Image.Image, overlay: Image.Image) -> Image.Image:
        """Blend ``overlay`` source-over onto ``base`` at the top-left corner."""

        result = base.copy()
        if overlay.width > result.width or overlay.height > result.height:
            overlay = overlay.crop((0, 0, min(overlay.width, result.width), min(overlay.height, result.height)))
        result.alpha_composite(overlay, (0, 0))
        return result

    def encode(self, image: Image.Image) -> str:
        buffer = io.BytesIO()
        try:
            image.save(buffer, format="PNG")
        except (OSError, ValueError) as exc:
            raise CompositingError(f"cannot encode image: {exc}") from exc
        return base64.b64encode(buffer.getvalue()).decode("ascii")

    def overlay(self, base64_png: str, overlay_png: str) -> str:
        """Return ``base64_png`` with ``overlay_png`` composited on top."""

        base = self.decode(base64_png)
        overlay = self.resize(self.decode(overlay_png), base.width)
        return self.encode(self.composite(base, overlay))
