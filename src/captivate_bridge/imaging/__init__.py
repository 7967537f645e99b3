"""Image handling for feedback button states."""

from .compositor import CompositingError, ImageCompositor
from .image_store import ImageStore

__all__ = ["CompositingError", "ImageCompositor", "ImageStore"]
