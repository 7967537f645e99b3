"""Named automation images fetched from Captivate."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class ImageStore:
    """Maps image names to base64 PNG data (no MIME prefix)."""

    def __init__(self, images: Optional[Mapping[str, str]] = None) -> None:
        self._images: Dict[str, str] = dict(images or {})

    def __len__(self) -> int:
        return len(self._images)

    def __contains__(self, name: object) -> bool:
        return name in self._images

    def replace(self, images: Optional[Mapping[str, Any]]) -> None:
        self._images = {str(name): str(data) for name, data in (images or {}).items() if data}

    def get(self, name: Any) -> Optional[str]:
        if name is None:
            return None
        return self._images.get(str(name))
