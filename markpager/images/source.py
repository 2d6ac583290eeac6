"""Resolve markdown image references to loadable locations."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

from ..document.types import IMAGE_SOURCE_DATA, IMAGE_SOURCE_PATH, ImageSource


@dataclass(frozen=True)
class ImageHandle:
    """A resolved image reference.

    ``location`` is an absolute ``Path`` for local files and the original
    string for URLs and data URIs.
    """

    key: str
    source: ImageSource
    location: Path | str

    @property
    def is_local(self) -> bool:
        return self.source.kind == IMAGE_SOURCE_PATH

    @property
    def is_data(self) -> bool:
        return self.source.kind == IMAGE_SOURCE_DATA


def _local_path(value: str, base_dir: Path) -> Path:
    if value.lower().startswith("file://"):
        return Path(unquote(urlparse(value).path))
    path = Path(unquote(value)).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def resolve(source: ImageSource, base_dir: Path) -> ImageHandle:
    """Resolve ``source`` relative to the markdown file's directory."""
    if source.kind == IMAGE_SOURCE_PATH:
        location: Path | str = _local_path(source.value, base_dir)
    else:
        location = source.value
    return ImageHandle(key=source.key, source=source, location=location)
