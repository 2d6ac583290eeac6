"""Exceptions raised at the shell boundary."""

from __future__ import annotations

from pathlib import Path


class MarkpagerError(Exception):
    """Base class for failures the CLI reports and exits on."""


class DocumentLoadError(MarkpagerError):
    """The markdown file could not be read at startup."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"cannot read {path}: {reason}")
        self.path = path
        self.reason = reason
