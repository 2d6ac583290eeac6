"""Scroll window arithmetic over a document's line count.

Every operation returns a new ``Viewport`` with ``offset`` clamped into
``[0, max(0, total_lines - height)]``; out-of-range requests saturate.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


def _clamp(offset: int, total_lines: int, height: int) -> int:
    return max(0, min(int(offset), max(0, total_lines - height)))


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int
    offset: int = 0
    total_lines: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "width", max(0, int(self.width)))
        object.__setattr__(self, "height", max(0, int(self.height)))
        object.__setattr__(self, "total_lines", max(0, int(self.total_lines)))
        object.__setattr__(self, "offset", _clamp(self.offset, self.total_lines, self.height))

    @property
    def max_offset(self) -> int:
        return max(0, self.total_lines - self.height)

    def visible_range(self) -> range:
        """Rows ``[offset, offset + height)`` limited to the document end."""
        return range(self.offset, min(self.offset + self.height, self.total_lines))

    def scroll_to(self, offset: int) -> Viewport:
        return replace(self, offset=offset)

    def scroll_by(self, delta: int) -> Viewport:
        return replace(self, offset=self.offset + int(delta))

    def page(self, direction: int, half: bool = False) -> Viewport:
        """Scroll a full (or half) page; ``direction`` is ``1`` or ``-1``."""
        step = max(1, self.height // 2 if half else self.height)
        return self.scroll_by(step if direction >= 0 else -step)

    def go_to_top(self) -> Viewport:
        return self.scroll_to(0)

    def go_to_bottom(self) -> Viewport:
        return self.scroll_to(self.max_offset)

    def go_to_percentage(self, percent: float) -> Viewport:
        percent = max(0.0, min(100.0, float(percent)))
        return self.scroll_to(round(self.max_offset * percent / 100.0))

    def scroll_percentage(self) -> float:
        """Fraction of the scrollable range above the top row, in ``[0, 1]``.

        A document that fits entirely reports ``1.0``.
        """
        if self.max_offset == 0:
            return 1.0
        return self.offset / self.max_offset

    def resize(self, width: int, height: int) -> Viewport:
        return replace(self, width=width, height=height)

    def with_total_lines(self, total_lines: int) -> Viewport:
        return replace(self, total_lines=total_lines)

    def contains(self, line: int) -> bool:
        return self.offset <= line < self.offset + self.height
