"""Terminal graphics encoders.

Each encoder turns a decoded Pillow image into the escape sequences that
draw it across ``cols`` x ``rows`` cells starting at the cursor. Halfblock
output is one string per row so the view can place rows independently.
"""

from __future__ import annotations

import base64
from io import BytesIO

from PIL import Image

from .protocol import PROTOCOL_HALFBLOCK, PROTOCOL_ITERM2, PROTOCOL_KITTY, PROTOCOL_SIXEL

KITTY_CHUNK = 4096
# Approximate pixels per cell used when a protocol needs a pixel-sized bitmap.
CELL_PX_WIDTH = 10
CELL_PX_HEIGHT = 20
SIXEL_COLORS = 256


def _flatten(image, background: tuple[int, int, int] = (0, 0, 0)):
    """Composite alpha onto ``background`` and return an RGB image."""
    if image.mode == "RGB":
        return image
    rgba = image.convert("RGBA")
    base = Image.new("RGBA", rgba.size, background + (255,))
    base.alpha_composite(rgba)
    return base.convert("RGB")


def _pixel_fit(image, cols: int, rows: int):
    return image.resize((max(1, cols * CELL_PX_WIDTH), max(1, rows * CELL_PX_HEIGHT)))


def _png_bytes(image) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def encode_kitty(image, cols: int, rows: int) -> str:
    """Kitty graphics transmit-and-display with chunked base64 PNG."""
    payload = base64.b64encode(_png_bytes(_pixel_fit(image, cols, rows))).decode("ascii")
    chunks = [payload[i : i + KITTY_CHUNK] for i in range(0, len(payload), KITTY_CHUNK)] or [""]
    out: list[str] = []
    for idx, chunk in enumerate(chunks):
        more = 1 if idx < len(chunks) - 1 else 0
        if idx == 0:
            out.append(f"\x1b_Ga=T,f=100,q=2,c={max(1, cols)},r={max(1, rows)},m={more};{chunk}\x1b\\")
        else:
            out.append(f"\x1b_Gm={more};{chunk}\x1b\\")
    return "".join(out)


def kitty_clear() -> str:
    """Delete all kitty placements on screen."""
    return "\x1b_Ga=d,d=A,q=2;\x1b\\"


def encode_iterm2(image, cols: int, rows: int) -> str:
    """iTerm2 inline image (OSC 1337) sized in cells."""
    data = _png_bytes(_pixel_fit(image, cols, rows))
    payload = base64.b64encode(data).decode("ascii")
    return (
        f"\x1b]1337;File=inline=1;size={len(data)};width={max(1, cols)};"
        f"height={max(1, rows)};preserveAspectRatio=0:{payload}\x07"
    )


def encode_sixel(image, cols: int, rows: int) -> str:
    """DEC sixel with a Pillow-quantized palette of up to 256 colours."""
    rgb = _pixel_fit(_flatten(image), cols, rows)
    quantized = rgb.quantize(colors=SIXEL_COLORS)
    palette = quantized.getpalette() or []
    width, height = quantized.size
    pixels = quantized.load()

    out: list[str] = ["\x1bPq", f'"1;1;{width};{height}']
    used = sorted(set(quantized.getdata()))
    for index in used:
        r, g, b = palette[index * 3 : index * 3 + 3] if len(palette) >= index * 3 + 3 else (0, 0, 0)
        out.append(f"#{index};2;{r * 100 // 255};{g * 100 // 255};{b * 100 // 255}")

    for band_top in range(0, height, 6):
        band_height = min(6, height - band_top)
        band_colors: dict[int, list[int]] = {}
        for x in range(width):
            for dy in range(band_height):
                color = pixels[x, band_top + dy]
                bits = band_colors.setdefault(color, [0] * width)
                bits[x] |= 1 << dy
        for color, bits in band_colors.items():
            out.append(f"#{color}")
            out.append(_sixel_run_length(bits))
            out.append("$")
        out.append("-")
    out.append("\x1b\\")
    return "".join(out)


def _sixel_run_length(bits: list[int]) -> str:
    out: list[str] = []
    idx = 0
    n = len(bits)
    while idx < n:
        value = bits[idx]
        run = 1
        while idx + run < n and bits[idx + run] == value:
            run += 1
        ch = chr(63 + value)
        out.append(f"!{run}{ch}" if run > 3 else ch * run)
        idx += run
    return "".join(out)


def rgb_to_xterm256(r: int, g: int, b: int) -> int:
    """Nearest colour in the xterm 6x6x6 cube."""

    def to_cube(value: int) -> int:
        return (value * 5) // 255

    return 16 + 36 * to_cube(r) + 6 * to_cube(g) + to_cube(b)


def encode_halfblock(image, cols: int, rows: int, truecolor: bool = True) -> list[str]:
    """Render with ``▀``: foreground is the upper pixel, background the lower."""
    img = _flatten(image).resize((max(1, cols), max(1, rows) * 2))
    pixels = img.load()
    lines: list[str] = []
    for y in range(0, img.height, 2):
        parts: list[str] = []
        for x in range(img.width):
            top = pixels[x, y]
            bottom = pixels[x, y + 1] if y + 1 < img.height else top
            if truecolor:
                parts.append(
                    f"\x1b[38;2;{top[0]};{top[1]};{top[2]}m"
                    f"\x1b[48;2;{bottom[0]};{bottom[1]};{bottom[2]}m▀"
                )
            else:
                parts.append(f"\x1b[38;5;{rgb_to_xterm256(*top[:3])}m\x1b[48;5;{rgb_to_xterm256(*bottom[:3])}m▀")
        parts.append("\x1b[0m")
        lines.append("".join(parts))
    return lines


def encode(protocol: str, image, cols: int, rows: int, truecolor: bool = True) -> str | list[str]:
    """Dispatch to the encoder for ``protocol``."""
    if protocol == PROTOCOL_KITTY:
        return encode_kitty(image, cols, rows)
    if protocol == PROTOCOL_SIXEL:
        return encode_sixel(image, cols, rows)
    if protocol == PROTOCOL_ITERM2:
        return encode_iterm2(image, cols, rows)
    if protocol == PROTOCOL_HALFBLOCK:
        return encode_halfblock(image, cols, rows, truecolor)
    raise ValueError(f"unknown image protocol: {protocol}")
