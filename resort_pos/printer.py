"""Thermal printer sink for already-formatted bill and KOT text."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from resort_pos.config import (
    PRINTER_FONT_PATH,
    PRINTER_FONT_SIZE,
    PRINTER_LEFT_INDENT_PX,
    PRINTER_LINE_SPACING_PX,
    PRINTER_TAIL_FEED_PX,
    PRINTER_USB_PRODUCT_ID,
    PRINTER_USB_VENDOR_ID,
    PRINTER_WIDTH_PX,
)

logger = logging.getLogger("resort_pos.printer")

_FONT_OVERRIDE_ENV = "RESORT_POS_PRINTER_FONT_PATH"
# Monospace faces only; bill columns are laid out by character count.
_LINUX_FONT_FALLBACKS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/liberation/LiberationMono-Regular.ttf",
    "/usr/share/fonts/noto/NotoSansMono-Regular.ttf",
)


def _font_candidates() -> list[str]:
    override = os.environ.get(_FONT_OVERRIDE_ENV, "").strip()
    ordered = [override, PRINTER_FONT_PATH, *_LINUX_FONT_FALLBACKS]
    return list(dict.fromkeys(path for path in ordered if path))


def resolve_printer_font_path() -> str:
    """First existing monospace font: env override, configured path, then distro defaults."""
    candidates = _font_candidates()
    found = next((path for path in candidates if Path(path).is_file()), None)
    if found is None:
        raise RuntimeError(
            f"no monospace printer font among {candidates}; point {_FONT_OVERRIDE_ENV} at a .ttf file"
        )
    return found


def load_printer_font() -> object:
    from PIL import ImageFont

    return ImageFont.truetype(resolve_printer_font_path(), PRINTER_FONT_SIZE)


def check_printer_dependencies() -> tuple[bool, str]:
    """Report whether a bill could be printed right now, and why not."""
    try:
        import escpos.printer  # noqa: F401

        font_path = resolve_printer_font_path()
        load_printer_font()
    except (ImportError, OSError, RuntimeError) as exc:
        logger.warning("thermal printer unavailable: %s", exc)
        return (False, f"Printer unavailable: {exc}")
    return (True, f"Printer ready ({Path(font_path).name})")


def render_text_image(text: str, font: object) -> object:
    """Rasterise fixed-width text into a 1-bit image one printer wide."""
    from PIL import Image, ImageDraw

    lines = text.split("\n")
    probe = ImageDraw.Draw(Image.new("1", (1, 1), color=1))
    bbox = probe.textbbox((0, 0), "Ag", font=font)
    line_height = (bbox[3] - bbox[1]) + PRINTER_LINE_SPACING_PX

    img = Image.new("1", (PRINTER_WIDTH_PX, max(1, line_height * len(lines))), color=1)
    draw = ImageDraw.Draw(img)
    for idx, line in enumerate(lines):
        if line:
            # Offset by bbox top so descenders are not clipped.
            draw.text((PRINTER_LEFT_INDENT_PX, idx * line_height - bbox[1]), line, font=font, fill=0)
    return img


def _render_spacer(height_px: int) -> object:
    from PIL import Image

    return Image.new("1", (PRINTER_WIDTH_PX, max(1, height_px)), color=1)


def print_text(text: str, printer: object | None = None, font: object | None = None) -> None:
    """Print a formatted ticket and cut."""
    if not text.strip():
        return

    if printer is None:
        try:
            from escpos.printer import Usb
        except ImportError as exc:
            raise RuntimeError(f"Printer dependencies unavailable: {exc}") from exc
        printer = Usb(PRINTER_USB_VENDOR_ID, PRINTER_USB_PRODUCT_ID)
    if font is None:
        font = load_printer_font()

    printer.image(render_text_image(text.rstrip("\n"), font))
    printer.image(_render_spacer(PRINTER_TAIL_FEED_PX))
    printer.cut()
    logger.debug("printed %d lines", text.count("\n") + 1)
