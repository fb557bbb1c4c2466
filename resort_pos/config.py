"""Runtime configuration defaults for persistence, rendering and printing."""

from __future__ import annotations

import os

DB_PATH = os.environ.get("RESORT_POS_DB_PATH", "data/resort_pos.db")
# Seconds a writer waits on a locked database before giving up.
DB_TIMEOUT_SECONDS = 10.0

# 58mm thermal roll, monospace feed.
RECEIPT_WIDTH = 32
KOT_ITEM_WIDTH = 23
KOT_QTY_WIDTH = 4

PRINTER_USB_VENDOR_ID = 0x28E9
PRINTER_USB_PRODUCT_ID = 0x0289
PRINTER_WIDTH_PX = 384
PRINTER_FONT_SIZE = 20
PRINTER_FONT_PATH = "/usr/share/fonts/TTF/DejaVuSansMono.ttf"
PRINTER_LEFT_INDENT_PX = 4
PRINTER_LINE_SPACING_PX = 4
PRINTER_TAIL_FEED_PX = 60
