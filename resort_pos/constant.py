"""Editable static business data: services, tax defaults, invoice classes."""

from __future__ import annotations

RESORT_DETAILS: dict[str, str] = {
    "name": "SRI KALKI JAM JAM RESORTS",
    "address": "17/A, Kalki Nagar, Velampalayam, Kavundapadi, Erode - 638455. Tamil Nadu.",
    "gstin": "33AFBFS6465F1ZZ",
    "mobile": "9442917999",
    "email": "srikalkijamjamresorts@gmail.com",
    "website": "www.srikalkijamjamresorts.com",
    "state": "Tamil Nadu",
    "state_code": "33",
}

# Used when no tax setting has been stored for a service.
DEFAULT_TAX_PERCENT: dict[str, float] = {
    "Bar": 18.0,
}
FALLBACK_TAX_PERCENT = 0.0

# Dine-in / room-service modules: every order needs a table or a room number.
LOCATION_REQUIRED_SERVICES: tuple[str, ...] = ("Bakery", "Juice", "Restaurant")

# Evaluated in order; the first class whose services match wins.
# A class with no service list catches everything left over.
INVOICE_CLASSES: list[dict[str, object]] = [
    {"name": "Bar", "prefix": "B", "services": ["Bar"]},
    {"name": "General", "prefix": "R", "services": None},
]

KITCHEN_CATEGORY = "kitchen"

SHOT_VARIANT = "Shot"
SHOTS_PER_BOTTLE = 12

ITEM_KEY_SEPARATOR = ":"
ITEM_KEY_ESCAPE = "\\"
