from datetime import datetime, timedelta, timezone

import pytest

from resort_pos.cart import Catalog
from resort_pos.models import CatalogItem
from resort_pos.persistence import SqliteStore

CHECKIN = datetime(2026, 2, 21, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path):
    s = SqliteStore(tmp_path / "resort.db")
    s.bootstrap_schema()
    return s


@pytest.fixture
def customer(store):
    return store.save_customer("Asha", "9876543210", room_no="101", checkin_time=CHECKIN)


@pytest.fixture
def bar_catalog():
    return Catalog(
        [
            CatalogItem("whiskey", "Whiskey", 1200, category="whisky"),
            CatalogItem("rum", "Rum", 900, category="rum", shot_price=80),
            CatalogItem("beer", "Beer", 250, category="beer"),
            CatalogItem("wings", "Chicken Wings", 300, category="kitchen"),
        ]
    )


@pytest.fixture
def bakery_catalog():
    return Catalog(
        [
            CatalogItem("cake", "Plum Cake", 250, category="cakes"),
            CatalogItem("puff", "Veg Puff", 40, category="snacks"),
        ]
    )


def during_visit(minutes: int) -> datetime:
    return CHECKIN + timedelta(minutes=minutes)
