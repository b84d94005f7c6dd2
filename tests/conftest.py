import json
from datetime import datetime, timezone

import pytest

from skydome.catalog import parse_index
from skydome.models import Instant, Observer

from tests.helpers import INDEX, TILES, FakeFetch


@pytest.fixture
def index():
    # Plain names resolve against "/" so addresses stay predictable
    return parse_index(INDEX, "/")


@pytest.fixture
def fake_fetch():
    return FakeFetch()


@pytest.fixture
def tile_dir(tmp_path):
    tiles = tmp_path / "tiles"
    tiles.mkdir()
    for name, stars in TILES.items():
        (tiles / f"{name}.json").write_text(json.dumps(stars), encoding="utf-8")
    index = [{"file": f"tiles/{e['address']}.json", "mag_max": e["mag_max"]} for e in INDEX]
    (tmp_path / "tile_index.json").write_text(json.dumps(index), encoding="utf-8")
    return tmp_path


@pytest.fixture
def instant():
    return Instant.from_datetime(datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def tokyo():
    return Observer(latitude_deg=35.68, longitude_deg=139.76, height_m=30.0)
