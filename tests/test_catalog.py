import asyncio
import json

import httpx
import pytest

from skydome.catalog import (
    TileLoader,
    load_index,
    parse_index,
    parse_star,
    parse_tile,
    resolve_address,
)
from skydome.errors import IndexLoadError, TileLoadError

from tests.helpers import BRIGHT, FAINT, MIDDLE, FakeFetch


def names(stars):
    return [s.name for s in stars]


class TestParseIndex:
    def test_keeps_order_and_resolves_relative_paths(self):
        index = parse_index(
            [{"address": "tiles/a.json", "mag_max": 2}, {"file": "tiles/b.json", "mag_max": 6}],
            "/data/tile_index.json",
        )
        assert [t.address for t in index.tiles] == ["/data/tiles/a.json", "/data/tiles/b.json"]
        assert [t.mag_max for t in index.tiles] == [2.0, 6.0]

    def test_resolves_against_url_base(self):
        assert (
            resolve_address("tiles/a.json", "https://cdn.example/sky/tile_index.json")
            == "https://cdn.example/sky/tiles/a.json"
        )

    @pytest.mark.parametrize(
        "payload",
        [
            {"address": "a", "mag_max": 2},
            [{"mag_max": 2}],
            [{"address": "a", "mag_max": "bright"}],
            [{"address": "a", "mag_max": float("nan")}],
            [{"address": "a", "mag_max": 2}, {"address": "a", "mag_max": 4}],
        ],
    )
    def test_malformed_index_raises(self, payload):
        with pytest.raises(IndexLoadError):
            parse_index(payload, "/index.json")

    def test_select_is_inclusive(self, index):
        assert [t.mag_max for t in index.select(4.0)] == [2.0, 4.0]
        assert index.select(1.9) == ()


class TestParseTile:
    def test_skips_malformed_records(self, caplog):
        payload = [
            BRIGHT[0],
            {"name": "no-dec", "ra_hours": 1.0, "mag": 2.0},
            {"name": "bad-mag", "ra_hours": 1.0, "dec_deg": 2.0, "mag": "x"},
            {"name": "bad-dec", "ra_hours": 1.0, "dec_deg": 120.0, "mag": 2.0},
            "not a record",
            BRIGHT[1],
        ]
        stars = parse_tile(payload, "t")
        assert names(stars) == ["Sirius", "Vega"]
        assert sum("malformed" in r.getMessage() for r in caplog.records) == 4

    def test_non_list_payload_is_a_tile_error(self):
        with pytest.raises(TileLoadError):
            parse_tile({"stars": []}, "t")

    def test_uses_precomputed_unit_vector(self):
        star = parse_star({"hip": 1, "ra_hours": 0.0, "dec_deg": 0.0, "mag": 5.0, "x": 0.0, "y": 0.0, "z": 1.0})
        assert star.name == "HIP 1"
        assert (star.vector.x, star.vector.y, star.vector.z) == (0.0, 0.0, 1.0)

    def test_ignores_non_unit_precomputed_vector(self):
        star = parse_star({"ra_hours": 0.0, "dec_deg": 0.0, "mag": 5.0, "x": 2.0, "y": 0.0, "z": 0.0})
        assert star.vector.x == pytest.approx(1.0)


class TestTileLoader:
    @pytest.mark.asyncio
    async def test_concatenates_selected_tiles_in_index_order(self, index, fake_fetch):
        loader = TileLoader(index, fetch=fake_fetch)
        stars = await loader.load_for_magnitude_limit(4.0)
        assert names(stars) == names(parse_tile(BRIGHT + MIDDLE, "x"))
        assert sorted(fake_fetch.calls) == ["/t2", "/t4"]

    @pytest.mark.asyncio
    async def test_limit_below_every_tile_is_empty(self, index, fake_fetch):
        loader = TileLoader(index, fetch=fake_fetch)
        assert await loader.load_for_magnitude_limit(1.0) == ()
        assert await loader.load_for_magnitude_limit(float("nan")) == ()
        assert fake_fetch.calls == []

    @pytest.mark.asyncio
    async def test_monotonic_inclusion_and_exactly_once(self, index, fake_fetch):
        loader = TileLoader(index, fetch=fake_fetch)
        previous: set[str] = set()
        for limit in (2.0, 3.0, 4.0, 5.5, 6.0, 9.0):
            stars = await loader.load_for_magnitude_limit(limit)
            got = names(stars)
            assert len(got) == len(set(got))
            assert previous <= set(got)
            previous = set(got)
        assert previous == set(names(parse_tile(BRIGHT + MIDDLE + FAINT, "x")))

    @pytest.mark.asyncio
    async def test_cached_tiles_are_not_refetched(self, index, fake_fetch):
        loader = TileLoader(index, fetch=fake_fetch)
        await loader.load_for_magnitude_limit(6.0)
        await loader.load_for_magnitude_limit(6.0)
        await loader.load_for_magnitude_limit(2.0)
        assert sorted(fake_fetch.calls) == ["/t2", "/t4", "/t6"]
        assert loader.cached_addresses == {"/t2", "/t4", "/t6"}

    @pytest.mark.asyncio
    async def test_single_flight_for_concurrent_requests(self, index, fake_fetch):
        loader = TileLoader(index, fetch=fake_fetch)
        gate = fake_fetch.block("/t4")

        first = asyncio.create_task(loader.load_for_magnitude_limit(4.0))
        second = asyncio.create_task(loader.load_for_magnitude_limit(6.0))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        gate.set()
        a, b = await asyncio.gather(first, second)

        assert fake_fetch.calls.count("/t4") == 1
        assert fake_fetch.calls.count("/t2") == 1
        assert set(names(a)) < set(names(b))

    @pytest.mark.asyncio
    async def test_failed_tile_is_not_cached_and_retry_fetches_only_missing(self, index, fake_fetch):
        loader = TileLoader(index, fetch=fake_fetch)
        fake_fetch.failures["/t6"] = httpx.ConnectError("offline")

        with pytest.raises(TileLoadError) as excinfo:
            await loader.load_for_magnitude_limit(6.0)
        assert excinfo.value.address == "/t6"
        assert loader.cached_addresses == {"/t2", "/t4"}

        stars = await loader.load_for_magnitude_limit(6.0)
        assert len(stars) == 7
        assert fake_fetch.calls.count("/t2") == 1
        assert fake_fetch.calls.count("/t6") == 2

    @pytest.mark.asyncio
    async def test_duplicate_star_across_tiles_is_kept_once(self, caplog):
        fetch = FakeFetch({"t2": BRIGHT, "t4": MIDDLE + [BRIGHT[0]], "t6": FAINT})
        loader = TileLoader(parse_index([{"address": "t2", "mag_max": 2}, {"address": "t4", "mag_max": 4}], "/"), fetch=fetch)
        stars = await loader.load_for_magnitude_limit(4.0)
        assert names(stars).count("Sirius") == 1
        assert any("appears in both" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_same_name_within_one_tile_is_kept(self, caplog):
        tile = [
            {"name": "HD", "ra_hours": 1.0, "dec_deg": 10.0, "mag": 5.0},
            {"name": "HD", "ra_hours": 3.0, "dec_deg": -20.0, "mag": 5.5},
        ]
        loader = TileLoader(parse_index([{"address": "t", "mag_max": 6}], "/"), fetch=FakeFetch({"t": tile}))
        stars = await loader.load_for_magnitude_limit(6.0)
        assert [(s.ra_hours, s.dec_deg) for s in stars] == [(1.0, 10.0), (3.0, -20.0)]
        assert not any("appears in both" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_duplicates_are_keyed_on_catalog_id(self):
        bright = [{"hip": 32349, "name": "Sirius", "ra_hours": 6.7525, "dec_deg": -16.7161, "mag": -1.46}]
        middle = [
            # Same HIP number, different name and rounding: one star
            {"hip": 32349, "name": "alf CMa", "ra_hours": 6.75, "dec_deg": -16.72, "mag": -1.46},
            # Same name, different HIP number: two stars
            {"hip": 12345, "name": "Sirius", "ra_hours": 1.0, "dec_deg": 1.0, "mag": 3.0},
        ]
        fetch = FakeFetch({"t2": bright, "t4": middle})
        loader = TileLoader(parse_index([{"address": "t2", "mag_max": 2}, {"address": "t4", "mag_max": 4}], "/"), fetch=fetch)
        stars = await loader.load_for_magnitude_limit(4.0)
        assert [s.catalog_id for s in stars] == ["HIP 32349", "HIP 12345"]
        assert names(stars) == ["Sirius", "Sirius"]

    @pytest.mark.asyncio
    async def test_loads_from_files(self, tile_dir):
        index = await load_index(str(tile_dir / "tile_index.json"))
        async with TileLoader(index) as loader:
            stars = await loader.load_for_magnitude_limit(6.0)
        assert len(stars) == 7

    @pytest.mark.asyncio
    async def test_missing_file_is_a_tile_error(self, tmp_path):
        index = parse_index([{"address": "gone.json", "mag_max": 6}], str(tmp_path / "i.json"))
        with pytest.raises(TileLoadError):
            await TileLoader(index).load_for_magnitude_limit(6.0)

    @pytest.mark.asyncio
    async def test_loads_over_http(self):
        hits: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            hits.append(request.url.path)
            if request.url.path == "/sky/tile_index.json":
                return httpx.Response(200, json=[{"address": "t6.json", "mag_max": 6}])
            if request.url.path == "/sky/t6.json":
                return httpx.Response(200, content=json.dumps(FAINT))
            return httpx.Response(404)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            index = await load_index("https://cdn.example/sky/tile_index.json", client=client)
            loader = TileLoader(index, client=client)
            stars = await loader.load_for_magnitude_limit(6.0)
            await loader.load_for_magnitude_limit(6.0)

        assert names(stars) == ["Yildun", "Sigma Octantis"]
        assert hits == ["/sky/tile_index.json", "/sky/t6.json"]

    @pytest.mark.asyncio
    async def test_http_error_status_is_a_tile_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as client:
            index = parse_index([{"address": "https://cdn.example/t6.json", "mag_max": 6}], "/")
            with pytest.raises(TileLoadError):
                await TileLoader(index, client=client).load_for_magnitude_limit(6.0)


@pytest.mark.asyncio
async def test_unreachable_index_is_an_index_error(tmp_path):
    with pytest.raises(IndexLoadError):
        await load_index(str(tmp_path / "missing.json"))


@pytest.mark.asyncio
async def test_index_with_bad_json_is_an_index_error(tmp_path):
    path = tmp_path / "tile_index.json"
    path.write_text("[{", encoding="utf-8")
    with pytest.raises(IndexLoadError):
        await load_index(str(path))
