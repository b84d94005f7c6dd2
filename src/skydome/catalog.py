"""Tiled star catalog: index parsing, tile parsing, and the single-flight tile cache."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable

import httpx

from skydome.errors import IndexLoadError, TileLoadError
from skydome.models import CatalogIndex, Star, TileDescriptor
from skydome.vectors import FixedEpochVector

logger = logging.getLogger(__name__)

Fetch = Callable[[str], Awaitable[Any]]

_UNIT_TOLERANCE = 1e-6


def is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def resolve_address(address: str, base: str) -> str:
    """Resolve a tile address relative to the location of the index that lists it."""
    if is_url(address):
        return address
    if is_url(base):
        return str(httpx.URL(base).join(address))
    path = Path(address)
    if path.is_absolute():
        return str(path)
    return str(Path(base).parent / path)


async def fetch_json(
    location: str, client: httpx.AsyncClient | None = None, timeout: float = 10.0
) -> Any:
    """Read and decode a JSON document from a URL or a local path.

    Raises:
        httpx.HTTPError: Network or HTTP status failure.
        OSError: Local file failure.
        ValueError: Body is not valid JSON.
    """
    if is_url(location):
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                resp = await own_client.get(location)
        else:
            resp = await client.get(location)
        resp.raise_for_status()
        return resp.json()
    text = await asyncio.to_thread(Path(location).read_text, encoding="utf-8")
    return json.loads(text)


def parse_index(payload: Any, base: str) -> CatalogIndex:
    """Parse a tile index: ``[{"address": str, "mag_max": number}, ...]``.

    ``file`` is accepted as an alias of ``address``.

    Raises:
        IndexLoadError: If the payload is not a list of well-formed descriptors.
    """
    if not isinstance(payload, list):
        raise IndexLoadError(f"{base}: tile index must be a JSON list")

    tiles: list[TileDescriptor] = []
    seen: set[str] = set()
    for i, entry in enumerate(payload):
        if not isinstance(entry, dict):
            raise IndexLoadError(f"{base}: entry {i} is not an object")
        address = entry.get("address", entry.get("file"))
        if not isinstance(address, str) or not address:
            raise IndexLoadError(f"{base}: entry {i} has no address")
        mag_max = entry.get("mag_max")
        if (
            isinstance(mag_max, bool)
            or not isinstance(mag_max, (int, float))
            or not math.isfinite(mag_max)
        ):
            raise IndexLoadError(f"{base}: entry {i} has invalid mag_max {mag_max!r}")
        resolved = resolve_address(address, base)
        if resolved in seen:
            raise IndexLoadError(f"{base}: tile {address!r} listed twice")
        seen.add(resolved)
        tiles.append(TileDescriptor(address=resolved, mag_max=float(mag_max)))

    return CatalogIndex(tiles=tuple(tiles))


async def load_index(
    location: str, client: httpx.AsyncClient | None = None, timeout: float = 10.0
) -> CatalogIndex:
    """Fetch and parse the catalog index. Fatal to startup on failure.

    Raises:
        IndexLoadError: Unreachable or malformed index.
    """
    try:
        payload = await fetch_json(location, client=client, timeout=timeout)
    except (httpx.HTTPError, OSError, ValueError) as exc:
        raise IndexLoadError(f"{location}: {exc}") from exc
    index = parse_index(payload, location)
    logger.info("catalog index %s: %d tiles", location, len(index.tiles))
    return index


def _number(record: dict, *keys: str) -> float | None:
    for key in keys:
        value = record.get(key)
        if value is None:
            continue
        if isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None
    return None


def _identity(record: dict) -> str | None:
    for key in ("name", "id"):
        value = record.get(key)
        if value not in (None, ""):
            return str(value)
    hip = record.get("hip")
    if hip not in (None, ""):
        return f"HIP {hip}"
    return None


def _catalog_id(record: dict) -> str | None:
    hip = record.get("hip")
    if hip not in (None, ""):
        return f"HIP {hip}"
    value = record.get("id")
    return None if value in (None, "") else str(value)


def _precomputed_vector(record: dict) -> FixedEpochVector | None:
    coords = [_number(record, axis) for axis in ("x", "y", "z")]
    if any(c is None for c in coords):
        return None
    x, y, z = coords  # type: ignore[misc]
    if abs(math.sqrt(x * x + y * y + z * z) - 1.0) > _UNIT_TOLERANCE:
        return None
    return FixedEpochVector(x, y, z)


def parse_star(record: Any) -> Star | None:
    """Build a Star from one catalog record, or None if a required field is bad."""
    if not isinstance(record, dict):
        return None
    ra_hours = _number(record, "ra_hours")
    dec_deg = _number(record, "dec_deg")
    magnitude = _number(record, "mag", "magnitude")
    if ra_hours is None or dec_deg is None or magnitude is None:
        return None
    if not -90.0 <= dec_deg <= 90.0:
        return None
    return Star(
        ra_hours=ra_hours % 24.0,
        dec_deg=dec_deg,
        magnitude=magnitude,
        name=_identity(record),
        catalog_id=_catalog_id(record),
        vector=_precomputed_vector(record),  # type: ignore[arg-type]
    )


def parse_tile(payload: Any, address: str) -> tuple[Star, ...]:
    """Parse a tile payload. Malformed star records are skipped with a warning.

    Raises:
        TileLoadError: If the payload is not a list.
    """
    if not isinstance(payload, list):
        raise TileLoadError(address, "payload must be a JSON list")
    stars: list[Star] = []
    for i, record in enumerate(payload):
        star = parse_star(record)
        if star is None:
            logger.warning("tile %s: skipping malformed star record %d: %r", address, i, record)
            continue
        stars.append(star)
    return tuple(stars)


def _dedupe(tiles: Iterable[tuple[TileDescriptor, tuple[Star, ...]]]) -> tuple[Star, ...]:
    # Only earlier tiles count as duplicates; stars within one tile are distinct
    combined: list[Star] = []
    seen: dict[object, str] = {}
    for descriptor, stars in tiles:
        added: dict[object, str] = {}
        for star in stars:
            key = star.catalog_id or (star.name, star.ra_hours, star.dec_deg)
            first = seen.get(key)
            if first is not None:
                logger.warning(
                    "star %s appears in both %s and %s; keeping the first",
                    star.catalog_id or star.name or key, first, descriptor.address,
                )
                continue
            added[key] = descriptor.address
            combined.append(star)
        seen.update(added)
    return tuple(combined)


class TileLoader:
    """Loads the tiles needed for a limiting magnitude and caches them for the session.

    At most one fetch per tile address is in flight at a time: concurrent
    callers share the pending task. Successful tiles are cached forever;
    failed fetches leave nothing behind, so a retry only refetches what is
    still missing.
    """

    def __init__(
        self,
        index: CatalogIndex,
        fetch: Fetch | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self._index = index
        self._fetch = fetch
        self._client = client
        self._owns_client = False
        self._timeout = timeout
        self._cache: dict[str, tuple[Star, ...]] = {}
        self._inflight: dict[str, asyncio.Task[tuple[Star, ...]]] = {}

    @property
    def index(self) -> CatalogIndex:
        return self._index

    @property
    def cached_addresses(self) -> frozenset[str]:
        return frozenset(self._cache)

    async def __aenter__(self) -> TileLoader:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def _fetch_payload(self, address: str) -> Any:
        if self._fetch is not None:
            return await self._fetch(address)
        if is_url(address) and self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return await fetch_json(address, client=self._client, timeout=self._timeout)

    async def _fill(self, descriptor: TileDescriptor) -> tuple[Star, ...]:
        address = descriptor.address
        try:
            payload = await self._fetch_payload(address)
        except TileLoadError:
            raise
        except (httpx.HTTPError, OSError, ValueError) as exc:
            raise TileLoadError(address, str(exc) or type(exc).__name__) from exc
        stars = parse_tile(payload, address)
        self._cache[address] = stars
        logger.info("tile %s cached: %d stars (mag <= %.1f)", address, len(stars), descriptor.mag_max)
        return stars

    def _on_fill_done(self, address: str, task: asyncio.Task) -> None:
        self._inflight.pop(address, None)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("tile %s failed: %s", address, task.exception())

    async def tile(self, descriptor: TileDescriptor) -> tuple[Star, ...]:
        """Stars of one tile, from the cache or a (shared) fetch."""
        cached = self._cache.get(descriptor.address)
        if cached is not None:
            return cached
        task = self._inflight.get(descriptor.address)
        if task is None:
            task = asyncio.ensure_future(self._fill(descriptor))
            self._inflight[descriptor.address] = task
            task.add_done_callback(
                lambda t, address=descriptor.address: self._on_fill_done(address, t)
            )
        # A cancelled caller must not cancel the fetch other callers share
        return await asyncio.shield(task)

    async def load_for_magnitude_limit(self, limit: float) -> tuple[Star, ...]:
        """Every catalog star with magnitude <= the highest selected tile limit.

        Selected tiles are fetched concurrently; the result is only built
        once all of them have completed.

        Args:
            limit: Limiting magnitude. Tiles with ``mag_max <= limit`` are used.

        Returns:
            Flat tuple of stars in index order, then file order within a tile.
            Empty when no tile qualifies.

        Raises:
            TileLoadError: If any selected tile fails to load.
        """
        selected = self._index.select(limit)
        if not selected:
            return ()
        results = await asyncio.gather(
            *(self.tile(d) for d in selected), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return _dedupe(zip(selected, results))  # type: ignore[arg-type]
