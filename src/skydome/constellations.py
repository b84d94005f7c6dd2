"""Constellation data loading and per-frame resolution of visible line art."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from skydome.catalog import fetch_json, parse_star
from skydome.errors import LoadError
from skydome.models import Constellation, ConstellationView, Star, Viewport
from skydome.projection import project_disc, project_sphere
from skydome.transform import Rotation, is_visible

logger = logging.getLogger(__name__)

# Vertex magnitude is optional in constellation data
_DEFAULT_VERTEX_MAG = 6.0


def _vertex_index(
    ref: Any, remap: dict[int, int], ids: dict[str, int], raw_ids: set[str]
) -> int | None:
    """Cleaned vertex index for an edge endpoint, or None if it is unknown.

    An integer that matches a vertex id (HIP numbers usually) resolves
    through the id; any other integer is a position in the raw vertex list.
    """
    if isinstance(ref, bool):
        return None
    if isinstance(ref, int):
        if str(ref) in raw_ids:
            return ids.get(str(ref))
        return remap.get(ref)
    if isinstance(ref, str):
        return ids.get(ref)
    return None


def parse_constellation(record: Any) -> Constellation | None:
    """Build one Constellation; bad vertices and edges are dropped with a warning.

    Edges reference vertices by list index, or by a vertex ``id`` (string
    or integer) when the vertices carry one. A vertex that fails to parse is
    kept out of the vertex list, so edges touching it are dropped too.
    """
    if not isinstance(record, dict) or not isinstance(record.get("name"), str):
        logger.warning("skipping constellation record without a name: %r", record)
        return None
    name = record["name"]

    raw_stars = record.get("stars") or []
    stars: list[Star] = []
    # Original positions -> positions in the cleaned vertex list
    remap: dict[int, int] = {}
    ids: dict[str, int] = {}
    raw_ids = {
        str(raw["id"]) for raw in raw_stars if isinstance(raw, dict) and raw.get("id") is not None
    }
    for i, raw in enumerate(raw_stars):
        if isinstance(raw, dict) and "mag" not in raw and "magnitude" not in raw:
            raw = {**raw, "mag": _DEFAULT_VERTEX_MAG}
        star = parse_star(raw)
        if star is None:
            logger.warning("%s: skipping malformed vertex %d: %r", name, i, raw)
            continue
        remap[i] = len(stars)
        if isinstance(raw, dict) and raw.get("id") is not None:
            ids[str(raw["id"])] = len(stars)
        stars.append(star)

    lines: list[tuple[int, int]] = []
    for edge in record.get("lines") or []:
        if not isinstance(edge, (list, tuple)) or len(edge) != 2:
            logger.warning("%s: skipping malformed edge %r", name, edge)
            continue
        a = _vertex_index(edge[0], remap, ids, raw_ids)
        b = _vertex_index(edge[1], remap, ids, raw_ids)
        if a is None or b is None:
            logger.warning("%s: skipping edge %r with unknown vertex", name, edge)
            continue
        lines.append((a, b))

    return Constellation(name=name, stars=tuple(stars), lines=tuple(lines))


def parse_constellations(payload: Any) -> tuple[Constellation, ...]:
    if not isinstance(payload, list):
        raise LoadError("constellation data must be a JSON list")
    parsed = (parse_constellation(record) for record in payload)
    return tuple(c for c in parsed if c is not None)


async def load_constellations(
    location: str, client: httpx.AsyncClient | None = None, timeout: float = 10.0
) -> tuple[Constellation, ...]:
    """Read constellation figures from a path or URL.

    Raises:
        LoadError: Unreachable or malformed document.
    """
    try:
        payload = await fetch_json(location, client=client, timeout=timeout)
    except (httpx.HTTPError, OSError, ValueError) as exc:
        raise LoadError(f"{location}: {exc}") from exc
    constellations = parse_constellations(payload)
    logger.info("loaded %d constellations from %s", len(constellations), location)
    return constellations


def resolve_visible(
    constellation: Constellation, rotation: Rotation, viewport: Viewport | None = None
) -> ConstellationView:
    """Project the visible part of a constellation for one draw cycle.

    Every vertex is rotated and filtered on its own. An edge is emitted only
    when both of its endpoints are above the horizon. The label anchor is the
    centroid of the visible vertices' projected coordinates, or None when no
    vertex is visible.

    Args:
        constellation: Figure to resolve.
        rotation: Rotation of the current draw cycle.
        viewport: Disc to project onto; None yields 3D unit-sphere points.

    Returns:
        ConstellationView with segments and optional label anchor.
    """
    projected: list[tuple[float, ...] | None] = []
    for star in constellation.stars:
        direction = rotation.apply(star.vector)
        if not is_visible(direction):
            projected.append(None)
        elif viewport is None:
            projected.append(project_sphere(direction))
        else:
            projected.append(project_disc(direction, viewport))

    segments = []
    for a, b in constellation.lines:
        pa, pb = projected[a], projected[b]
        if pa is not None and pb is not None:
            segments.append((pa, pb))

    visible = [p for p in projected if p is not None]
    anchor: tuple[float, ...] | None = None
    if visible:
        dims = len(visible[0])
        anchor = tuple(sum(p[k] for p in visible) / len(visible) for k in range(dims))

    return ConstellationView(
        name=constellation.name, segments=tuple(segments), label_anchor=anchor
    )
