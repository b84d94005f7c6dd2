"""Sun, Moon and planets, placed with a skyfield ephemeris."""

from __future__ import annotations

import logging
from pathlib import Path

from skyfield.api import Loader, wgs84
from skyfield.jpllib import SpiceKernel
from skyfield.timelib import Timescale

from skydome.models import ProjectedPoint, Viewport
from skydome.projection import SizePolicy, linear_size, project_disc, project_sphere
from skydome.transform import Rotation, default_timescale, is_visible
from skydome.vectors import FixedEpochVector, normalize

logger = logging.getLogger(__name__)

EPHEMERIS_FILE = "de421.bsp"

# (label, ephemeris key, typical apparent magnitude)
SOLAR_SYSTEM_BODIES: tuple[tuple[str, str, float], ...] = (
    ("Sun", "sun", -26.7),
    ("Moon", "moon", -12.7),
    ("Mercury", "mercury", 0.0),
    ("Venus", "venus", -4.2),
    ("Mars", "mars", 0.7),
    ("Jupiter", "jupiter barycenter", -2.2),
    ("Saturn", "saturn barycenter", 0.6),
    ("Uranus", "uranus barycenter", 5.7),
    ("Neptune", "neptune barycenter", 7.8),
)

# Sun and Moon would otherwise swamp every star on the chart
_SIZING_MAGNITUDE_FLOOR = -2.0


def load_ephemeris(directory: Path) -> SpiceKernel:
    """Open de421.bsp from ``directory``, downloading it on first use."""
    loader = Loader(str(directory))
    return loader(EPHEMERIS_FILE)


def solar_system_points(
    rotation: Rotation,
    ephemeris: SpiceKernel,
    viewport: Viewport | None = None,
    size_policy: SizePolicy = linear_size,
    timescale: Timescale | None = None,
) -> tuple[ProjectedPoint, ...]:
    """Project the Sun, Moon and planets that are above the horizon.

    Each body is observed from the topocentric observer of ``rotation``; the
    resulting direction is in GCRS axes, i.e. the same fixed-epoch frame as
    the catalog, so it goes through the very same rotation and filter.

    Args:
        rotation: Rotation of the current draw cycle (Frame.ICRS).
        ephemeris: Skyfield SPICE kernel with an "earth" segment.
        viewport: Disc to project onto; None yields 3D unit-sphere points.
        size_policy: Magnitude → display size.
        timescale: Skyfield timescale; the builtin one by default.

    Returns:
        Labelled points, brightest first as listed in SOLAR_SYSTEM_BODIES.
    """
    ts = timescale or default_timescale()
    t = ts.from_datetime(rotation.instant.utc)
    observer = rotation.observer
    ground = ephemeris["earth"] + wgs84.latlon(
        latitude_degrees=float(observer.latitude_deg),
        longitude_degrees=float(observer.longitude_deg),
        elevation_m=float(observer.height_m),
    )
    here = ground.at(t)

    points: list[ProjectedPoint] = []
    for label, key, magnitude in SOLAR_SYSTEM_BODIES:
        try:
            body = ephemeris[key]
        except KeyError:
            logger.warning("ephemeris has no %r; skipping %s", key, label)
            continue
        xyz = normalize(here.observe(body).apparent().position.au)
        direction = rotation.apply(FixedEpochVector(*(float(c) for c in xyz)))
        if not is_visible(direction):
            continue
        position = (
            project_sphere(direction) if viewport is None else project_disc(direction, viewport)
        )
        points.append(
            ProjectedPoint(
                position=position,
                display_size=size_policy(max(_SIZING_MAGNITUDE_FLOOR, magnitude)),
                magnitude=magnitude,
                label=label,
            )
        )
    return tuple(points)
