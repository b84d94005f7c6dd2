"""Data model definitions — explicit boundaries between catalog, transform, and render layers."""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from datetime import datetime, timezone

from skydome.errors import TransformInputError
from skydome.vectors import FixedEpochVector, radec_to_vector


@dataclass(frozen=True)
class Star:
    """A catalog entry. The ICRS direction is computed once, at load time."""

    ra_hours: float  # Right ascension (hours, J2000)
    dec_deg: float  # Declination (degrees, J2000)
    magnitude: float  # Apparent magnitude (lower = brighter)
    name: str | None = None  # Proper name, else catalog id
    catalog_id: str | None = field(default=None, compare=False)  # "HIP 32349" or the record id
    vector: FixedEpochVector = field(default=None, compare=False, repr=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.vector is None:
            object.__setattr__(
                self, "vector", radec_to_vector(self.ra_hours, self.dec_deg)
            )


def _is_finite_real(value: object) -> bool:
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


@dataclass(frozen=True)
class TileDescriptor:
    """One catalog shard, complete for every star up to mag_max."""

    address: str  # URL or resolved file path
    mag_max: float  # Completeness limit


@dataclass(frozen=True)
class CatalogIndex:
    tiles: tuple[TileDescriptor, ...]  # Index order is preserved

    def select(self, limit: float) -> tuple[TileDescriptor, ...]:
        """Descriptors needed for a limiting magnitude, in index order."""
        return tuple(t for t in self.tiles if t.mag_max <= limit)


@dataclass(frozen=True)
class Observer:
    latitude_deg: float  # Geodetic latitude (decimal degrees, north positive)
    longitude_deg: float  # Longitude (decimal degrees, east positive)
    height_m: float = 0.0  # Height above the WGS84 ellipsoid; negative allowed

    def validate(self) -> None:
        """Raise TransformInputError unless the observer can anchor a rotation."""
        for label, value in (
            ("latitude", self.latitude_deg),
            ("longitude", self.longitude_deg),
            ("height", self.height_m),
        ):
            if not _is_finite_real(value):
                raise TransformInputError(f"observer {label} must be finite, got {value!r}")
        if not -90.0 <= float(self.latitude_deg) <= 90.0:
            raise TransformInputError(
                f"observer latitude must be within [-90, 90], got {self.latitude_deg}"
            )


@dataclass(frozen=True)
class Instant:
    """A UTC point in time with microsecond resolution."""

    utc: datetime  # tz-aware, UTC

    @classmethod
    def from_datetime(cls, dt: datetime) -> Instant:
        if not isinstance(dt, datetime):
            raise TransformInputError(f"instant must be a datetime, got {type(dt).__name__}")
        if dt.tzinfo is None or dt.utcoffset() is None:
            raise TransformInputError(f"instant must be timezone-aware, got naive {dt}")
        return cls(utc=dt.astimezone(timezone.utc))

    @classmethod
    def from_epoch_ms(cls, ms: float) -> Instant:
        if not _is_finite_real(ms):
            raise TransformInputError(f"epoch milliseconds must be finite, got {ms!r}")
        try:
            return cls(utc=datetime.fromtimestamp(float(ms) / 1000.0, tz=timezone.utc))
        except (OverflowError, OSError, ValueError) as exc:
            raise TransformInputError(f"epoch milliseconds out of range: {ms}") from exc

    @classmethod
    def now(cls) -> Instant:
        return cls(utc=datetime.now(timezone.utc))

    def validate(self) -> None:
        if not isinstance(self.utc, datetime) or self.utc.utcoffset() is None:
            raise TransformInputError(f"instant must be a timezone-aware datetime, got {self.utc!r}")

    @property
    def epoch_ms(self) -> float:
        return self.utc.timestamp() * 1000.0


@dataclass(frozen=True)
class HorizontalDirection:
    """A direction in the observer's local frame (x=N, y=E, z=zenith)."""

    vector: tuple[float, float, float]  # Rotated unit vector
    azimuth_deg: float  # [0, 360), clockwise from north
    altitude_deg: float  # [-90, 90], 0 = horizon


@dataclass(frozen=True)
class ProjectedPoint:
    """Render-ready coordinate. Ephemeral: rebuilt on every draw."""

    position: tuple[float, ...]  # (x, y) on the disc or (x, y, z) on the sphere
    display_size: float  # Radius in renderer units, always > 0
    magnitude: float
    label: str | None = None  # Set for bright stars and solar-system bodies


@dataclass(frozen=True)
class Constellation:
    name: str  # Display name ("Orion", "Ursa Major", ...)
    stars: tuple[Star, ...]  # Vertices, addressed by index
    lines: tuple[tuple[int, int], ...]  # Edges as vertex index pairs

    def __post_init__(self) -> None:
        n = len(self.stars)
        for a, b in self.lines:
            if not (0 <= a < n and 0 <= b < n):
                raise ValueError(
                    f"constellation {self.name!r}: edge ({a}, {b}) outside 0..{n - 1}"
                )


@dataclass(frozen=True)
class ConstellationView:
    """What a renderer needs to draw one constellation for one draw cycle."""

    name: str
    segments: tuple[tuple[tuple[float, ...], tuple[float, ...]], ...]
    label_anchor: tuple[float, ...] | None  # None when no vertex is visible


@dataclass(frozen=True)
class Viewport:
    """A disc on the drawing surface: centre (cx, cy) and horizon radius."""

    cx: float
    cy: float
    radius: float

    @classmethod
    def square(cls, width: float, margin: float = 0.45) -> Viewport:
        """Disc centred in a width × width canvas with radius margin × width."""
        return cls(cx=width / 2, cy=width / 2, radius=width * margin)


@dataclass(frozen=True)
class DrawRequest:
    instant: Instant
    observer: Observer
    magnitude_limit: float
    viewport: Viewport | None = None  # None selects 3D sphere output


@dataclass(frozen=True)
class SkyFrame:
    """The sole input to renderers. Fully computed state of one draw cycle."""

    request: DrawRequest
    stars: tuple[ProjectedPoint, ...]  # Visible stars only
    constellations: tuple[ConstellationView, ...]
    bodies: tuple[ProjectedPoint, ...]  # Visible Sun, Moon and planets
    loaded_star_count: int  # Stars considered before the horizon filter

    @property
    def visible_constellation_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.constellations if c.segments)
