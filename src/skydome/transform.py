"""Equatorial → horizontal transform and the horizon visibility filter.

The rotation primitive is skyfield's ``GeographicPosition.rotation_at``,
which maps GCRS vectors (ICRS axes, i.e. the J2000 catalog frame) into the
observer's alt-az frame with x = north, y = east, z = zenith. Building it
involves the sidereal/orientation computation for the instant, so it is
done once per draw cycle and then applied to every star.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

import numpy as np
from skyfield.api import load, wgs84
from skyfield.timelib import Timescale

from skydome.errors import FrameMismatchError, TransformInputError
from skydome.models import HorizontalDirection, Instant, Observer
from skydome.vectors import EquatorialVector, Frame, horizontal_angles

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def default_timescale() -> Timescale:
    """Skyfield timescale from the bundled ΔT/leap-second tables (no download)."""
    return load.timescale(builtin=True)


@dataclass(frozen=True, eq=False)
class Rotation:
    """Equatorial → horizontal rotation for one (instant, observer) pair."""

    matrix: np.ndarray  # 3×3, orthonormal, read-only
    instant: Instant
    observer: Observer
    frame: Frame  # The only input frame this rotation accepts

    def apply(self, vector: EquatorialVector) -> HorizontalDirection:
        """Rotate one equatorial unit vector into the horizontal frame.

        Raises:
            FrameMismatchError: If the vector is tagged with another frame.
        """
        if vector.frame is not self.frame:
            raise FrameMismatchError(
                f"rotation expects {self.frame.value} vectors, got {vector.frame.value}"
            )
        v = self.matrix @ vector.as_array()
        az, alt = horizontal_angles(v)
        return HorizontalDirection(
            vector=(float(v[0]), float(v[1]), float(v[2])),
            azimuth_deg=float(az),
            altitude_deg=float(alt),
        )

    def apply_many(
        self, vectors: np.ndarray, frame: Frame
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Rotate an (N, 3) array of unit vectors expressed in ``frame``.

        Returns:
            (rotated (N, 3) vectors, azimuth_deg (N,), altitude_deg (N,)).
        """
        if frame is not self.frame:
            raise FrameMismatchError(
                f"rotation expects {self.frame.value} vectors, got {frame.value}"
            )
        arr = np.asarray(vectors, dtype=float).reshape(-1, 3)
        rotated = arr @ self.matrix.T
        az, alt = horizontal_angles(rotated)
        return rotated, az, alt

    def is_equivalent(self, other: Rotation, atol: float = 1e-12) -> bool:
        return self.frame is other.frame and bool(
            np.allclose(self.matrix, other.matrix, rtol=0.0, atol=atol)
        )


def build_rotation(
    instant: Instant,
    observer: Observer,
    frame: Frame = Frame.ICRS,
    timescale: Timescale | None = None,
) -> Rotation:
    """Build the equatorial → horizontal rotation for an instant and observer.

    Pure in (instant, observer, frame): equal inputs give numerically equal
    matrices.

    Args:
        instant: Observation time.
        observer: Geodetic position (WGS84).
        frame: Equatorial frame of the vectors the rotation will be applied
            to. ``Frame.ICRS`` matches the catalog; ``Frame.OF_DATE`` composes
            the precession-nutation matrix of the instant.
        timescale: Skyfield timescale; the builtin one by default.

    Returns:
        A Rotation bound to (instant, observer, frame).

    Raises:
        TransformInputError: If the instant or observer is malformed.
    """
    instant.validate()
    observer.validate()

    ts = timescale or default_timescale()
    try:
        t = ts.from_datetime(instant.utc)
    except (ValueError, OverflowError) as exc:
        raise TransformInputError(f"instant outside the timescale: {instant.utc}") from exc

    topos = wgs84.latlon(
        latitude_degrees=float(observer.latitude_deg),
        longitude_degrees=float(observer.longitude_deg),
        elevation_m=float(observer.height_m),
    )
    matrix = np.array(topos.rotation_at(t), dtype=float)
    if frame is Frame.OF_DATE:
        # t.M maps GCRS to the true equator of date; its transpose undoes it
        matrix = matrix @ np.array(t.M, dtype=float).T
    matrix.setflags(write=False)

    logger.debug(
        "rotation built for %s at lat=%.4f lon=%.4f (%s)",
        instant.utc.isoformat(),
        float(observer.latitude_deg),
        float(observer.longitude_deg),
        frame.value,
    )
    return Rotation(matrix=matrix, instant=instant, observer=observer, frame=frame)


def is_visible(direction: HorizontalDirection) -> bool:
    """Above the horizon: altitude strictly greater than zero."""
    return direction.altitude_deg > 0.0


def visible_mask(altitude_deg: np.ndarray) -> np.ndarray:
    """Vectorized is_visible over an altitude array."""
    return np.asarray(altitude_deg, dtype=float) > 0.0
