"""Frame-tagged unit vectors and spherical conversions.

Catalog directions are only meaningful together with the equatorial frame
they were expressed in. ``FixedEpochVector`` is the ICRS/J2000 frame used by
the star catalog and by skyfield's GCRS rotation; ``FrameOfDateVector`` is
the true equator and equinox of a given date. A Rotation accepts exactly one
of them, so mixing the two fails loudly instead of shifting every altitude.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import ClassVar

import numpy as np


class Frame(enum.Enum):
    ICRS = "icrs"  # fixed epoch (J2000 mean equator, GCRS axes)
    OF_DATE = "of_date"  # true equator and equinox of the observation date


@dataclass(frozen=True)
class EquatorialVector:
    """Unit direction in an equatorial frame. Use the frame subclasses."""

    frame: ClassVar[Frame]

    x: float
    y: float
    z: float

    def as_array(self) -> np.ndarray:
        return np.array((self.x, self.y, self.z), dtype=float)


@dataclass(frozen=True)
class FixedEpochVector(EquatorialVector):
    frame: ClassVar[Frame] = Frame.ICRS


@dataclass(frozen=True)
class FrameOfDateVector(EquatorialVector):
    frame: ClassVar[Frame] = Frame.OF_DATE


_VECTOR_TYPES: dict[Frame, type[EquatorialVector]] = {
    Frame.ICRS: FixedEpochVector,
    Frame.OF_DATE: FrameOfDateVector,
}


def vector_type(frame: Frame) -> type[EquatorialVector]:
    return _VECTOR_TYPES[frame]


def radec_to_vector(
    ra_hours: float, dec_deg: float, frame: Frame = Frame.ICRS
) -> EquatorialVector:
    """Convert right ascension (hours) and declination (degrees) to a unit vector.

    Declination is the latitude-like angle, right ascension the
    longitude-like one (RA hours × 15 → degrees).

    Args:
        ra_hours: Right ascension in hours.
        dec_deg: Declination in degrees.
        frame: Equatorial frame the coordinates are expressed in.

    Returns:
        Unit vector tagged with ``frame``.
    """
    ra = math.radians(ra_hours * 15.0)
    dec = math.radians(dec_deg)
    cos_dec = math.cos(dec)
    return vector_type(frame)(
        cos_dec * math.cos(ra), cos_dec * math.sin(ra), math.sin(dec)
    )


def radec_to_array(ra_hours: np.ndarray, dec_deg: np.ndarray) -> np.ndarray:
    """Vectorized radec_to_vector. Returns an (N, 3) array of unit vectors."""
    ra = np.radians(np.asarray(ra_hours, dtype=float) * 15.0)
    dec = np.radians(np.asarray(dec_deg, dtype=float))
    cos_dec = np.cos(dec)
    return np.column_stack((cos_dec * np.cos(ra), cos_dec * np.sin(ra), np.sin(dec)))


def normalize(xyz: tuple[float, float, float] | np.ndarray) -> np.ndarray:
    """Scale a non-zero vector to unit length."""
    v = np.asarray(xyz, dtype=float)
    norm = float(np.linalg.norm(v))
    if norm == 0.0 or not math.isfinite(norm):
        raise ValueError(f"cannot normalize vector {tuple(v)}")
    return v / norm


def horizontal_angles(xyz: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Azimuth and altitude in degrees for horizontal-frame unit vectors.

    The horizontal frame is x = north, y = east, z = zenith, so azimuth
    runs clockwise from north when seen from above.

    Args:
        xyz: (3,) or (N, 3) array.

    Returns:
        (azimuth_deg in [0, 360), altitude_deg in [-90, 90]).
    """
    v = np.asarray(xyz, dtype=float)
    x, y, z = v[..., 0], v[..., 1], v[..., 2]
    az = np.degrees(np.arctan2(y, x)) % 360.0
    # -0.0 % 360 and tiny negatives can round up to exactly 360
    az = np.where(az >= 360.0, 0.0, az)
    # atan2 stays accurate at the zenith where arcsin loses half the digits
    alt = np.degrees(np.arctan2(z, np.hypot(x, y)))
    return az, alt
