"""Projection of horizontal directions onto the display surface, and star sizing."""

from __future__ import annotations

import math
from typing import Callable

import numpy as np

from skydome.models import HorizontalDirection, Viewport

SizePolicy = Callable[[float], float]


def project_disc(direction: HorizontalDirection, viewport: Viewport) -> tuple[float, float]:
    """Map a direction onto the sky disc.

    Zenith-equidistant: altitude 90° is the centre, altitude 0° the rim,
    linear in between. North is up and azimuth grows clockwise, so east is
    to the right of the disc as drawn on a canvas (y grows downwards).
    """
    return project_disc_angles(direction.azimuth_deg, direction.altitude_deg, viewport)


def project_disc_angles(
    azimuth_deg: float, altitude_deg: float, viewport: Viewport
) -> tuple[float, float]:
    r = (90.0 - altitude_deg) / 90.0 * viewport.radius
    az = math.radians(azimuth_deg)
    return viewport.cx + r * math.sin(az), viewport.cy - r * math.cos(az)


def project_disc_many(
    azimuth_deg: np.ndarray, altitude_deg: np.ndarray, viewport: Viewport
) -> np.ndarray:
    """Vectorized project_disc. Returns an (N, 2) array."""
    r = (90.0 - np.asarray(altitude_deg, dtype=float)) / 90.0 * viewport.radius
    az = np.radians(np.asarray(azimuth_deg, dtype=float))
    return np.column_stack((viewport.cx + r * np.sin(az), viewport.cy - r * np.cos(az)))


def project_sphere(direction: HorizontalDirection) -> tuple[float, float, float]:
    """3D mode: the rotated unit vector is the render coordinate."""
    return direction.vector


# --- Size policies: magnitude -> display size ---


def clamped_linear(
    base: float, slope: float, floor: float, ceiling: float = math.inf
) -> SizePolicy:
    """Build ``size = clamp(base - slope * mag, floor, ceiling)``.

    Non-increasing in magnitude for slope >= 0, never below floor.
    """
    if slope < 0:
        raise ValueError("slope must be >= 0 so brighter stars are never smaller")
    if not floor > 0:
        raise ValueError("floor must be positive so no star vanishes")
    if ceiling < floor:
        raise ValueError("ceiling must be >= floor")

    def policy(magnitude: float) -> float:
        if math.isnan(magnitude):
            return floor
        return max(floor, min(ceiling, base - slope * magnitude))

    return policy


# Canvas sky disc: mag -2..+6 maps to radius 6..0.6 px
linear_size: SizePolicy = clamped_linear(base=6.0, slope=0.9, floor=0.6, ceiling=6.0)

# Point-cloud view: unbounded above, floor 0.6
point_cloud_size: SizePolicy = clamped_linear(base=5.5, slope=1.0, floor=0.6)
