"""Draw-cycle composition: tiles → rotation → horizon filter → projection."""

from __future__ import annotations

import asyncio
import logging

import numpy as np
from skyfield.jpllib import SpiceKernel
from skyfield.timelib import Timescale

from skydome.bodies import load_ephemeris, solar_system_points
from skydome.catalog import Fetch, TileLoader, load_index
from skydome.config import Settings, load_settings
from skydome.constellations import load_constellations, resolve_visible
from skydome.models import Constellation, DrawRequest, ProjectedPoint, SkyFrame, Star
from skydome.projection import SizePolicy, linear_size, project_disc_many
from skydome.transform import Rotation, build_rotation, visible_mask
from skydome.vectors import Frame

logger = logging.getLogger(__name__)

# Stars at least this bright carry their name as a label
DEFAULT_LABEL_MAGNITUDE = 2.5


def project_stars(
    stars: tuple[Star, ...],
    rotation: Rotation,
    request: DrawRequest,
    size_policy: SizePolicy = linear_size,
    label_magnitude: float = DEFAULT_LABEL_MAGNITUDE,
) -> tuple[ProjectedPoint, ...]:
    """Rotate, filter and project a batch of catalog stars."""
    if not stars:
        return ()
    vectors = np.array([(s.vector.x, s.vector.y, s.vector.z) for s in stars])
    rotated, az, alt = rotation.apply_many(vectors, Frame.ICRS)
    mask = visible_mask(alt)
    if request.viewport is None:
        positions = rotated[mask]
    else:
        positions = project_disc_many(az[mask], alt[mask], request.viewport)

    visible = [s for s, keep in zip(stars, mask) if keep]
    return tuple(
        ProjectedPoint(
            position=tuple(float(c) for c in pos),
            display_size=size_policy(star.magnitude),
            magnitude=star.magnitude,
            label=star.name if star.magnitude <= label_magnitude else None,
        )
        for star, pos in zip(visible, positions)
    )


class SkyPipeline:
    """Runs draw cycles against one tile loader.

    Draw requests may overlap while tiles load. Each request gets a
    generation number; a request that finishes after a newer one has already
    been published returns None and leaves ``latest`` alone, so a stale sky
    never replaces a fresher one.
    """

    def __init__(
        self,
        loader: TileLoader,
        constellations: tuple[Constellation, ...] = (),
        size_policy: SizePolicy = linear_size,
        ephemeris: SpiceKernel | None = None,
        label_magnitude: float = DEFAULT_LABEL_MAGNITUDE,
        timescale: Timescale | None = None,
    ):
        self._loader = loader
        self._constellations = constellations
        self._size_policy = size_policy
        self._ephemeris = ephemeris
        self._label_magnitude = label_magnitude
        self._timescale = timescale
        self._issued = 0
        self._published = 0
        self.latest: SkyFrame | None = None

    async def draw(self, request: DrawRequest) -> SkyFrame | None:
        """Compute one frame.

        Returns:
            The new SkyFrame, or None if a newer request completed first.

        Raises:
            TransformInputError: Malformed instant or observer (before any fetch).
            TileLoadError: A selected tile failed; ``latest`` is unchanged.
        """
        self._issued += 1
        generation = self._issued

        rotation = build_rotation(request.instant, request.observer, timescale=self._timescale)
        stars = await self._loader.load_for_magnitude_limit(request.magnitude_limit)

        if generation < self._published:
            logger.info("draw %d superseded by %d; discarding", generation, self._published)
            return None

        points = project_stars(
            stars, rotation, request, self._size_policy, self._label_magnitude
        )
        views = tuple(
            resolve_visible(c, rotation, request.viewport) for c in self._constellations
        )
        bodies: tuple[ProjectedPoint, ...] = ()
        if self._ephemeris is not None:
            bodies = solar_system_points(
                rotation,
                self._ephemeris,
                request.viewport,
                self._size_policy,
                self._timescale,
            )

        frame = SkyFrame(
            request=request,
            stars=points,
            constellations=views,
            bodies=bodies,
            loaded_star_count=len(stars),
        )
        self._published = generation
        self.latest = frame
        logger.info(
            "draw %d: %d/%d stars visible, %d constellations drawn",
            generation,
            len(points),
            len(stars),
            len(frame.visible_constellation_names),
        )
        return frame


class SkySession:
    """Resources that live as long as one viewing session.

    The catalog index and constellation figures are loaded on the first
    draw, the ephemeris on the first draw that asks for bodies, and the tile
    cache keeps filling across draws, so a tile is fetched once per session.
    Each synchronous draw runs its own event loop; the loader's HTTP client
    is closed when a draw ends and reopened by the next one that needs it.
    """

    def __init__(self, settings: Settings | None = None, fetch: Fetch | None = None):
        self.settings = settings or load_settings()
        self._fetch = fetch
        self._loader: TileLoader | None = None
        self._constellations: tuple[Constellation, ...] = ()
        self._ephemeris: SpiceKernel | None = None

    @property
    def loader(self) -> TileLoader | None:
        return self._loader

    async def _ensure_loaded(self) -> TileLoader:
        if self._loader is None:
            settings = self.settings
            index = await load_index(settings.catalog_index, timeout=settings.fetch_timeout)
            self._constellations = await load_constellations(
                settings.constellations, timeout=settings.fetch_timeout
            )
            self._loader = TileLoader(index, fetch=self._fetch, timeout=settings.fetch_timeout)
        return self._loader

    def _ensure_ephemeris(self) -> SpiceKernel:
        if self._ephemeris is None:
            self._ephemeris = load_ephemeris(self.settings.ephemeris_dir)
        return self._ephemeris

    async def draw_async(
        self,
        request: DrawRequest,
        with_bodies: bool = True,
        size_policy: SizePolicy = linear_size,
    ) -> SkyFrame:
        """Compute one frame, reusing everything already loaded in this session.

        Raises:
            IndexLoadError: The catalog index could not be loaded.
            TransformInputError: Malformed instant or observer.
            TileLoadError: A selected tile failed; it is retried on the next draw.
        """
        loader = await self._ensure_loaded()
        pipeline = SkyPipeline(
            loader,
            constellations=self._constellations,
            size_policy=size_policy,
            ephemeris=self._ensure_ephemeris() if with_bodies else None,
        )
        try:
            frame = await pipeline.draw(request)
        finally:
            await loader.aclose()
        assert frame is not None
        return frame

    def draw(
        self,
        request: DrawRequest,
        with_bodies: bool = True,
        size_policy: SizePolicy = linear_size,
    ) -> SkyFrame:
        return asyncio.run(self.draw_async(request, with_bodies, size_policy))


async def compute_sky_frame_async(
    request: DrawRequest,
    settings: Settings | None = None,
    with_bodies: bool = True,
    size_policy: SizePolicy = linear_size,
    session: SkySession | None = None,
) -> SkyFrame:
    """Draw from configured resources. Pass a session to reuse its caches."""
    session = session or SkySession(settings)
    return await session.draw_async(request, with_bodies, size_policy)


def compute_sky_frame(
    request: DrawRequest,
    settings: Settings | None = None,
    with_bodies: bool = True,
    size_policy: SizePolicy = linear_size,
    session: SkySession | None = None,
) -> SkyFrame:
    """Synchronous entry point for the CLI and the Streamlit app."""
    return asyncio.run(
        compute_sky_frame_async(request, settings, with_bodies, size_policy, session)
    )
