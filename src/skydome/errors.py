"""Exception taxonomy shared by the loading, transform and input layers."""


class SkyDomeError(Exception):
    """Base class for every error raised by skydome."""


class LoadError(SkyDomeError):
    """Catalog data could not be fetched or parsed."""


class IndexLoadError(LoadError):
    """Catalog index unreachable or malformed."""


class TileLoadError(LoadError):
    """A single tile fetch or parse failed."""

    def __init__(self, address: str, reason: str):
        super().__init__(f"tile {address!r}: {reason}")
        self.address = address


class TransformInputError(SkyDomeError, ValueError):
    """Instant or Observer unusable for building a rotation."""


class FrameMismatchError(TransformInputError):
    """A vector was applied to a rotation built for a different frame."""


class TimeInputError(SkyDomeError, ValueError):
    """Local time string could not be resolved to UTC."""
