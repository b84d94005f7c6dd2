"""Runtime settings read from the environment (optionally via a .env file)."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

_ROOT = Path(__file__).parent.parent.parent
_RESOURCES = _ROOT / "resources"


@dataclass(frozen=True)
class Settings:
    catalog_index: str  # Path or URL of tile_index.json
    constellations: str  # Path or URL of constellations.json
    ephemeris_dir: Path  # Directory where skyfield keeps de421.bsp
    magnitude_limit: float  # Default limiting magnitude
    fetch_timeout: float  # httpx timeout in seconds
    log_level: str  # logging level name


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings(dotenv: bool = True) -> Settings:
    """Build Settings from SKYDOME_* environment variables.

    Args:
        dotenv: Load a .env file first (existing variables win).

    Returns:
        Settings with defaults pointing at the bundled resources/ directory.

    Raises:
        ValueError: When a numeric variable does not parse.
    """
    if dotenv:
        load_dotenv(find_dotenv(usecwd=True))

    return Settings(
        catalog_index=os.environ.get(
            "SKYDOME_CATALOG_INDEX", str(_RESOURCES / "tile_index.json")
        ),
        constellations=os.environ.get(
            "SKYDOME_CONSTELLATIONS", str(_RESOURCES / "constellations.json")
        ),
        ephemeris_dir=Path(os.environ.get("SKYDOME_EPHEMERIS_DIR", str(_RESOURCES))),
        magnitude_limit=_env_float("SKYDOME_MAG_LIMIT", 6.0),
        fetch_timeout=_env_float("SKYDOME_FETCH_TIMEOUT", 10.0),
        log_level=os.environ.get("SKYDOME_LOG_LEVEL", "INFO").upper(),
    )
