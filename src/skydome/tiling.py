"""Build magnitude tiles and their index from the Hipparcos catalogue.

Tiles are disjoint magnitude bands: the tile for band ``b_i`` holds the
stars with ``b_{i-1} < mag <= b_i``. Loading every tile up to ``b_i``
therefore yields each star of magnitude <= ``b_i`` exactly once.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd
from skyfield.api import Loader
from skyfield.data import hipparcos

from skydome.config import load_settings
from skydome.vectors import radec_to_array

logger = logging.getLogger(__name__)

DEFAULT_BANDS: tuple[float, ...] = (2.0, 4.0, 6.0, 7.0, 8.0)


def band_masks(magnitudes: pd.Series, bands: Sequence[float]) -> list[pd.Series]:
    """Boolean masks selecting each band's stars. Bands must increase strictly."""
    if list(bands) != sorted(set(bands)):
        raise ValueError(f"bands must be strictly increasing, got {list(bands)}")
    masks = []
    lower = -np.inf
    for upper in bands:
        masks.append((magnitudes > lower) & (magnitudes <= upper))
        lower = upper
    return masks


def tile_records(df: pd.DataFrame) -> list[dict]:
    """Tile payload for a Hipparcos dataframe slice, vectors precomputed."""
    xyz = radec_to_array(df["ra_hours"].to_numpy(), df["dec_degrees"].to_numpy())
    records = []
    for (hip, row), (x, y, z) in zip(df.iterrows(), xyz):
        records.append(
            {
                "hip": int(hip),
                "ra_hours": round(float(row["ra_hours"]), 8),
                "dec_deg": round(float(row["dec_degrees"]), 8),
                "mag": round(float(row["magnitude"]), 2),
                "x": round(float(x), 9),
                "y": round(float(y), 9),
                "z": round(float(z), 9),
            }
        )
    return records


def build_tiles(
    df: pd.DataFrame, bands: Sequence[float], out_dir: Path
) -> list[dict]:
    """Write one JSON tile per band plus ``tile_index.json`` into ``out_dir``.

    Args:
        df: Hipparcos dataframe (``ra_hours``, ``dec_degrees``, ``magnitude``),
            indexed by HIP number.
        bands: Strictly increasing magnitude limits.
        out_dir: Destination; tiles land in ``out_dir/tiles``.

    Returns:
        The index entries that were written.
    """
    df = df.dropna(subset=["ra_hours", "dec_degrees", "magnitude"])
    tiles_dir = out_dir / "tiles"
    tiles_dir.mkdir(parents=True, exist_ok=True)

    index: list[dict] = []
    for upper, mask in zip(bands, band_masks(df["magnitude"], bands)):
        name = f"mag{upper:g}".replace(".", "_") + ".json"
        records = tile_records(df[mask])
        (tiles_dir / name).write_text(json.dumps(records), encoding="utf-8")
        index.append({"address": f"tiles/{name}", "mag_max": float(upper)})
        logger.info("wrote %s: %d stars", name, len(records))

    (out_dir / "tile_index.json").write_text(json.dumps(index, indent=2), encoding="utf-8")
    return index


def main(argv: Sequence[str] | None = None) -> int:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Build magnitude tiles from Hipparcos.")
    parser.add_argument("--out", type=Path, default=Path("resources"), help="output directory")
    parser.add_argument(
        "--bands",
        type=float,
        nargs="+",
        default=list(DEFAULT_BANDS),
        help="increasing magnitude limits, one tile each",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=settings.ephemeris_dir,
        help="where skyfield keeps hip_main.dat",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    loader = Loader(str(args.data_dir))
    with loader.open(hipparcos.URL) as f:
        df = hipparcos.load_dataframe(f)

    try:
        index = build_tiles(df, args.bands, args.out)
    except ValueError as exc:
        parser.error(str(exc))
    print(f"Wrote {len(index)} tiles to {args.out}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
