"""CLI entry point for star chart generation.

    uv run skydome-chart --lat 35.68 --lon 139.76 --when "2025-01-10 21:00"
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

load_dotenv()

from skydome.config import load_settings  # noqa: E402
from skydome.errors import SkyDomeError  # noqa: E402
from skydome.models import DrawRequest, Instant, Observer, Viewport  # noqa: E402
from skydome.pipeline import compute_sky_frame  # noqa: E402
from skydome.timeinput import parse_utc, resolve_local_time  # noqa: E402

logger = logging.getLogger("skydome")


def build_parser(default_mag: float) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Draw the visible night sky.")
    parser.add_argument("--lat", type=float, default=35.68, help="latitude, degrees north")
    parser.add_argument("--lon", type=float, default=139.76, help="longitude, degrees east")
    parser.add_argument("--height", type=float, default=30.0, help="height in metres")
    parser.add_argument("--when", help='"YYYY-MM-DD HH:MM" local time (default: now)')
    parser.add_argument("--utc", action="store_true", help="read --when as UTC")
    parser.add_argument("--mag", type=float, default=default_mag, help="limiting magnitude")
    parser.add_argument("--mode", choices=("disc", "sphere"), default="disc")
    parser.add_argument("--size", type=float, default=800.0, help="canvas width (disc mode)")
    parser.add_argument("--no-bodies", action="store_true", help="skip Sun, Moon and planets")
    parser.add_argument("--out", type=Path, help="output file (.png for disc, .html for sphere)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    settings = load_settings(dotenv=False)
    args = build_parser(settings.magnitude_limit).parse_args(argv)
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    observer = Observer(latitude_deg=args.lat, longitude_deg=args.lon, height_m=args.height)
    try:
        if args.when is None:
            instant = Instant.now()
        elif args.utc:
            instant = parse_utc(args.when)
        else:
            instant = resolve_local_time(args.when, observer)

        viewport = Viewport.square(args.size) if args.mode == "disc" else None
        request = DrawRequest(
            instant=instant,
            observer=observer,
            magnitude_limit=args.mag,
            viewport=viewport,
        )
        frame = compute_sky_frame(request, settings, with_bodies=not args.no_bodies)
    except SkyDomeError as exc:
        logger.error("%s", exc)
        return 1

    if args.mode == "disc":
        from skydome.renderers.static import save_static_chart

        path = save_static_chart(frame, args.out)
    else:
        from skydome.renderers.plotly_3d import render_plotly_chart

        path = args.out or Path("results") / "sky.html"
        path.parent.mkdir(parents=True, exist_ok=True)
        render_plotly_chart(frame).write_html(path)

    print(f"Saved: {path} ({len(frame.stars)} stars above the horizon)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
