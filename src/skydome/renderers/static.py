"""Matplotlib static PNG renderer for disc-mode frames."""

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
from matplotlib.collections import LineCollection  # noqa: E402
from matplotlib.figure import Figure  # noqa: E402
from matplotlib.patches import Circle  # noqa: E402

from skydome.models import SkyFrame  # noqa: E402

_ROOT = Path(__file__).parent.parent.parent.parent

_BG = "#000814"
_LINE_COLOR = "#50a0ff"
_LABEL_COLOR = "#ffe682"
_BODY_COLOR = "#ff22cc"
_CARDINALS = (("N", 0.0), ("E", 90.0), ("S", 180.0), ("W", 270.0))


def render_static_chart(frame: SkyFrame, chart_size: int = 10) -> Figure:
    """Render a disc-mode SkyFrame as a static matplotlib image.

    Data coordinates are the frame's own canvas pixels; the y axis is
    inverted so north stays at the top like on a canvas.

    Args:
        frame: Fully computed frame with a viewport.
        chart_size: Output image size in inches.

    Returns:
        matplotlib Figure object.

    Raises:
        ValueError: If the frame was computed in sphere mode.
    """
    viewport = frame.request.viewport
    if viewport is None:
        raise ValueError("static chart needs a disc-mode frame (viewport set)")
    cx, cy, radius = viewport.cx, viewport.cy, viewport.radius

    fig, ax = plt.subplots(figsize=(chart_size, chart_size))
    fig.patch.set_facecolor("black")
    ax.set_facecolor("black")
    ax.add_patch(Circle((cx, cy), radius, color=_BG, fill=True, zorder=0))
    ax.add_patch(
        Circle((cx, cy), radius, fill=False, color="#78dcaa", alpha=0.3, linewidth=2)
    )

    for label, az in _CARDINALS:
        rad = np.radians(az)
        ax.text(
            cx + (radius * 1.05) * np.sin(rad),
            cy - (radius * 1.05) * np.cos(rad),
            label,
            color="#88f7c1",
            ha="center",
            va="center",
            fontsize=14,
        )

    segments = [seg for view in frame.constellations for seg in view.segments]
    if segments:
        ax.add_collection(
            LineCollection(segments, colors=_LINE_COLOR, linewidths=0.8, alpha=0.8, zorder=1)
        )
    for view in frame.constellations:
        if view.label_anchor is not None:
            x, y = view.label_anchor
            ax.text(x, y, view.name, color=_LABEL_COLOR, fontsize=9, ha="center", zorder=3)

    if frame.stars:
        xy = np.array([s.position for s in frame.stars])
        sizes = np.array([s.display_size for s in frame.stars])
        ax.scatter(xy[:, 0], xy[:, 1], s=(2 * sizes) ** 2, color="white", linewidths=0, zorder=2)
        for s in frame.stars:
            if s.label:
                ax.text(s.position[0] + 6, s.position[1] - 6, s.label, color="#fff0c8", fontsize=7)

    for body in frame.bodies:
        x, y = body.position
        ax.scatter([x], [y], s=(2 * body.display_size) ** 2, color=_BODY_COLOR, zorder=4)
        ax.text(x + 6, y - 6, body.label or "", color="#ddffee", fontsize=9, zorder=4)

    horizon = Circle((cx, cy), radius=radius, transform=ax.transData)
    for col in ax.collections:
        col.set_clip_path(horizon)

    margin = radius * 1.12
    ax.set_xlim(cx - margin, cx + margin)
    ax.set_ylim(cy + margin, cy - margin)
    ax.set_aspect("equal")
    ax.axis("off")

    return fig


def save_static_chart(frame: SkyFrame, output_path: Path | None = None) -> Path:
    """Save a disc-mode SkyFrame as a PNG file.

    Args:
        frame: Fully computed frame.
        output_path: Destination path. Auto-generated under results/ if None.

    Returns:
        Path to the saved file.
    """
    if output_path is None:
        req = frame.request
        when_str = req.instant.utc.strftime("%Y_%m_%d_%H_%M")
        obs = req.observer
        filename = f"sky_{obs.latitude_deg:+.2f}_{obs.longitude_deg:+.2f}__{when_str}.png"
        output_path = _ROOT / "results" / filename

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig = render_static_chart(frame)
    fig.savefig(output_path, facecolor="black")
    plt.close(fig)
    return output_path
