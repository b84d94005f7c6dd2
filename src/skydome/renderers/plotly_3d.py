"""Plotly 3D interactive renderer for sphere-mode frames.

Points are the rotated horizontal unit vectors (x = north, y = east,
z = zenith). The plotly camera sits inside-out enough to look up at the
dome; perspective and orbiting are left to plotly.
"""

import numpy as np
import plotly.graph_objects as go

from skydome.models import SkyFrame

_BG = "#050a1a"
_STAR_COLOR = "#ffffff"
_LINE_COLOR = "#88ccff"
_LABEL_COLOR = "#fff0c8"


def _horizon_ring(samples: int = 181) -> go.Scatter3d:
    theta = np.linspace(0.0, 2 * np.pi, samples)
    return go.Scatter3d(
        x=np.cos(theta),
        y=np.sin(theta),
        z=np.zeros_like(theta),
        mode="lines",
        line=dict(color="#334466", width=2),
        hoverinfo="skip",
        name="horizon",
    )


def render_plotly_chart(frame: SkyFrame) -> go.Figure:
    """Render a sphere-mode SkyFrame as a Plotly 3D point cloud.

    Args:
        frame: Fully computed frame without a viewport.

    Returns:
        Plotly Figure object.

    Raises:
        ValueError: If the frame was computed in disc mode.
    """
    if frame.request.viewport is not None:
        raise ValueError("3D chart needs a sphere-mode frame (no viewport)")

    xyz = np.array([s.position for s in frame.stars]).reshape(-1, 3)
    star_trace = go.Scatter3d(
        x=xyz[:, 0],
        y=xyz[:, 1],
        z=xyz[:, 2],
        mode="markers",
        marker=dict(
            size=[s.display_size for s in frame.stars],
            color=_STAR_COLOR,
            opacity=0.9,
            line=dict(width=0),
        ),
        text=[s.label or "" for s in frame.stars],
        hoverinfo="text",
        name="stars",
    )

    # Constellation lines: single trace using None separators
    lx: list[float | None] = []
    ly: list[float | None] = []
    lz: list[float | None] = []
    for view in frame.constellations:
        for a, b in view.segments:
            lx += [a[0], b[0], None]
            ly += [a[1], b[1], None]
            lz += [a[2], b[2], None]
    line_trace = go.Scatter3d(
        x=lx,
        y=ly,
        z=lz,
        mode="lines",
        line=dict(color=_LINE_COLOR, width=2),
        opacity=0.6,
        hoverinfo="skip",
        name="constellations",
    )

    label_xyz: list[tuple[float, ...]] = []
    label_text: list[str] = []
    for view in frame.constellations:
        if view.label_anchor is not None:
            label_xyz.append(view.label_anchor)
            label_text.append(view.name)
    for body in frame.bodies:
        label_xyz.append(body.position)
        label_text.append(body.label or "")
    anchors = np.array(label_xyz).reshape(-1, 3)
    label_trace = go.Scatter3d(
        x=anchors[:, 0],
        y=anchors[:, 1],
        z=anchors[:, 2],
        mode="text",
        text=label_text,
        textfont=dict(color=_LABEL_COLOR, size=11),
        hoverinfo="skip",
        name="labels",
    )

    fig = go.Figure(data=[_horizon_ring(), line_trace, star_trace, label_trace])
    fig.update_layout(
        paper_bgcolor=_BG,
        showlegend=False,
        margin=dict(l=0, r=0, t=0, b=0),
        scene=dict(
            bgcolor=_BG,
            xaxis=dict(visible=False, range=[-1.05, 1.05]),
            yaxis=dict(visible=False, range=[-1.05, 1.05]),
            zaxis=dict(visible=False, range=[-0.05, 1.05]),
            aspectmode="manual",
            aspectratio=dict(x=1, y=1, z=0.55),
            camera=dict(eye=dict(x=0.0, y=-1.2, z=1.2)),
        ),
    )
    return fig
