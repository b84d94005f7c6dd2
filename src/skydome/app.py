"""SkyDome — Streamlit app for the visible night sky at a place and time."""

import datetime

import matplotlib.pyplot as plt
import streamlit as st
from dotenv import load_dotenv

load_dotenv()

from skydome.config import load_settings  # noqa: E402
from skydome.errors import SkyDomeError  # noqa: E402
from skydome.models import DrawRequest, Observer, Viewport  # noqa: E402
from skydome.pipeline import SkySession, compute_sky_frame  # noqa: E402
from skydome.renderers.plotly_3d import render_plotly_chart  # noqa: E402
from skydome.renderers.static import render_static_chart  # noqa: E402
from skydome.timeinput import resolve_local_time  # noqa: E402

_settings = load_settings(dotenv=False)

st.set_page_config(page_title="SkyDome", page_icon="✦", layout="wide")

# --- Session state initialization ---
# The last good frame stays on screen when a new request fails.
if "frame" not in st.session_state:
    st.session_state.frame = None
if "error_msg" not in st.session_state:
    st.session_state.error_msg = None
# Index, constellations and fetched tiles are reused by every draw in this session
if "sky_session" not in st.session_state:
    st.session_state.sky_session = SkySession(_settings)

# --- Inputs ---
with st.sidebar:
    lat = st.number_input("Latitude", min_value=-90.0, max_value=90.0, value=35.68, format="%.4f")
    lon = st.number_input("Longitude", min_value=-180.0, max_value=180.0, value=139.76, format="%.4f")
    height = st.number_input("Height (m)", value=30.0, step=10.0)
    now = datetime.datetime.now()
    date_val = st.date_input("Date", value=now.date())
    time_val = st.time_input("Time (local)", value=now.time().replace(second=0, microsecond=0), step=300)
    mag_options = sorted({2.0, 4.0, 6.0, 7.0, 8.0, _settings.magnitude_limit})
    mag = st.select_slider(
        "Limiting magnitude", options=mag_options, value=_settings.magnitude_limit
    )
    mode = st.radio("View", ("Disc", "Sphere"), horizontal=True)
    show_bodies = st.checkbox("Sun, Moon and planets", value=True)
    submitted = st.button("✦ View Sky", use_container_width=True)

# --- Form submission handler ---
if submitted:
    observer = Observer(latitude_deg=lat, longitude_deg=lon, height_m=height)
    when_str = f"{date_val.strftime('%Y-%m-%d')} {time_val.strftime('%H:%M')}"
    with st.spinner("Computing the sky..."):
        try:
            request = DrawRequest(
                instant=resolve_local_time(when_str, observer),
                observer=observer,
                magnitude_limit=float(mag),
                viewport=Viewport.square(800.0) if mode == "Disc" else None,
            )
            st.session_state.frame = compute_sky_frame(
                request, with_bodies=show_bodies, session=st.session_state.sky_session
            )
            st.session_state.error_msg = None
        except SkyDomeError as e:
            st.session_state.error_msg = str(e)

if st.session_state.error_msg:
    st.error(st.session_state.error_msg)

frame = st.session_state.frame
if frame is None:
    st.markdown("Set a place and time in the sidebar, then press **View Sky**.")
elif frame.request.viewport is None:
    st.plotly_chart(render_plotly_chart(frame), use_container_width=True)
else:
    fig = render_static_chart(frame)
    st.pyplot(fig)
    plt.close(fig)

if frame is not None:
    names = ", ".join(frame.visible_constellation_names) or "none"
    st.caption(
        f"{len(frame.stars)} of {frame.loaded_star_count} stars above the horizon · "
        f"constellations: {names}"
    )
