"""SkyDome — visible night sky for any observer and instant."""

__version__ = "0.3.0"
