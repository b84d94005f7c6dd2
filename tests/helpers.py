"""Shared test data and a fetch double for the tile loader."""

import asyncio
from pathlib import Path

RESOURCES = Path(__file__).parent.parent / "resources"

BRIGHT = [
    {"name": "Sirius", "ra_hours": 6.7525, "dec_deg": -16.7161, "mag": -1.46},
    {"name": "Vega", "ra_hours": 18.6156, "dec_deg": 38.7837, "mag": 0.03},
    {"name": "Polaris", "ra_hours": 2.5302, "dec_deg": 89.2641, "mag": 1.98},
]
MIDDLE = [
    {"name": "Mizar", "ra_hours": 13.3988, "dec_deg": 54.9254, "mag": 2.23},
    {"name": "Meissa", "ra_hours": 5.5856, "dec_deg": 9.9342, "mag": 3.39},
]
FAINT = [
    {"name": "Yildun", "ra_hours": 17.5369, "dec_deg": 86.5865, "mag": 4.36},
    {"name": "Sigma Octantis", "ra_hours": 21.1465, "dec_deg": -88.9565, "mag": 5.47},
]

TILES = {"t2": BRIGHT, "t4": MIDDLE, "t6": FAINT}
INDEX = [
    {"address": "t2", "mag_max": 2.0},
    {"address": "t4", "mag_max": 4.0},
    {"address": "t6", "mag_max": 6.0},
]


class FakeFetch:
    """Async fetch double: serves TILES, counts calls, can block or fail per address."""

    def __init__(self, tiles=None):
        self.tiles = dict(TILES if tiles is None else tiles)
        self.calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.failures: dict[str, BaseException] = {}

    def block(self, address: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[address] = gate
        return gate

    async def __call__(self, address: str):
        self.calls.append(address)
        gate = self.gates.get(address)
        if gate is not None:
            await gate.wait()
        failure = self.failures.pop(address, None)
        if failure is not None:
            raise failure
        return self.tiles[address.lstrip("/")]


