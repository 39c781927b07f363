"""Shared fixtures for pipeline tests."""

import threading

import pytest

from colorrun.pipeline.data import Color, Palette


def make_palette(start: int) -> Palette:
    """Five distinct opaque colors derived from ``start``."""
    return Palette(tuple(Color((start + i) % 256, (start + i) * 3 % 256, (start + i) * 7 % 256) for i in range(5)))


class ScriptedPaletteClient:
    """Palette client stand-in.

    Returns (or raises) scripted items in order, then generates fresh
    palettes forever. Records every call as ``(model, seed)``.
    """

    def __init__(self, script=None):
        self.script = list(script or [])
        self.calls: list[tuple[str, list | None]] = []
        self._generated = 0
        self._lock = threading.Lock()

    def get_palette(self, model, seed=None):
        with self._lock:
            self.calls.append((model, None if seed is None else list(seed)))
            if self.script:
                item = self.script.pop(0)
                if isinstance(item, Exception):
                    raise item
                return item
            self._generated += 1
            return make_palette(self._generated * 10)


@pytest.fixture
def palette_client():
    return ScriptedPaletteClient()


@pytest.fixture
def cancel():
    return threading.Event()
