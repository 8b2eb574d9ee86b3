import io
import threading

import numpy as np
import pytest
from PIL import Image

from mintguard.models.catalog import CatalogEntry


def mosaic_image(seed: int, cell: int = 40) -> Image.Image:
    """9x8 grid of flat grey blocks with random levels, like a coarse photo."""
    rng = np.random.default_rng(seed)
    levels = rng.integers(48, 208, size=(8, 9)).astype(np.uint8)
    pixels = np.kron(levels, np.ones((cell, cell), dtype=np.uint8))
    return Image.fromarray(pixels).convert("RGB")


def ramp_image(descending_rows=(), width: int = 900, row_height: int = 40) -> Image.Image:
    """Horizontal luminance ramps; rows listed in descending_rows run bright to dark."""
    ramp = np.linspace(16, 240, width)
    rows = []
    for row in range(8):
        values = ramp[::-1] if row in descending_rows else ramp
        rows.append(np.tile(values, (row_height, 1)))
    pixels = np.vstack(rows).astype(np.uint8)
    return Image.fromarray(pixels)


def image_bytes(image: Image.Image, fmt: str = "PNG", **save_kwargs) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


def flip_bits(fingerprint: str, count: int) -> str:
    """Return a fingerprint exactly ``count`` bits away from ``fingerprint``."""
    return format(int(fingerprint, 16) ^ ((1 << count) - 1), "016x")


def make_entry(index: int, dhash64) -> CatalogEntry:
    return CatalogEntry(
        id=f"art-{index}",
        title=f"Artwork {index}",
        owner=f"user-{index % 3}",
        image_url=f"https://cdn.example.com/art-{index}.png",
        dhash64=dhash64,
    )


class FakeCorpus:
    """In-memory candidate corpus with optional failure or blocking."""

    def __init__(self, entries=None, error=None, release=None):
        self.entries = list(entries or [])
        self.error = error
        self.release = release
        self.calls = []

    def fetch_candidates(self, limit):
        self.calls.append(limit)
        if self.release is not None:
            self.release.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.entries[:limit]


@pytest.fixture
def mosaic_png():
    return image_bytes(mosaic_image(seed=7))


@pytest.fixture
def blocking_corpus():
    release = threading.Event()
    yield FakeCorpus(entries=[], release=release)
    release.set()
