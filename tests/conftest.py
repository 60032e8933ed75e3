import numpy as np
import pytest

from backend.model.be_cpu import CpuBackend
from fractals.base import RenderSettings
from fractals.escape_time import EscapeTimeFractal


def reference_escape(cx, cy, max_iter, ftype=np.float32):
    """Plain numpy rendition of the escape loop, used as an oracle."""
    cx, cy = ftype(cx), ftype(cy)
    zx, zy = cx, cy
    for i in range(max_iter):
        zx, zy = zx * zx - zy * zy + cx, ftype(2.0) * zx * zy + cy
        if np.sqrt(zx * zx + zy * zy) > ftype(4.0):
            return i
    return max_iter


def expected_unorm8(values):
    v = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
    return np.floor(v * 255.0 + 0.5).astype(np.uint8)


@pytest.fixture
def fractal():
    return EscapeTimeFractal()


@pytest.fixture(scope="module")
def cpu_backend():
    be = CpuBackend()
    be.compile(EscapeTimeFractal(), RenderSettings())
    yield be
    be.close()
