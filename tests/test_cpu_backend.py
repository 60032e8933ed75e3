import logging

import numpy as np
import pytest

from backend.model.be_cpu import CpuBackend
from fractals.base import RenderSettings, SamplerConfig
from fractals.escape_time import EscapeTimeFractal, values_from_counts
from kernel_sources.escape_time import MAX_ITERATIONS
from utils.enums import AddressMode, FilterMode, WriteMode
from utils.surfaces import (DispatchError, SurfaceError, new_input_surface,
                            new_output_surface)

from conftest import expected_unorm8

VISUALIZE = RenderSettings(mode=WriteMode.VISUALIZE)


def test_dispatch_requires_compile():
    be = CpuBackend()
    with pytest.raises(RuntimeError):
        be.dispatch(EscapeTimeFractal(), RenderSettings(), new_output_surface(2, 2),
                    new_input_surface(2, 2), 2, 2)


@pytest.mark.parametrize("sampler", [
    SamplerConfig(),
    SamplerConfig(filter=FilterMode.NEAREST),
    SamplerConfig(address=AddressMode.REPEAT),
    SamplerConfig(filter=FilterMode.NEAREST, address=AddressMode.MIRROR_REPEAT),
])
def test_composite_writes_sampled_colour(cpu_backend, fractal, sampler):
    w, h = 37, 23
    src = new_input_surface(11, 7, color=(0.25, 0.5, 0.75, 1.0))
    out = new_output_surface(w, h)
    cpu_backend.dispatch(fractal, RenderSettings(sampler=sampler), out, src, w, h)
    assert (out == np.array([64, 128, 191, 255], dtype=np.uint8)).all()


def test_composite_ignores_escape_value(cpu_backend, fractal):
    # the interior pixel and the escaping corner both get the input colour
    src = new_input_surface(4, 4, color=(0.0, 1.0, 0.0, 0.5))
    out = new_output_surface(300, 300)
    cpu_backend.dispatch(fractal, RenderSettings(), out, src, 300, 300)
    np.testing.assert_array_equal(out[150, 225], out[0, 0])
    np.testing.assert_array_equal(out[0, 0], [0, 255, 0, 128])


def test_visualize_writes_grey_value(cpu_backend, fractal):
    w, h = 64, 48
    out = new_output_surface(w, h)
    cpu_backend.dispatch(fractal, VISUALIZE, out, new_input_surface(1, 1), w, h)

    assert (out[..., 0] == out[..., 1]).all()
    assert (out[..., 1] == out[..., 2]).all()
    assert (out[..., 3] == 255).all()

    counts = cpu_backend.escape_counts(fractal, VISUALIZE, w, h)
    values = values_from_counts(counts, MAX_ITERATIONS)
    np.testing.assert_array_equal(out[..., 0], expected_unorm8(values))


def test_visualize_marks_interior_white(cpu_backend, fractal):
    out = new_output_surface(300, 300)
    cpu_backend.dispatch(fractal, VISUALIZE, out, new_input_surface(1, 1), 300, 300)
    np.testing.assert_array_equal(out[150, 225], [255, 255, 255, 255])


def test_escape_counts_match_single_pixel_evaluation(cpu_backend, fractal):
    w, h = 19, 13
    counts = cpu_backend.escape_counts(fractal, RenderSettings(), w, h)
    assert counts.shape == (h, w)
    assert counts.min() >= 0 and counts.max() <= MAX_ITERATIONS
    for y in range(h):
        for x in range(w):
            assert counts[y, x] == fractal.evaluate_pixel(x, y, w, h).final_iteration


def test_smaller_budget_truncates(cpu_backend, fractal):
    full = cpu_backend.escape_counts(fractal, RenderSettings(), 40, 30)
    short = cpu_backend.escape_counts(fractal, RenderSettings(max_iter=5), 40, 30)
    np.testing.assert_array_equal(short, np.minimum(full, 5))


def test_dispatch_is_deterministic(cpu_backend, fractal):
    first = new_output_surface(50, 40)
    second = new_output_surface(50, 40)
    cpu_backend.dispatch(fractal, VISUALIZE, first, new_input_surface(1, 1), 50, 40)
    cpu_backend.dispatch(fractal, VISUALIZE, second, new_input_surface(1, 1), 50, 40)
    np.testing.assert_array_equal(first, second)


def test_mismatched_extents_are_rejected(cpu_backend, fractal):
    out = new_output_surface(8, 6)
    with pytest.raises(DispatchError):
        cpu_backend.dispatch(fractal, RenderSettings(), out, new_input_surface(2, 2), 6, 8)
    assert not out.any()


def test_bad_surfaces_are_rejected(cpu_backend, fractal):
    with pytest.raises(SurfaceError):
        cpu_backend.dispatch(fractal, RenderSettings(), np.zeros((4, 4, 4), dtype=np.float32),
                             new_input_surface(2, 2), 4, 4)
    with pytest.raises(SurfaceError):
        cpu_backend.dispatch(fractal, RenderSettings(), new_output_surface(4, 4),
                             np.zeros((2, 2, 4), dtype=np.uint8), 4, 4)


def test_double_precision_backend(fractal):
    st = RenderSettings(precision=np.float64, mode=WriteMode.VISUALIZE)
    with CpuBackend() as be:
        be.compile(fractal, st)
        out = be.dispatch(fractal, st, new_output_surface(300, 300),
                          new_input_surface(1, 1, dtype=np.float64), 300, 300)
    np.testing.assert_array_equal(out[150, 225], [255, 255, 255, 255])
    np.testing.assert_array_equal(out[0, 0], [0, 0, 0, 255])


def _gradient(w, h):
    ys, xs = np.mgrid[0:h, 0:w]
    src = np.empty((h, w, 4), dtype=np.float32)
    src[..., 0] = xs / w
    src[..., 1] = ys / h
    src[..., 2] = (xs + ys * w) / (w * h)
    src[..., 3] = 1.0
    return src


def test_nearest_composite_reads_texel_at_pixel_coordinate(cpu_backend, fractal):
    # power-of-two sizes keep x / W * W exact; W != H catches swapped axes
    w, h = 8, 4
    src = _gradient(w, h)
    out = new_output_surface(w, h)
    settings = RenderSettings(sampler=SamplerConfig(filter=FilterMode.NEAREST))
    cpu_backend.dispatch(fractal, settings, out, src, w, h)
    np.testing.assert_array_equal(out, expected_unorm8(src))


def test_linear_composite_blends_half_a_texel_back(cpu_backend, fractal):
    # (x / W, y / H) lies on a texel edge, so each pixel averages texels x-1 and x
    w, h = 8, 4
    src = _gradient(w, h)
    out = new_output_surface(w, h)
    cpu_backend.dispatch(fractal, RenderSettings(), out, src, w, h)

    ys, xs = np.mgrid[0:h, 0:w]
    expected = np.zeros((h, w, 4), dtype=np.float64)
    expected[..., 0] = np.maximum(2 * xs - 1, 0) / (2 * w)
    expected[..., 1] = np.maximum(2 * ys - 1, 0) / (2 * h)
    expected[..., 3] = 1.0
    np.testing.assert_array_equal(out[..., [0, 1, 3]], expected_unorm8(expected)[..., [0, 1, 3]])
    assert out[2, 5, 0] == expected_unorm8(9 / 16)


def test_input_precision_cast_is_logged(cpu_backend, fractal, caplog):
    src = new_input_surface(4, 4, color=(0.25, 0.5, 0.75, 1.0), dtype=np.float64)
    out = new_output_surface(4, 4)
    with caplog.at_level(logging.DEBUG, logger="backend.model.be_cpu"):
        cpu_backend.dispatch(fractal, RenderSettings(), out, src, 4, 4)
    assert "Casting 'src' from float64 to float32" in caplog.text
    assert (out == np.array([64, 128, 191, 255], dtype=np.uint8)).all()
