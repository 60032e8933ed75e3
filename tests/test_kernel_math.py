import numpy as np
import pytest

from fractals.base import RenderSettings
from fractals.escape_time import precision_key, values_from_counts
from kernel_sources.cpu.escape_time.pixel import PIXEL_OPS
from kernel_sources.escape_time import MAX_ITERATIONS
from utils.surfaces import DispatchError

from conftest import reference_escape

map_pixel, escape_iteration, normalized_value, _ = PIXEL_OPS["f32"]


@pytest.mark.parametrize("x, y, w, h", [
    (0, 0, 1, 1), (0, 0, 640, 480), (639, 479, 640, 480),
    (17, 3, 31, 7), (225, 150, 300, 300), (1, 1, 2, 3),
])
def test_mapping_matches_formula(fractal, x, y, w, h):
    px = fractal.evaluate_pixel(x, y, w, h)
    f = np.float32
    assert px.c[0] == float(f(x) / f(w) * f(3.0) - f(2.25))
    assert px.c[1] == float(f(y) / f(h) * f(3.0) - f(1.5))
    assert px.c[0] == pytest.approx(x / w * 3.0 - 2.25, abs=1e-6)
    assert px.c[1] == pytest.approx(y / h * 3.0 - 1.5, abs=1e-6)


def test_corner_pixel_escapes_on_first_iteration(fractal):
    px = fractal.evaluate_pixel(0, 0, 1, 1)
    assert px.c == (-2.25, -1.5)

    # first iterate by hand: (5.0625 - 2.25 - 2.25, 2 * 3.375 - 1.5)
    cx, cy = np.float32(-2.25), np.float32(-1.5)
    zx = cx * cx - cy * cy + cx
    zy = np.float32(2.0) * cx * cy + cy
    assert (zx, zy) == (np.float32(0.5625), np.float32(5.25))
    assert np.sqrt(zx * zx + zy * zy) > 4.0

    assert px.final_iteration == 0
    assert px.final_iteration < MAX_ITERATIONS
    assert px.value == 0.0


def test_plane_origin_never_escapes(fractal):
    px = fractal.evaluate_pixel(225, 150, 300, 300)
    assert px.c == (0.0, 0.0)
    assert px.final_iteration == MAX_ITERATIONS
    assert px.value == 1.0


def test_double_precision_uses_same_frame(fractal):
    st = RenderSettings(precision=np.float64)
    px = fractal.evaluate_pixel(225, 150, 300, 300, st)
    assert px.c == (0.0, 0.0)
    assert px.value == 1.0
    px = fractal.evaluate_pixel(7, 5, 11, 13, st)
    assert px.c == (7 / 11 * 3.0 - 2.25, 5 / 13 * 3.0 - 1.5)


def test_matches_reference_loop():
    w, h = 23, 17
    for y in range(h):
        for x in range(w):
            cx, cy = map_pixel(x, y, w, h)
            cx, cy = np.float32(cx), np.float32(cy)
            assert escape_iteration(cx, cy, 50) == reference_escape(cx, cy, 50)


def test_escape_and_value_stay_in_range():
    w, h = 40, 30
    for y in range(h):
        for x in range(w):
            cx, cy = map_pixel(x, y, w, h)
            n = escape_iteration(np.float32(cx), np.float32(cy), MAX_ITERATIONS)
            assert 0 <= n <= MAX_ITERATIONS
            assert 0.0 <= normalized_value(n, MAX_ITERATIONS) <= 1.0


def test_evaluation_is_deterministic(fractal):
    first = fractal.evaluate_pixel(123, 77, 300, 200)
    for _ in range(3):
        assert fractal.evaluate_pixel(123, 77, 300, 200) == first


def test_truncated_budget_reports_no_escape():
    c = np.float32(0.3), np.float32(0.0)
    k = escape_iteration(c[0], c[1], MAX_ITERATIONS)
    assert 2 < k < MAX_ITERATIONS

    # loop index never reaches k, so the sentinel comes back
    assert escape_iteration(c[0], c[1], k) == k
    assert escape_iteration(c[0], c[1], k - 1) == k - 1
    assert escape_iteration(c[0], c[1], k + 1) == k


def test_out_of_range_pixel_is_rejected(fractal):
    with pytest.raises(DispatchError):
        fractal.evaluate_pixel(300, 0, 300, 300)
    with pytest.raises(DispatchError):
        fractal.evaluate_pixel(0, -1, 300, 300)


def test_zero_budget_is_rejected(fractal):
    with pytest.raises(ValueError):
        fractal.evaluate_pixel(0, 0, 4, 4, RenderSettings(max_iter=0))


def test_precision_keys():
    assert precision_key(np.float32) == "f32"
    assert precision_key(np.float64) == "f64"
    with pytest.raises(ValueError):
        precision_key(np.float16)


def test_values_from_counts():
    counts = np.array([[0, 25], [50, 10]], dtype=np.int32)
    values = values_from_counts(counts, 50)
    assert values.dtype == np.float32
    np.testing.assert_array_equal(values, np.array([[0.0, 0.5], [1.0, 0.2]], dtype=np.float32))
