"""
Per-pixel escape-time functions compiled with numba for one float precision.

Every function here is pure: it sees only its own pixel coordinate and the
read-only input surface, and returns values instead of writing to shared
buffers. Only the dispatch loops in ``iter`` and ``shade`` write output cells.
"""
import math

import numpy as np
from numba import njit

from kernel_sources.cpu.common.sample import sample_rgba
from kernel_sources.escape_time import (PLANE_SCALE, REAL_OFFSET, IMAG_OFFSET,
                                        ESCAPE_RADIUS)


def build_pixel_ops(ftype):
    """
    Compile (map_pixel, escape_iteration, normalized_value, shade_pixel) for
    ``ftype`` (np.float32 or np.float64). Every intermediate stays in ``ftype``.
    """
    scale = ftype(PLANE_SCALE)
    real_offset = ftype(REAL_OFFSET)
    imag_offset = ftype(IMAG_OFFSET)
    radius = ftype(ESCAPE_RADIUS)
    two = ftype(2.0)

    @njit
    def map_pixel(x, y, width, height):
        cx = (ftype(x) / ftype(width)) * scale - real_offset
        cy = (ftype(y) / ftype(height)) * scale - imag_offset
        return cx, cy

    @njit
    def escape_iteration(cx, cy, max_iter):
        zx = cx
        zy = cy
        final = max_iter
        for i in range(max_iter):
            nx = zx * zx - zy * zy + cx
            ny = two * zx * zy + cy
            zx = nx
            zy = ny
            if math.sqrt(zx * zx + zy * zy) > radius:
                final = i
                break
        return final

    @njit
    def normalized_value(final_iteration, max_iter):
        return ftype(final_iteration) / ftype(max_iter)

    @njit
    def shade_pixel(x, y, width, height, max_iter, visualize,
                    filter_mode, address_mode, src):
        cx, cy = map_pixel(x, y, width, height)
        value = normalized_value(escape_iteration(cx, cy, max_iter), max_iter)
        if visualize:
            v = np.float64(value)
            return v, v, v, 1.0
        return sample_rgba(src, x / width, y / height, filter_mode, address_mode)

    return map_pixel, escape_iteration, normalized_value, shade_pixel


PIXEL_OPS = {
    "f32": build_pixel_ops(np.float32),
    "f64": build_pixel_ops(np.float64),
}
