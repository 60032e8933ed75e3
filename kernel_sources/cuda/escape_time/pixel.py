import math

import numpy as np
from numba import cuda

from kernel_sources.cuda.common.sample import sample_rgba
from kernel_sources.escape_time import (PLANE_SCALE, REAL_OFFSET, IMAG_OFFSET,
                                        ESCAPE_RADIUS)


def build_pixel_ops(ftype):
    """Device-side twins of kernel_sources.cpu.escape_time.pixel."""
    scale = ftype(PLANE_SCALE)
    real_offset = ftype(REAL_OFFSET)
    imag_offset = ftype(IMAG_OFFSET)
    radius = ftype(ESCAPE_RADIUS)
    two = ftype(2.0)

    @cuda.jit(device=True)
    def map_pixel(x, y, width, height):
        cx = (ftype(x) / ftype(width)) * scale - real_offset
        cy = (ftype(y) / ftype(height)) * scale - imag_offset
        return cx, cy

    @cuda.jit(device=True)
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

    @cuda.jit(device=True)
    def shade_pixel(x, y, width, height, max_iter, visualize,
                    filter_mode, address_mode, src):
        cx, cy = map_pixel(x, y, width, height)
        value = ftype(escape_iteration(cx, cy, max_iter)) / ftype(max_iter)
        if visualize:
            v = float(value)
            return v, v, v, 1.0
        return sample_rgba(src, x / width, y / height, filter_mode, address_mode)

    return map_pixel, escape_iteration, shade_pixel


PIXEL_OPS = {
    "f32": build_pixel_ops(np.float32),
    "f64": build_pixel_ops(np.float64),
}
