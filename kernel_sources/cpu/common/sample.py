import math

import numpy as np
from numba import njit

from utils.enums import AddressMode, FilterMode

NEAREST = int(FilterMode.NEAREST)
REPEAT = int(AddressMode.REPEAT)
MIRROR_REPEAT = int(AddressMode.MIRROR_REPEAT)


@njit(cache=True)
def wrap_index(i, n, address_mode):
    """Resolve a texel index outside [0, n) with the sampler's addressing mode."""
    if address_mode == REPEAT:
        i = i % n
        if i < 0:
            i += n
        return i
    if address_mode == MIRROR_REPEAT:
        period = 2 * n
        m = i % period
        if m < 0:
            m += period
        if m >= n:
            m = period - 1 - m
        return m
    if i < 0:
        return 0
    if i >= n:
        return n - 1
    return i


@njit(cache=True)
def _lerp(a, b, t):
    # a + (b - a) * t keeps equal neighbours exact
    return a + (b - a) * t


@njit(cache=True)
def sample_rgba(src, u, v, filter_mode, address_mode):
    """
    Sample mip level 0 of an (H, W, 4) float surface at normalized (u, v).
    Returns four float64 channels.
    """
    H, W = src.shape[0], src.shape[1]
    if filter_mode == NEAREST:
        ix = wrap_index(int(math.floor(u * W)), W, address_mode)
        iy = wrap_index(int(math.floor(v * H)), H, address_mode)
        return (np.float64(src[iy, ix, 0]), np.float64(src[iy, ix, 1]),
                np.float64(src[iy, ix, 2]), np.float64(src[iy, ix, 3]))

    # texel centres sit at (i + 0.5) / n
    tx = u * W - 0.5
    ty = v * H - 0.5
    fx0 = math.floor(tx)
    fy0 = math.floor(ty)
    ax = tx - fx0
    ay = ty - fy0
    x0 = wrap_index(int(fx0), W, address_mode)
    x1 = wrap_index(int(fx0) + 1, W, address_mode)
    y0 = wrap_index(int(fy0), H, address_mode)
    y1 = wrap_index(int(fy0) + 1, H, address_mode)

    r = _lerp(_lerp(np.float64(src[y0, x0, 0]), np.float64(src[y0, x1, 0]), ax),
              _lerp(np.float64(src[y1, x0, 0]), np.float64(src[y1, x1, 0]), ax), ay)
    g = _lerp(_lerp(np.float64(src[y0, x0, 1]), np.float64(src[y0, x1, 1]), ax),
              _lerp(np.float64(src[y1, x0, 1]), np.float64(src[y1, x1, 1]), ax), ay)
    b = _lerp(_lerp(np.float64(src[y0, x0, 2]), np.float64(src[y0, x1, 2]), ax),
              _lerp(np.float64(src[y1, x0, 2]), np.float64(src[y1, x1, 2]), ax), ay)
    a = _lerp(_lerp(np.float64(src[y0, x0, 3]), np.float64(src[y0, x1, 3]), ax),
              _lerp(np.float64(src[y1, x0, 3]), np.float64(src[y1, x1, 3]), ax), ay)
    return r, g, b, a


@njit(cache=True)
def to_unorm8(v):
    """Float channel -> 8-bit unorm: clamp to [0, 1], scale, round to nearest."""
    if not (v > 0.0):  # also catches NaN
        return np.uint8(0)
    if v >= 1.0:
        return np.uint8(255)
    return np.uint8(int(math.floor(v * 255.0 + 0.5)))
