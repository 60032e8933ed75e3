import math

from numba import cuda

from utils.enums import AddressMode, FilterMode

NEAREST = int(FilterMode.NEAREST)
REPEAT = int(AddressMode.REPEAT)
MIRROR_REPEAT = int(AddressMode.MIRROR_REPEAT)


@cuda.jit(device=True)
def wrap_index(i, n, address_mode):
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


@cuda.jit(device=True)
def _lerp(a, b, t):
    return a + (b - a) * t


@cuda.jit(device=True)
def sample_rgba(src, u, v, filter_mode, address_mode):
    H = src.shape[0]
    W = src.shape[1]
    if filter_mode == NEAREST:
        ix = wrap_index(int(math.floor(u * W)), W, address_mode)
        iy = wrap_index(int(math.floor(v * H)), H, address_mode)
        return (float(src[iy, ix, 0]), float(src[iy, ix, 1]),
                float(src[iy, ix, 2]), float(src[iy, ix, 3]))

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

    r = _lerp(_lerp(float(src[y0, x0, 0]), float(src[y0, x1, 0]), ax),
              _lerp(float(src[y1, x0, 0]), float(src[y1, x1, 0]), ax), ay)
    g = _lerp(_lerp(float(src[y0, x0, 1]), float(src[y0, x1, 1]), ax),
              _lerp(float(src[y1, x0, 1]), float(src[y1, x1, 1]), ax), ay)
    b = _lerp(_lerp(float(src[y0, x0, 2]), float(src[y0, x1, 2]), ax),
              _lerp(float(src[y1, x0, 2]), float(src[y1, x1, 2]), ax), ay)
    a = _lerp(_lerp(float(src[y0, x0, 3]), float(src[y0, x1, 3]), ax),
              _lerp(float(src[y1, x0, 3]), float(src[y1, x1, 3]), ax), ay)
    return r, g, b, a


@cuda.jit(device=True)
def to_unorm8(v):
    if not (v > 0.0):
        return 0
    if v >= 1.0:
        return 255
    return int(math.floor(v * 255.0 + 0.5))
