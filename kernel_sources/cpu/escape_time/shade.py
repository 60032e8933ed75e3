from numba import njit, prange

from kernel_sources.cpu.common.sample import to_unorm8
from kernel_sources.cpu.escape_time.pixel import PIXEL_OPS
from kernel_sources.escape_time import PRECISIONS
from kernel_sources.registry import register_kernel


ARG_SCALARS = ["max_iter", "visualize", "filter_mode", "address_mode"]
ARG_BUFFERS_IN = ["src"]
ARG_BUFFERS_OUT = ["out"]

ARG_ORDER = ARG_SCALARS + ARG_BUFFERS_IN + ARG_BUFFERS_OUT


def _build_shade_kernel(precision):
    shade_pixel = PIXEL_OPS[precision][3]

    @njit(parallel=True)
    def _shade(max_iter, visualize, filter_mode, address_mode, src, out):
        H, W = out.shape[0], out.shape[1]
        for y in prange(H):
            for x in range(W):
                r, g, b, a = shade_pixel(x, y, W, H, max_iter, visualize,
                                         filter_mode, address_mode, src)
                out[y, x, 0] = to_unorm8(r)
                out[y, x, 1] = to_unorm8(g)
                out[y, x, 2] = to_unorm8(b)
                out[y, x, 3] = to_unorm8(a)

    return _shade


for _precision in PRECISIONS:
    register_kernel(
        fractal="escape_time",
        op_name="shade",
        backend="CPU",
        precision=_precision,
        func=_build_shade_kernel(_precision),
        arg_order=ARG_ORDER,
        scalars=ARG_SCALARS,
        produces=ARG_BUFFERS_OUT,
        consumes=ARG_BUFFERS_IN,
        buffers=ARG_BUFFERS_IN + ARG_BUFFERS_OUT,
        block=None
    )
