from numba import njit, prange

from kernel_sources.cpu.escape_time.pixel import PIXEL_OPS
from kernel_sources.escape_time import PRECISIONS
from kernel_sources.registry import register_kernel


ARG_SCALARS = ["max_iter"]
ARG_BUFFERS_IN = []
ARG_BUFFERS_OUT = ["iterations"]

ARG_ORDER = ARG_SCALARS + ARG_BUFFERS_IN + ARG_BUFFERS_OUT


def _build_iter_kernel(precision):
    map_pixel, escape_iteration, _, _ = PIXEL_OPS[precision]

    @njit(parallel=True)
    def _escape_iter(max_iter, iterations):
        H, W = iterations.shape
        for y in prange(H):
            for x in range(W):
                cx, cy = map_pixel(x, y, W, H)
                iterations[y, x] = escape_iteration(cx, cy, max_iter)

    return _escape_iter


for _precision in PRECISIONS:
    register_kernel(
        fractal="escape_time",
        op_name="iter",
        backend="CPU",
        precision=_precision,
        func=_build_iter_kernel(_precision),
        arg_order=ARG_ORDER,
        scalars=ARG_SCALARS,
        produces=ARG_BUFFERS_OUT,
        consumes=ARG_BUFFERS_IN,
        buffers=ARG_BUFFERS_IN + ARG_BUFFERS_OUT,
        block=None
    )
