from numba import cuda

from kernel_sources.cuda.escape_time.pixel import PIXEL_OPS
from kernel_sources.escape_time import PRECISIONS
from kernel_sources.registry import register_kernel

ARG_SCALARS = ["max_iter"]
ARG_BUFFERS_IN = []
ARG_BUFFERS_OUT = ["iterations"]

ARG_ORDER = ARG_SCALARS + ARG_BUFFERS_IN + ARG_BUFFERS_OUT


def _build_iter_kernel(precision):
    map_pixel, escape_iteration, _ = PIXEL_OPS[precision]

    @cuda.jit
    def _escape_iter(max_iter, iterations):
        x, y = cuda.grid(2)
        H, W = iterations.shape
        # the launch grid is rounded up to whole blocks
        if x >= W or y >= H:
            return
        cx, cy = map_pixel(x, y, W, H)
        iterations[y, x] = escape_iteration(cx, cy, max_iter)

    return _escape_iter


for _precision in PRECISIONS:
    register_kernel(
        fractal="escape_time",
        op_name="iter",
        backend="CUDA",
        precision=_precision,
        func=_build_iter_kernel(_precision),
        arg_order=ARG_ORDER,
        scalars=ARG_SCALARS,
        produces=ARG_BUFFERS_OUT,
        consumes=ARG_BUFFERS_IN,
        buffers=ARG_BUFFERS_IN + ARG_BUFFERS_OUT,
        block=(16, 16)
    )
