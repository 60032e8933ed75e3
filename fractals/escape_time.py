from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Any, Tuple, Optional

import numpy as np

from fractals.base import (Fractal, RenderSettings, ProgramSpec, ArgSpec,
                           KernelStep)
from kernel_sources import load_kernel
from kernel_sources.cpu.escape_time.pixel import PIXEL_OPS
from utils.enums import WriteMode
from utils.surfaces import check_pixel

_PRECISION_KEYS = {np.dtype(np.float32): "f32", np.dtype(np.float64): "f64"}


def precision_key(precision: Any) -> str:
    """Map a float dtype to the registry precision key ("f32" / "f64")."""
    try:
        return _PRECISION_KEYS[np.dtype(precision)]
    except (KeyError, TypeError) as e:
        raise ValueError(f"Unsupported kernel precision {precision!r}") from e


def values_from_counts(counts: np.ndarray, max_iter: int,
                       precision: Any = np.float32) -> np.ndarray:
    """Escape iterations -> normalized values in [0, 1] (1 = never escaped)."""
    ftype = np.dtype(precision).type
    return counts.astype(ftype) / ftype(max_iter)


@dataclass(frozen=True)
class PixelSample:
    """Escape-time result for one pixel."""
    c: Tuple[float, float]
    final_iteration: int
    value: float


@dataclass
class EscapeTimeFractal(Fractal):
    """
    Quadratic escape-time fractal over the fixed frame
    [-2.25, 0.75] x [-1.5, 1.5].

    Two kernel ops are exposed: "shade" writes one RGBA8 colour per pixel,
    "iter" writes the raw escape iteration per pixel.
    """
    name: str = "escape_time"

    def build_arg_values(self, st: RenderSettings) -> Dict[str, Any]:
        max_iter = int(st.max_iter)
        if max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {st.max_iter}")
        return {
            "max_iter": max_iter,
            "visualize": st.mode is WriteMode.VISUALIZE,
            "filter_mode": int(st.sampler.filter),
            "address_mode": int(st.sampler.address),
        }

    @staticmethod
    def _arg_specs(ftype) -> Dict[str, ArgSpec]:
        return {
            "max_iter": ArgSpec("max_iter", "scalar", np.int32),
            "visualize": ArgSpec("visualize", "scalar", np.bool_),
            "filter_mode": ArgSpec("filter_mode", "scalar", np.int32),
            "address_mode": ArgSpec("address_mode", "scalar", np.int32),
            # sampled by normalized coordinate, so any size is accepted
            "src": ArgSpec("src", "surface_in", ftype),
            "out": ArgSpec("out", "surface_out", np.uint8, "H, W, 4"),
            "iterations": ArgSpec("iterations", "buffer_out", np.int32, "H, W"),
        }

    def get_program_spec(self, st: RenderSettings, backend_name: str,
                         op: str = "shade") -> ProgramSpec:
        ftype = np.dtype(st.precision).type
        meta = load_kernel(backend_name, self.name, op, precision_key(ftype))
        known = self._arg_specs(ftype)
        order = list(meta["arg_order"])
        step = KernelStep(name=op, func=meta["func"], args=order,
                          meta={"block": meta.get("block")})
        return ProgramSpec(
            backend=backend_name.upper(),
            precision=ftype,
            args={name: known[name] for name in order},
            steps=[step],
            output_arg=meta["produces"][0],
        )

    def evaluate_pixel(self, x: int, y: int, width: int, height: int,
                       st: Optional[RenderSettings] = None) -> PixelSample:
        """Run the escape-time math for a single pixel on the host."""
        st = st or RenderSettings()
        check_pixel(x, y, width, height)
        max_iter = self.build_arg_values(st)["max_iter"]
        ftype = np.dtype(st.precision).type
        map_pixel, escape_iteration, normalized_value, _ = PIXEL_OPS[precision_key(ftype)]
        cx, cy = map_pixel(x, y, width, height)
        # numba hands scalars back as Python floats; keep the loop in ftype
        final = int(escape_iteration(ftype(cx), ftype(cy), max_iter))
        value = float(normalized_value(final, max_iter))
        return PixelSample(c=(float(cx), float(cy)), final_iteration=final, value=value)
