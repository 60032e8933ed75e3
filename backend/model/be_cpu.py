import logging
import time
from typing import Dict, Any, Tuple

import numpy as np

from fractals.base import Fractal, RenderSettings, ProgramSpec
from fractals.spec_validator import validate_program_spec
from backend.model.be_base import Backend, OPS
from utils.shape_helper import shape_matches
from utils.surfaces import (check_extents, validate_input_surface,
                            validate_output_surface, new_input_surface,
                            new_output_surface, SurfaceError)

logger = logging.getLogger(__name__)


class CpuEvent:
    """A minimal event-like object to mirror async interfaces (no-op)."""
    @staticmethod
    def wait() -> None:
        return None


class CpuBackend(Backend):
    """
    Backend for CPU dispatch. Kernels are numba njit functions that loop over
    rows with prange; one iteration of the inner loop is one pixel task.
    """
    name = "CPU"

    def __init__(self):
        super().__init__()
        self._fractal = None
        self._warmed_up = False

        # Warmup configuration
        self._wu_w, self._wu_h = 8, 8

    def compile(self, fractal: Fractal, settings: RenderSettings) -> None:
        """
        Pull the program specs from the fractal and force numba to compile
        every op once.
        """
        programs: Dict[str, ProgramSpec] = {}
        for op in OPS:
            spec = fractal.get_program_spec(settings, self.name, op)
            validate_program_spec(spec, backend_hint=self.name)
            programs[op] = spec
        self.programs = programs
        self._fractal = fractal
        self._warmed_up = False
        self._warmup(settings)

    def _warmup(self, settings: RenderSettings) -> None:
        if self._warmed_up or not self.programs or self._fractal is None:
            return

        t0 = time.perf_counter()
        w, h = self._wu_w, self._wu_h
        src = new_input_surface(w, h, dtype=self.programs["shade"].precision)
        self.dispatch(self._fractal, settings, new_output_surface(w, h), src, w, h)
        self.escape_counts(self._fractal, settings, w, h)
        self._warmed_up = True
        logger.debug("CPU warmup took %.1f ms", (time.perf_counter() - t0) * 1000.0)

    def dispatch_async(
            self,
            fractal: Fractal,
            settings: RenderSettings,
            target: np.ndarray,
            source: np.ndarray,
            width: int,
            height: int,
    ) -> Tuple[np.ndarray, CpuEvent]:
        """
        Synchronous CPU execution, but returns (target, CpuEvent) for API parity.
        """
        program = self._program("shade")
        validate_output_surface(target)
        validate_input_surface(source)
        check_extents(target, width, height)

        scalars = fractal.build_arg_values(settings)
        arg_map = self._prepare_arg_map(program, scalars, width, height,
                                        {"src": source, "out": target})
        self._run(program, arg_map)
        return target, CpuEvent()

    def escape_counts(self, fractal: Fractal, settings: RenderSettings,
                      width: int, height: int) -> np.ndarray:
        program = self._program("iter")
        scalars = fractal.build_arg_values(settings)
        arg_map = self._prepare_arg_map(program, scalars, width, height, {})
        self._run(program, arg_map)
        return arg_map[program.output_arg]

    @staticmethod
    def _run(program: ProgramSpec, arg_map: Dict[str, Any]) -> None:
        for step in program.steps:
            ordered = [arg_map[name] for name in step.args]
            step.func(*ordered)

    def _prepare_arg_map(
            self,
            program: ProgramSpec,
            scalars: Dict[str, Any],
            width: int,
            height: int,
            surfaces: Dict[str, np.ndarray],
    ) -> Dict[str, Any]:
        """
        Build a dict name->value for the kernel call. Caller-owned surfaces are
        bound as they are; buffer_out args are allocated here.
        """
        H, W = int(height), int(width)
        arg_map: Dict[str, Any] = {}

        for name, spec in program.args.items():
            if spec.role == "scalar":
                arg_map[name] = self._cast_scalar(spec, scalars)

            elif spec.role == "buffer_out":
                arg_map[name] = np.zeros(self._buffer_shape(spec, W, H),
                                         dtype=np.dtype(spec.dtype))

            elif spec.role == "surface_out":
                arr = surfaces[name]
                if spec.shape_expr and not shape_matches(spec.shape_expr, arr.shape, {"H": H, "W": W}):
                    raise SurfaceError(f"'{name}' expected shape ({spec.shape_expr}), got {arr.shape}.")
                arg_map[name] = arr

            elif spec.role == "surface_in":
                arr = surfaces[name]
                if arr.dtype != np.dtype(spec.dtype):
                    logger.debug("Casting '%s' from %s to %s", name, arr.dtype, np.dtype(spec.dtype))
                    arr = arr.astype(spec.dtype)
                arg_map[name] = np.ascontiguousarray(arr)

            else:
                raise ValueError(
                    f"Unknown ArgSpec.role for '{name}': {spec.role}")

        return arg_map

    def close(self) -> None:
        self.programs = {}
        self._fractal = None
        self._warmed_up = False
