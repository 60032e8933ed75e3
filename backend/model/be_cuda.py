import logging
from typing import Dict, Any, Optional, Tuple

import numpy as np
from numba import cuda

from fractals.base import Fractal, RenderSettings, ProgramSpec
from fractals.spec_validator import validate_program_spec
from backend.model.be_base import Backend, OPS
from utils.shape_helper import shape_matches
from utils.surfaces import (check_extents, validate_input_surface,
                            validate_output_surface, new_input_surface,
                            new_output_surface, SurfaceError)


logger = logging.getLogger(__name__)


class CudaBackend(Backend):
    """
    Backend for CUDA dispatch: one thread per pixel on a 16x16 block grid.
    """
    name = "CUDA"

    def __init__(self, device: Optional[int] = None, streams: int = 3):
        super().__init__()
        if not cuda.is_available():
            raise RuntimeError("CUDA not available")
        if device is not None:
            cuda.select_device(device)
        # Stream pool: round-robin over N streams
        self.streams = [cuda.stream() for _ in range(streams)] if streams > 0 else []
        self.threads_per_block = (16, 16)

        # Warm up params
        self._wu_width = 16
        self._wu_height = 16
        self._warmed_up = False

    # ------ stream helpers ---------
    def _get_stream(self) -> Any:
        if not self.streams:
            raise RuntimeError("CUDA backend is closed or has no streams")
        s = self.streams.pop(0)
        self.streams.append(s)
        return s

    def _blocks_per_grid(self, width: int, height: int) -> Tuple[int, int]:
        return (
            (width + self.threads_per_block[0] - 1) // self.threads_per_block[0],
            (height + self.threads_per_block[1] - 1) // self.threads_per_block[1],
        )

    # ------ compilation --------
    def compile(self, fractal: Fractal, settings: RenderSettings) -> None:
        programs: Dict[str, ProgramSpec] = {}
        for op in OPS:
            spec = fractal.get_program_spec(settings, self.name, op)
            validate_program_spec(spec, backend_hint=self.name)
            programs[op] = spec
        self.programs = programs
        self.threads_per_block = tuple(programs["shade"].steps[0].meta["block"])
        self._warmed_up = False
        self._warmup(fractal, settings)

    def _warmup(self, fractal: Fractal, settings: RenderSettings) -> None:
        """
        Launch every op once on a small grid so numba compiles the kernels.
        """
        if self._warmed_up or not self.programs:
            return
        w, h = self._wu_width, self._wu_height
        src = new_input_surface(w, h, dtype=self.programs["shade"].precision)
        self.dispatch(fractal, settings, new_output_surface(w, h), src, w, h)
        self.escape_counts(fractal, settings, w, h)
        self._warmed_up = True
        logger.debug("CUDA kernels warmed up on a %dx%d grid", w, h)

    # ------- dispatch --------

    def _bind(self, program: ProgramSpec, scalars: Dict[str, Any], width: int,
              height: int, surfaces: Dict[str, np.ndarray], stream) -> Dict[str, Any]:
        H, W = int(height), int(width)
        arg_map: Dict[str, Any] = {}
        for name, spec in program.args.items():
            if spec.role == "scalar":
                arg_map[name] = self._cast_scalar(spec, scalars)

            elif spec.role in ("buffer_out", "surface_out"):
                shape = self._buffer_shape(spec, W, H)
                host = surfaces.get(name)
                if host is not None and tuple(host.shape) != shape:
                    raise SurfaceError(f"'{name}' expected shape {shape}, got {host.shape}.")
                arg_map[name] = cuda.device_array(shape, dtype=np.dtype(spec.dtype), stream=stream)

            elif spec.role == "surface_in":
                host = surfaces[name]
                if host.dtype != np.dtype(spec.dtype):
                    logger.debug("Casting '%s' from %s to %s", name, host.dtype, np.dtype(spec.dtype))
                arr = np.ascontiguousarray(host, dtype=spec.dtype)
                arg_map[name] = cuda.to_device(arr, stream=stream)

            else:
                raise ValueError(
                    f"Unknown ArgSpec.role for '{name}': {spec.role}")
        return arg_map

    def _launch(self, program: ProgramSpec, arg_map: Dict[str, Any],
                width: int, height: int, stream) -> None:
        blocks = self._blocks_per_grid(width, height)
        for step in program.steps:
            ordered = [arg_map[name] for name in step.args]
            step.func[blocks, self.threads_per_block, stream](*ordered)

    def dispatch_async(
            self,
            fractal: Fractal,
            settings: RenderSettings,
            target: np.ndarray,
            source: np.ndarray,
            width: int,
            height: int,
    ) -> Tuple[np.ndarray, Any]:
        """
        Launch the shade kernel and queue the copy back into ``target``.
        The returned event completes once ``target`` holds the frame.
        """
        program = self._program("shade")
        validate_output_surface(target)
        validate_input_surface(source)
        check_extents(target, width, height)
        if not target.flags.c_contiguous:
            raise SurfaceError("CUDA output surface must be C-contiguous.")
        if not shape_matches(program.args["out"].shape_expr, target.shape, {"H": height, "W": width}):
            raise SurfaceError(f"Output surface shape {target.shape} does not match {width}x{height}.")

        s = self._get_stream()
        scalars = fractal.build_arg_values(settings)
        arg_map = self._bind(program, scalars, width, height,
                             {"src": source, "out": target}, s)
        self._launch(program, arg_map, width, height, s)

        arg_map[program.output_arg].copy_to_host(target, stream=s)
        done_evt = cuda.event(timing=False)
        done_evt.record(stream=s)
        return target, _CudaEvent(done_evt)

    def escape_counts(self, fractal: Fractal, settings: RenderSettings,
                      width: int, height: int) -> np.ndarray:
        program = self._program("iter")
        s = self._get_stream()
        scalars = fractal.build_arg_values(settings)
        arg_map = self._bind(program, scalars, width, height, {}, s)
        self._launch(program, arg_map, width, height, s)
        out = arg_map[program.output_arg].copy_to_host(stream=s)
        s.synchronize()
        return out

    def close(self) -> None:
        if self.streams:
            for s in self.streams:
                try:
                    s.synchronize()
                except Exception as e:
                    logger.exception("Error synchronizing CUDA stream during close: %s", e)
            self.streams.clear()
        self.streams = []
        self.programs = {}


class _CudaEvent:
    """Gives CUDA events the same wait() the CPU backend returns."""
    def __init__(self, evt) -> None:
        self._evt = evt

    def wait(self) -> None:
        self._evt.synchronize()
