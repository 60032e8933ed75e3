import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Tuple

import numpy as np

from fractals.base import Fractal, RenderSettings, ProgramSpec, ArgSpec
from utils.shape_helper import eval_shape_expr, ShapeExprError

logger = logging.getLogger(__name__)

OPS = ("shade", "iter")


class Backend(ABC):
    """
    A base class for escape-time dispatch backends.

    A backend compiles the fractal's kernel ops once and then runs one
    dispatch per call over a (width, height) index range.
    """
    name: str

    def __init__(self) -> None:
        self.programs: Dict[str, ProgramSpec] = {}

    @abstractmethod
    def compile(self,
                fractal: Fractal,
                settings: RenderSettings
                ) -> None:
        ...

    @abstractmethod
    def dispatch_async(self,
                       fractal: Fractal,
                       settings: RenderSettings,
                       target: np.ndarray,
                       source: np.ndarray,
                       width: int,
                       height: int
                       ) -> Tuple[np.ndarray, Any]:
        ...

    @abstractmethod
    def escape_counts(self,
                      fractal: Fractal,
                      settings: RenderSettings,
                      width: int,
                      height: int
                      ) -> np.ndarray:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def dispatch(self,
                 fractal: Fractal,
                 settings: RenderSettings,
                 target: np.ndarray,
                 source: np.ndarray,
                 width: int,
                 height: int
                 ) -> np.ndarray:
        out, evt = self.dispatch_async(fractal, settings, target, source, width, height)
        evt.wait()
        return out

    def _program(self, op: str) -> ProgramSpec:
        if not self.programs:
            raise RuntimeError("Backend has not been compiled yet")
        try:
            return self.programs[op]
        except KeyError:
            raise KeyError(f"{self.name} backend has no compiled op '{op}'") from None

    @staticmethod
    def _cast_scalar(spec: ArgSpec, scalars: Dict[str, Any]) -> Any:
        if spec.name not in scalars:
            raise KeyError(
                f"Missing scalar value for '{spec.name}' - "
                f"ensure fractal.build_arg_values() provides it."
            )
        val = scalars[spec.name]
        np_dt = np.dtype(spec.dtype)
        if np_dt == np.bool_:
            return np.bool_(bool(val))
        if np.issubdtype(np_dt, np.integer):
            return np_dt.type(int(val))
        return np_dt.type(float(val))

    @staticmethod
    def _buffer_shape(spec: ArgSpec, width: int, height: int) -> Tuple[int, ...]:
        try:
            return eval_shape_expr(spec.shape_expr, {"H": height, "W": width})
        except ShapeExprError as e:
            raise KeyError(f"Failed to allocate '{spec.name}': {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __del__(self):
        try:
            self.close()
        except Exception:
            logger.debug("%s backend close failed during finalization", getattr(self, "name", "?"))
