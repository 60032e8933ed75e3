from __future__ import annotations

import logging
import time
from typing import Optional, Tuple

import numpy as np

from backend.model.be_base import Backend
from backend.pool import BackendPool
from fractals.base import RenderSettings
from fractals.escape_time import EscapeTimeFractal, values_from_counts
from utils.enums import WriteMode
from utils.surfaces import (check_extents, new_input_surface, new_output_surface,
                            surface_size, to_sampled, validate_output_surface,
                            DispatchError)

logger = logging.getLogger(__name__)


class PingPongSurfaces:
    """
    The surface pair one post-process pass binds: a float input that is
    sampled and an RGBA8 output that is written. swap() turns the last output
    into the next input so passes can be chained frame to frame.
    """

    def __init__(self, width: int, height: int, precision=np.float32) -> None:
        self.precision = np.dtype(precision).type
        self.input = new_input_surface(width, height, dtype=self.precision)
        self.output = new_output_surface(width, height)

    @property
    def size(self) -> Tuple[int, int]:
        return surface_size(self.output)

    def load(self, frame: np.ndarray) -> None:
        """Replace the input with an existing frame (RGBA8 or float RGBA)."""
        self.input = to_sampled(frame, dtype=self.precision)

    def swap(self) -> None:
        self.input = to_sampled(self.output, dtype=self.precision)
        w, h = self.size
        self.output = new_output_surface(w, h)

    def resize(self, width: int, height: int) -> bool:
        """Reallocate both surfaces. Zero sizes and unchanged sizes are ignored."""
        if width <= 0 or height <= 0 or (width, height) == self.size:
            return False
        self.input = new_input_surface(width, height, dtype=self.precision)
        self.output = new_output_surface(width, height)
        logger.debug("Resized post-process surfaces to %dx%d", width, height)
        return True


class PostProcessManager:
    """
    Owns a compiled escape-time kernel on one backend and runs one pass per
    frame over an explicit (width, height) dispatch range.
    """

    def __init__(
        self,
        settings: Optional[RenderSettings] = None,
        *,
        pool: Optional[BackendPool] = None,
        fractal: Optional[EscapeTimeFractal] = None,
    ) -> None:
        self.settings = settings or RenderSettings()
        self.fractal = fractal or EscapeTimeFractal()
        # a caller-provided pool may serve other managers; only close our own
        self._owns_pool = pool is None
        self.pool = pool or BackendPool()
        self.pool.compile_all(self.fractal, self.settings)
        self.backend: Backend = self.pool.get(self.settings.backend,
                                              precision=self.settings.precision)
        logger.debug("Post-process pass ready on %s (max_iter=%d, mode=%s)",
                     self.backend.name, self.settings.max_iter, self.settings.mode.name)

    def render(self, source: Optional[np.ndarray], target: np.ndarray,
               width: int, height: int) -> np.ndarray:
        """
        Write one colour into every cell of ``target``.
        Extents must equal the target size; nothing is dispatched otherwise.
        """
        validate_output_surface(target)
        check_extents(target, width, height)
        if source is None:
            if self.settings.mode is not WriteMode.VISUALIZE:
                raise DispatchError("Compositing needs an input surface to sample.")
            # never read in visualize mode, but the kernel signature takes one
            source = new_input_surface(1, 1, dtype=self.settings.precision)

        t0 = time.perf_counter()
        out = self.backend.dispatch(self.fractal, self.settings, target, source, width, height)
        logger.debug("Post-process pass %dx%d on %s in %.2f ms", width, height,
                     self.backend.name, (time.perf_counter() - t0) * 1000.0)
        return out

    def render_surfaces(self, surfaces: PingPongSurfaces) -> np.ndarray:
        w, h = surfaces.size
        return self.render(surfaces.input, surfaces.output, w, h)

    def value_field(self, width: int, height: int) -> np.ndarray:
        """Normalized escape value of every pixel, shape (height, width)."""
        if width <= 0 or height <= 0:
            raise DispatchError(f"Dispatch extents must be positive, got {width}x{height}.")
        counts = self.backend.escape_counts(self.fractal, self.settings, width, height)
        return values_from_counts(counts, self.settings.max_iter, self.settings.precision)

    def close(self) -> None:
        if self._owns_pool:
            self.pool.close_all()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
