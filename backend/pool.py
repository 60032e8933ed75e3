from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple, Optional, Type

import numpy as np
from numba import cuda

from backend.model.be_base import Backend
from backend.model.be_cpu import CpuBackend
from backend.model.be_cuda import CudaBackend
from fractals.base import Fractal, RenderSettings
from fractals.escape_time import precision_key
from utils.enums import BackendType

logger = logging.getLogger(__name__)


# Small descriptor of a backend implementation
@dataclass(frozen=True)
class BackendSpec:
    cls: Type[Backend]
    priority: int
    supports_devices: bool
    is_available: Callable[[], bool]


# Default registry
DEFAULT_BACKENDS: Dict[str, BackendSpec] = {
    "CPU":  BackendSpec(cls=CpuBackend,  priority=0,  supports_devices=False, is_available=lambda: True),
    "CUDA": BackendSpec(cls=CudaBackend, priority=10, supports_devices=True,  is_available=cuda.is_available),
}


class BackendPool:
    """
    Creates, caches and compiles backend instances.
    Keyed by (backend_name, device_id_or_None, precision_key), so passes at
    different precisions never share compiled programs.
    """

    def __init__(self, registry: Optional[Dict[str, BackendSpec]] = None) -> None:
        self.registry: Dict[str, BackendSpec] = registry or DEFAULT_BACKENDS
        self._cache: Dict[Tuple[str, Optional[int], str], Backend] = {}
        # precision_key -> (fractal, settings) the backends of that precision use
        self._compiled_args: Dict[str, Tuple[Fractal, RenderSettings]] = {}

    def available(self) -> list:
        """Backend names usable on this machine, highest priority first."""
        names = [n for n, spec in self.registry.items() if spec.is_available()]
        return sorted(names, key=lambda n: self.registry[n].priority, reverse=True)

    def resolve(self, name: Optional[str]) -> str:
        """Turn None / "AUTO" into the best available backend name."""
        if name is None or name.upper() == BackendType.AUTO.name:
            names = self.available()
            if not names:
                raise RuntimeError("No backend available")
            return names[0]
        key = name.upper()
        if key not in self.registry:
            raise KeyError(f"Unknown backend '{name}'")
        return key

    def get(self, name: Optional[str] = None, device: Optional[int] = None,
            precision: Any = np.float32) -> Backend:
        key_name = self.resolve(name)
        spec = self.registry[key_name]
        pkey = precision_key(precision)
        key = (key_name, device if spec.supports_devices else None, pkey)
        if key in self._cache:
            return self._cache[key]
        be = spec.cls(device=device) if spec.supports_devices else spec.cls()
        # If we already compiled for this precision, apply lazily to new instances
        if pkey in self._compiled_args:
            fractal, settings = self._compiled_args[pkey]
            be.compile(fractal, settings)
        self._cache[key] = be
        logger.debug("Created %s backend (device=%s, %s)", key_name, key[1], pkey)
        return be

    def compile_all(self, fractal: Fractal, settings: RenderSettings) -> None:
        """
        Record (fractal, settings) for their precision and eager-compile the
        cached instances of that precision. Programs depend only on precision,
        so a precision that is already compiled is left alone.
        Newly created instances will be lazily compiled when first retrieved.
        """
        pkey = precision_key(settings.precision)
        if pkey in self._compiled_args:
            return
        self._compiled_args[pkey] = (fractal, settings)
        for (_, _, be_pkey), be in list(self._cache.items()):
            if be_pkey == pkey:
                be.compile(fractal, settings)

    def close_all(self) -> None:
        for be in list(self._cache.values()):
            try:
                be.close()
            except Exception:
                logger.exception("Failed to close %s backend", getattr(be, "name", be))
        self._cache.clear()
        self._compiled_args = {}
