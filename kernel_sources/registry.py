from __future__ import annotations
from typing import Dict, Any, List

# Nested dict: [fractal][op_name][backend][precision] -> meta
_REGISTRY: Dict[str, Dict[str, Dict[str, Dict[str, Dict[str, Any]]]]] = {}

def register_kernel(fractal: str, op_name: str, backend: str, precision: str, **meta: Any) -> None:
    """
    Register kernel metadata for a fractal, operation, backend and precision.
    Example:
        register_kernel("escape_time", "shade", "CPU", "f32", func=_shade, arg_order=[...])
    """
    _REGISTRY.setdefault(fractal, {}).setdefault(op_name, {}).setdefault(backend.upper(), {})[precision] = meta

def lookup_kernel(backend: str, fractal: str, op_name: str, precision: str) -> Dict[str, Any]:
    """
    Return registered kernel metadata.
    Raises KeyError if nothing is registered under the given key.
    """
    be = backend.upper()
    try:
        meta = _REGISTRY[fractal][op_name][be][precision]
    except KeyError as e:
        raise KeyError(f"Kernel not found for fractal='{fractal}', op='{op_name}', backend='{be}', precision='{precision}'") from e
    return meta

def list_kernels(fractal: str, backend: str, precision: str) -> List[str]:
    """
    List registered operation names for a fractal, backend and precision.
    """
    be = backend.upper()
    if fractal not in _REGISTRY:
        return []
    ops = []
    for op_name, backends in _REGISTRY[fractal].items():
        if be in backends and precision in backends[be]:
            ops.append(op_name)
    return sorted(ops)
