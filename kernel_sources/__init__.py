# Kernel sources package
from .loader import load_kernel
from .registry import register_kernel, lookup_kernel, list_kernels

__all__ = [
    "load_kernel",
    "lookup_kernel",
    "register_kernel",
    "list_kernels",
]
__version__ = "0.3.0"
