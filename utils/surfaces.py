from __future__ import annotations
from typing import Sequence, Tuple

import numpy as np

CHANNELS = 4


class SurfaceError(ValueError):
    """A surface array has the wrong rank, channel count or dtype."""


def new_output_surface(width: int, height: int) -> np.ndarray:
    """Allocate a zeroed RGBA8 unorm surface laid out as (H, W, 4)."""
    if width <= 0 or height <= 0:
        raise SurfaceError(f"Surface size must be positive, got {width}x{height}.")
    return np.zeros((height, width, CHANNELS), dtype=np.uint8)


def new_input_surface(width: int, height: int,
                      color: Sequence[float] = (0.0, 0.0, 0.0, 0.0),
                      dtype=np.float32) -> np.ndarray:
    """Allocate a float RGBA surface filled with a constant colour."""
    if width <= 0 or height <= 0:
        raise SurfaceError(f"Surface size must be positive, got {width}x{height}.")
    if len(color) != CHANNELS:
        raise SurfaceError(f"Expected {CHANNELS} colour channels, got {len(color)}.")
    surf = np.empty((height, width, CHANNELS), dtype=dtype)
    surf[...] = np.asarray(color, dtype=dtype)
    return surf


def surface_size(surface: np.ndarray) -> Tuple[int, int]:
    """Return (width, height) of an (H, W, 4) surface."""
    return int(surface.shape[1]), int(surface.shape[0])


def validate_output_surface(surface: np.ndarray) -> Tuple[int, int]:
    if not isinstance(surface, np.ndarray):
        raise SurfaceError(f"Output surface must be a numpy array, got {type(surface).__name__}.")
    if surface.ndim != 3 or surface.shape[2] != CHANNELS:
        raise SurfaceError(f"Output surface must have shape (H, W, 4), got {surface.shape}.")
    if surface.dtype != np.uint8:
        raise SurfaceError(f"Output surface must be RGBA8 (uint8), got {surface.dtype}.")
    if not surface.flags.writeable:
        raise SurfaceError("Output surface is read-only.")
    if surface.shape[0] == 0 or surface.shape[1] == 0:
        raise SurfaceError("Output surface is empty.")
    return surface_size(surface)


def validate_input_surface(surface: np.ndarray) -> Tuple[int, int]:
    if not isinstance(surface, np.ndarray):
        raise SurfaceError(f"Input surface must be a numpy array, got {type(surface).__name__}.")
    if surface.ndim != 3 or surface.shape[2] != CHANNELS:
        raise SurfaceError(f"Input surface must have shape (H, W, 4), got {surface.shape}.")
    if not np.issubdtype(surface.dtype, np.floating):
        raise SurfaceError(
            f"Input surface must hold floating-point channels, got {surface.dtype}; "
            f"convert RGBA8 data with to_sampled().")
    if surface.shape[0] == 0 or surface.shape[1] == 0:
        raise SurfaceError("Input surface is empty.")
    return surface_size(surface)


def to_sampled(surface: np.ndarray, dtype=np.float32) -> np.ndarray:
    """
    Convert an RGBA surface to the float layout the kernels sample from.
    RGBA8 data is normalized to [0, 1]; float data is only cast.
    """
    arr = np.asarray(surface)
    if arr.ndim != 3 or arr.shape[2] != CHANNELS:
        raise SurfaceError(f"Surface must have shape (H, W, 4), got {arr.shape}.")
    if arr.dtype == np.uint8:
        return np.ascontiguousarray(arr, dtype=dtype) / dtype(255.0)
    if np.issubdtype(arr.dtype, np.floating):
        return np.ascontiguousarray(arr, dtype=dtype)
    raise SurfaceError(f"Unsupported surface dtype {arr.dtype}.")


class DispatchError(ValueError):
    """Dispatch extents or a pixel coordinate do not fit the output surface."""


def check_extents(surface: np.ndarray, width: int, height: int) -> None:
    """Reject a dispatch whose (width, height) differs from the output surface."""
    sw, sh = surface_size(surface)
    if (int(width), int(height)) != (sw, sh):
        raise DispatchError(
            f"Dispatch extents {width}x{height} do not match output surface {sw}x{sh}.")


def check_pixel(x: int, y: int, width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise DispatchError(f"Surface size must be positive, got {width}x{height}.")
    if not (0 <= x < width and 0 <= y < height):
        raise DispatchError(f"Pixel ({x}, {y}) is outside a {width}x{height} surface.")
