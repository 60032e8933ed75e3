from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List, Literal
import numpy as np
from abc import ABC, abstractmethod

from kernel_sources.escape_time import MAX_ITERATIONS
from utils.enums import WriteMode, FilterMode, AddressMode


@dataclass(frozen=True)
class SamplerConfig:
    """
    How the input surface is read.
    Filter selects nearest or bilinear lookup; address decides what happens
    to coordinates outside [0, 1]. Only mip level 0 is ever sampled.
    """
    filter: FilterMode = FilterMode.LINEAR
    address: AddressMode = AddressMode.CLAMP_TO_EDGE


@dataclass
class RenderSettings:
    """
    Holds the settings for one escape-time pass.
    Max_iter is the iteration budget and the "did not escape" sentinel.
    Mode picks between compositing the sampled input and the grey value.
    Precision selects the float type of the kernel arithmetic.
    """
    max_iter: int = MAX_ITERATIONS
    precision: Any = np.float32
    mode: WriteMode = WriteMode.COMPOSITE
    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    backend: Optional[str] = None


# --------------- Program-spec primitives ----------------------

# surface_in/surface_out are caller-owned; buffer_out is allocated by the backend.
ArgRole = Literal["scalar", "surface_in", "surface_out", "buffer_out"]


@dataclass(frozen=True)
class ArgSpec:
    """
    Describes a kernel argument.
    - role: semantic role
    - dtype: dtype to cast to
    - shape_expr: textual expression for shapes (e.g. "H, W, 4"); None means any size
    """
    name: str
    role: ArgRole
    dtype: Any
    shape_expr: Optional[str] = None


@dataclass(frozen=True)
class KernelStep:
    """
    A single kernel launch:
    - func: the kernel function
    - args: ordered list of ArgSpec names for this kernel
    - meta: optional launch metadata (e.g. CUDA block shape)
    """
    name: str
    func: Any
    args: List[str]
    meta: Optional[Dict[str, Any]]


@dataclass(frozen=True)
class ProgramSpec:
    """
    Full program for a backend:
    - backend: backend name
    - precision: data type for calculations (e.g., np.float32)
    - args: dict of ArgSpec (by name)
    - steps: list of KernelStep (execution order)
    - output_arg: name of the buffer that holds the final result
    """
    backend: str
    precision: Any
    args: Dict[str, ArgSpec]
    steps: List[KernelStep]
    output_arg: str


class Fractal(ABC):
    """
    An abstract base class for fractal types.
    """
    name: str

    @abstractmethod
    def build_arg_values(self, st: RenderSettings) -> Dict[str, Any]:
        ...

    @abstractmethod
    def get_program_spec(self, st: RenderSettings, backend_name: str,
                         op: str) -> ProgramSpec:
        ...
