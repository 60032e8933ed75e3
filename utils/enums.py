from enum import Enum, IntEnum, auto

class BackendType(Enum):
    AUTO = auto()
    CUDA = auto()
    CPU = auto()

class WriteMode(Enum):
    COMPOSITE = auto()
    VISUALIZE = auto()

# Integer values are passed straight into the kernels.
class FilterMode(IntEnum):
    NEAREST = 0
    LINEAR = 1

class AddressMode(IntEnum):
    CLAMP_TO_EDGE = 0
    REPEAT = 1
    MIRROR_REPEAT = 2
