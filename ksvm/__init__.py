from .exceptions import (
    KernelSVMError,
    InvalidInputError,
    DimensionMismatchError,
    DegenerateKernelWarning,
)

from .kernels import (
    LinearKernel,
    PolynomialKernel,
    GaussianKernel,
    CallableKernel,
    KERNELS,
    make_kernel,
    as_kernel,
    kernel_matrix,
    cross_kernel_matrix,
)

from .smo_solver import SMOResult, SimplifiedSMOSolver, smo_main_loop
from .selection import PositiveAlphaSelector, MeanAlphaSelector, get_selector
from .binary_svm import BinaryKernelSVM, BATCH_MEAN
from .multiclass import OneVsOneKernelSVM
from .serialization import save_binary, load_binary, save_multiclass, load_multiclass

__version__ = "0.1.0"

__all__ = [
    # Errors
    "KernelSVMError",
    "InvalidInputError",
    "DimensionMismatchError",
    "DegenerateKernelWarning",
    # Kernels
    "LinearKernel",
    "PolynomialKernel",
    "GaussianKernel",
    "CallableKernel",
    "KERNELS",
    "make_kernel",
    "as_kernel",
    "kernel_matrix",
    "cross_kernel_matrix",
    # SMO
    "SMOResult",
    "SimplifiedSMOSolver",
    "smo_main_loop",
    "PositiveAlphaSelector",
    "MeanAlphaSelector",
    "get_selector",
    # Models
    "BinaryKernelSVM",
    "OneVsOneKernelSVM",
    "BATCH_MEAN",
    # Persistence
    "save_binary",
    "load_binary",
    "save_multiclass",
    "load_multiclass",
]
