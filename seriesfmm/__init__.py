"""
Series Expansion FMM

Taylor/Hermite series expansions for fast summation of Gaussian-type
kernels (fast Gauss transform).

This package includes:
- Shared multi-index tables (enumeration, factorials, binomial weights)
- Far-field (Hermite) and local (Taylor) expansions
- Far-field-to-local, local-to-local and far-to-far translation
- Truncation order selection against an analytic error bound
"""

from seriesfmm.core import (
    SeriesExpansionAux,
    Interval,
    HRectBound,
    OrderFailure,
    OrderSelection,
    ExpansionConfig,
    Expansion,
    FarFieldExpansion,
    LocalExpansion,
)
from seriesfmm.kernels import (
    Kernel,
    GaussianKernel,
    KernelDerivative,
    GaussianKernelDerivative,
    create_kernel,
    create_kernel_derivative,
)

__version__ = '0.1.0'

__all__ = [
    # Core classes
    'SeriesExpansionAux',
    'Interval',
    'HRectBound',
    'OrderFailure',
    'OrderSelection',
    'ExpansionConfig',
    'Expansion',
    'FarFieldExpansion',
    'LocalExpansion',
    # Kernels
    'Kernel',
    'GaussianKernel',
    'KernelDerivative',
    'GaussianKernelDerivative',
    'create_kernel',
    'create_kernel_derivative',
]
