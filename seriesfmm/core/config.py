"""
Config Module

Parameters shared by the expansions of one kernel summation.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..kernels import Kernel, create_kernel
from .expansion import FarFieldExpansion, LocalExpansion
from .series_aux import SeriesExpansionAux


@dataclass
class ExpansionConfig:
    """Configuration for series expansions."""
    dimension: int = 2           # Spatial dimension
    max_order: int = 8           # Highest truncation order the tables support
    bandwidth: float = 1.0       # Kernel bandwidth h
    kernel: str = 'gaussian'     # Kernel family

    def __post_init__(self):
        """Validate configuration."""
        if self.dimension < 1:
            raise ValueError("Dimension must be positive")
        if self.max_order < 0:
            raise ValueError("Max order must be non-negative")
        if self.bandwidth <= 0:
            raise ValueError("Bandwidth must be positive")
        # fails early on unknown kernel names
        create_kernel(self.kernel, bandwidth=self.bandwidth)

    def build_aux(self) -> SeriesExpansionAux:
        """Build the multi-index table shared by all expansions of this config."""
        return SeriesExpansionAux(self.max_order, self.dimension)

    def build_kernel(self) -> Kernel:
        return create_kernel(self.kernel, bandwidth=self.bandwidth)

    def local_expansion(self, sea: SeriesExpansionAux,
                        center: Optional[np.ndarray] = None) -> LocalExpansion:
        """Create a local expansion with this config's kernel."""
        return LocalExpansion(self.bandwidth, sea, center, kernel=self.kernel)

    def far_field_expansion(self, sea: SeriesExpansionAux,
                            center: Optional[np.ndarray] = None) -> FarFieldExpansion:
        """Create a far-field expansion with this config's kernel."""
        return FarFieldExpansion(self.bandwidth, sea, center, kernel=self.kernel)
