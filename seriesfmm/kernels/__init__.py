"""
Kernels Module

Radially symmetric kernels with a bandwidth, and the derivative generators
the series expansions use to build their Taylor coefficients.
"""

import numpy as np
from abc import ABC, abstractmethod


class Kernel(ABC):
    """Abstract base class for bandwidth-parameterized kernel functions."""

    def __init__(self, bandwidth: float):
        """
        Initialize the kernel.

        Args:
            bandwidth: Kernel bandwidth h
        """
        if bandwidth <= 0:
            raise ValueError("Bandwidth must be positive")
        self.bandwidth = float(bandwidth)

    @property
    def bandwidth_sq(self) -> float:
        """Return the squared bandwidth h^2."""
        return self.bandwidth ** 2

    @abstractmethod
    def __call__(self, x: np.ndarray, y: np.ndarray) -> float:
        """
        Evaluate kernel K(x, y).

        Args:
            x: Source point coordinates
            y: Target point coordinates

        Returns:
            Kernel value
        """
        pass

    @abstractmethod
    def gradient(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """
        Compute gradient of kernel with respect to target point.

        Args:
            x: Source point coordinates
            y: Target point coordinates

        Returns:
            Gradient vector
        """
        pass

    def direct_sum(self, data: np.ndarray, weights: np.ndarray,
                   query: np.ndarray) -> float:
        """
        Exhaustive weighted kernel sum at a query point.

        Args:
            data: Source points (N x dimension)
            weights: Source weights (N,)
            query: Query point

        Returns:
            sum_r weights[r] * K(data[r], query)
        """
        data = np.asarray(data, dtype=np.float64)
        weights = np.asarray(weights, dtype=np.float64)
        return float(sum(w * self(x_r, query) for x_r, w in zip(data, weights)))


class GaussianKernel(Kernel):
    """
    Gaussian kernel.

    K(x, y) = exp(-|x - y|^2 / (2 h^2))
    """

    def __call__(self, x: np.ndarray, y: np.ndarray) -> float:
        """Evaluate Gaussian kernel."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        dist_sq = np.sum((x - y) ** 2)
        return float(np.exp(-dist_sq / (2 * self.bandwidth_sq)))

    def gradient(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Compute gradient of Gaussian kernel."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        return (x - y) / self.bandwidth_sq * self(x, y)

    def direct_sum(self, data: np.ndarray, weights: np.ndarray,
                   query: np.ndarray) -> float:
        data = np.asarray(data, dtype=np.float64)
        weights = np.asarray(weights, dtype=np.float64)
        dist_sq = np.sum((data - np.asarray(query, dtype=np.float64)) ** 2, axis=1)
        return float(np.dot(weights, np.exp(-dist_sq / (2 * self.bandwidth_sq))))


class KernelDerivative(ABC):
    """
    Generates the partial derivatives of a kernel needed by series expansions.

    Coordinates handed to the generator are already scaled by
    bandwidth_factor, so the derivatives are those of the kernel profile
    in scaled units.
    """

    @abstractmethod
    def bandwidth_factor(self, bandwidth_sq: float) -> float:
        """Scale dividing coordinate differences before expansion."""
        pass

    @abstractmethod
    def compute_directional_derivatives(self, x: np.ndarray,
                                        max_order: int) -> np.ndarray:
        """
        Tabulate the derivatives needed up to max_order.

        Args:
            x: Scaled displacement vector
            max_order: Highest derivative order required per dimension

        Returns:
            Derivative table of shape (dimension, max_order + 1)
        """
        pass

    @abstractmethod
    def compute_partial_derivative(self, derivative_map: np.ndarray,
                                   multi_index) -> float:
        """Partial derivative for a multi-index, read from a derivative table."""
        pass

    @abstractmethod
    def error_front_factor(self, min_dist_sq: float, bandwidth_sq: float) -> float:
        """Kernel-dependent leading factor of the truncation error bound."""
        pass

    @abstractmethod
    def characteristic_scale(self, bandwidth_sq: float) -> float:
        """Length scale region widths are compared against for convergence."""
        pass


class GaussianKernelDerivative(KernelDerivative):
    """
    Derivatives of exp(-|x|^2) in coordinates scaled by sqrt(2 h^2).

    Along each dimension the table holds the Hermite functions
    h_k(x) = (-1)^k d^k/dx^k exp(-x^2), generated by

        h_0 = exp(-x^2), h_1 = 2x exp(-x^2), h_{k+1} = 2x h_k - 2k h_{k-1}

    and a mixed partial derivative is the product of the per-dimension
    entries, since the Gaussian factorizes over dimensions.
    """

    def bandwidth_factor(self, bandwidth_sq: float) -> float:
        return float(np.sqrt(2 * bandwidth_sq))

    def compute_directional_derivatives(self, x: np.ndarray,
                                        max_order: int) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        derivative_map = np.zeros((x.shape[0], max_order + 1), dtype=np.float64)

        derivative_map[:, 0] = np.exp(-x ** 2)
        if max_order > 0:
            derivative_map[:, 1] = 2 * x * derivative_map[:, 0]

        for k in range(1, max_order):
            derivative_map[:, k + 1] = (2 * x * derivative_map[:, k] -
                                        2 * k * derivative_map[:, k - 1])

        return derivative_map

    def compute_partial_derivative(self, derivative_map: np.ndarray, multi_index):
        """
        Product over dimensions of the tabulated Hermite functions.

        multi_index may also be a (num_indices, dimension) array, in which
        case one derivative per row is returned.
        """
        multi_index = np.asarray(multi_index, dtype=np.int64)
        dims = np.arange(derivative_map.shape[0])
        result = np.prod(derivative_map[dims, multi_index], axis=-1)
        if multi_index.ndim == 1:
            return float(result)
        return result

    def error_front_factor(self, min_dist_sq: float, bandwidth_sq: float) -> float:
        return float(np.exp(-min_dist_sq / (4 * bandwidth_sq)))

    def characteristic_scale(self, bandwidth_sq: float) -> float:
        return float(2 * np.sqrt(bandwidth_sq))


def create_kernel(name: str, **kwargs) -> Kernel:
    """
    Factory function to create kernel instances.

    Args:
        name: Kernel type name ('gaussian')
        **kwargs: Kernel-specific parameters

    Returns:
        Kernel instance
    """
    name = name.lower()

    if name == 'gaussian':
        bandwidth = kwargs.get('bandwidth', 1.0)
        return GaussianKernel(bandwidth)
    else:
        raise ValueError(f"Unknown kernel type: {name}")


def create_kernel_derivative(name: str) -> KernelDerivative:
    """Factory function matching create_kernel for derivative generators."""
    name = name.lower()

    if name == 'gaussian':
        return GaussianKernelDerivative()
    else:
        raise ValueError(f"Unknown kernel type: {name}")


__all__ = [
    'Kernel',
    'GaussianKernel',
    'KernelDerivative',
    'GaussianKernelDerivative',
    'create_kernel',
    'create_kernel_derivative',
]
