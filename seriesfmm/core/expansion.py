"""
Expansion Module

Defines the truncated series expansions of a Gaussian-type kernel used by
the fast Gauss transform:

- FarFieldExpansion: Hermite expansion around the center of a source cluster,
  valid for queries far from that cluster.
- LocalExpansion: Taylor expansion around the center of a query region,
  valid for queries near that center.

All coordinates entering the series are scaled by the kernel derivative's
bandwidth factor. Coefficient buffers are sized for the table's maximum
order; only the first total_num_coeffs(order) entries are meaningful.
"""

import logging
import math
import sys
from abc import ABC, abstractmethod
from typing import Optional, TextIO, Tuple

import numpy as np

from ..kernels import create_kernel, create_kernel_derivative
from .bounds import HRectBound
from .order_selection import OrderFailure, OrderSelection
from .series_aux import SeriesExpansionAux

logger = logging.getLogger(__name__)


class Expansion(ABC):
    """
    Abstract base class for series expansions.

    Holds the kernel, center, truncation order and coefficient buffer.
    The order only ever grows (through grow_order) and translations add
    into existing coefficients, so an expansion can aggregate contributions
    from any number of sources. Instances are not safe to mutate from
    several threads at once.
    """

    def __init__(self, bandwidth: float, sea: SeriesExpansionAux,
                 center: Optional[np.ndarray] = None, kernel: str = 'gaussian'):
        """
        Initialize the expansion.

        Args:
            bandwidth: Kernel bandwidth h
            sea: Shared multi-index table
            center: Expansion center; the zero vector if omitted, to be set
                later through the center attribute
            kernel: Kernel family name
        """
        if sea is None:
            raise ValueError("Series expansion auxiliary table is not initialized")

        self.kernel = create_kernel(kernel, bandwidth=bandwidth)
        self.kernel_derivative = create_kernel_derivative(kernel)
        self.sea = sea

        if center is None:
            center = np.zeros(sea.dimension, dtype=np.float64)
        self.center = center

        self._order = 0
        self._coefficients = np.zeros(sea.max_total_num_coeffs, dtype=np.float64)

    @property
    def center(self) -> np.ndarray:
        """Expansion center."""
        return self._center

    @center.setter
    def center(self, center: np.ndarray):
        center = np.array(center, dtype=np.float64)
        if center.shape != (self.sea.dimension,):
            raise ValueError(
                f"Center has shape {center.shape}, table dimension is {self.sea.dimension}"
            )
        self._center = center

    @property
    def order(self) -> int:
        """Current truncation order."""
        return self._order

    @property
    def max_order(self) -> int:
        """Maximum order supported by the multi-index table."""
        return self.sea.max_order

    @property
    def dimension(self) -> int:
        return self.sea.dimension

    @property
    def bandwidth_sq(self) -> float:
        return self.kernel.bandwidth_sq

    @property
    def coeffs(self) -> np.ndarray:
        """The full coefficient buffer."""
        return self._coefficients

    @property
    def num_coefficients(self) -> int:
        """Number of coefficients meaningful at the current order."""
        return self.sea.total_num_coeffs(self._order)

    def grow_order(self, new_order: int):
        """
        Raise the truncation order to new_order if it is higher.

        The order is never lowered, so higher-order information already
        present in the coefficients is kept.
        """
        if new_order < 0 or new_order > self.sea.max_order:
            raise ValueError(
                f"Order {new_order} outside supported range [0, {self.sea.max_order}]"
            )
        if new_order > self._order:
            logger.debug("%s order raised from %d to %d",
                         type(self).__name__, self._order, new_order)
            self._order = new_order

    def zero(self):
        """Reset coefficients and order, keeping the center and kernel."""
        self._coefficients.fill(0.0)
        self._order = 0

    def _bandwidth_factor(self) -> float:
        return self.kernel_derivative.bandwidth_factor(self.bandwidth_sq)

    def _check_compatible(self, other: 'Expansion'):
        if other.sea.dimension != self.sea.dimension:
            raise ValueError(
                f"Cannot translate between dimensions {other.sea.dimension} "
                f"and {self.sea.dimension}"
            )
        if not np.isclose(other.bandwidth_sq, self.bandwidth_sq):
            raise ValueError(
                f"Cannot translate between squared bandwidths {other.bandwidth_sq} "
                f"and {self.bandwidth_sq}"
            )

    def _check_points(self, data: np.ndarray, weights: np.ndarray,
                      begin: int, end: int) -> Tuple[np.ndarray, np.ndarray]:
        data = np.asarray(data, dtype=np.float64)
        weights = np.asarray(weights, dtype=np.float64)
        if data.ndim != 2 or data.shape[1] != self.sea.dimension:
            raise ValueError(
                f"Data must have shape (N, {self.sea.dimension}), got {data.shape}"
            )
        if weights.ndim != 1:
            raise ValueError(f"Weights must be one-dimensional, got shape {weights.shape}")
        if not 0 <= begin <= end <= data.shape[0]:
            raise ValueError(f"Invalid point range [{begin}, {end}) for {data.shape[0]} points")
        if weights.shape[0] < end:
            raise ValueError("Fewer weights than selected points")
        return data, weights

    def _query_point(self, data: Optional[np.ndarray], row_num: Optional[int],
                     x_q: Optional[np.ndarray]) -> np.ndarray:
        """Resolve exactly one of (data, row_num) and x_q into a point."""
        if (data is None) == (x_q is None):
            raise ValueError("Exactly one of (data, row_num) and x_q must be supplied")
        if data is not None:
            if row_num is None:
                raise ValueError("row_num is required together with data")
            data = np.asarray(data, dtype=np.float64)
            if data.ndim != 2 or not 0 <= row_num < data.shape[0]:
                raise ValueError(f"Row {row_num} is not a row of data with shape {data.shape}")
            point = data[row_num]
        else:
            if row_num is not None:
                raise ValueError("row_num is only valid together with data")
            point = np.asarray(x_q, dtype=np.float64)
        if point.shape != (self.sea.dimension,):
            raise ValueError(f"Query point must have dimension {self.sea.dimension}")
        return point

    @abstractmethod
    def accumulate_coeffs(self, data: np.ndarray, weights: np.ndarray,
                          begin: int, end: int, order: int):
        """Add the contribution of data[begin:end] to the coefficients."""
        pass

    @abstractmethod
    def evaluate_field(self, data: Optional[np.ndarray] = None,
                       row_num: Optional[int] = None,
                       x_q: Optional[np.ndarray] = None) -> float:
        """Evaluate the expansion at one query point."""
        pass

    def evaluate(self, points: np.ndarray) -> np.ndarray:
        """
        Evaluate the expansion at given points.

        Args:
            points: Array of points to evaluate at (N x dimension)

        Returns:
            Array of field values at each point
        """
        points = np.asarray(points, dtype=np.float64)
        if points.ndim == 1:
            points = points.reshape(1, -1)
        return np.array([self.evaluate_field(x_q=point) for point in points])

    @abstractmethod
    def _debug_title(self) -> str:
        pass

    @abstractmethod
    def _debug_term(self, multi_index: Tuple[int, ...]) -> str:
        pass

    def print_debug(self, name: str = "", stream: Optional[TextIO] = None):
        """Print the series represented by this expansion."""
        if stream is None:
            stream = sys.stderr
        dim = self.sea.dimension
        total_num_coeffs = self.sea.total_num_coeffs(self._order)

        stream.write(f"----- SERIESEXPANSION {name} ------\n")
        stream.write(f"{self._debug_title()}\n")
        stream.write("Center: " + " ".join(f"{c:g}" for c in self.center) + "\n")

        query = ",".join(f"x_q{d}" for d in range(dim))
        terms = [
            f"{self._coefficients[j]:g}{self._debug_term(self.sea.multi_index(j))}"
            for j in range(total_num_coeffs)
        ]
        stream.write(f"f({query}) = \\sum\\limits_{{x_r \\in R}} K(||x_q - x_r||) = "
                     + " + ".join(terms) + "\n")

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(center={self.center}, order={self._order}, "
                f"bandwidth={self.kernel.bandwidth:g})")


class FarFieldExpansion(Expansion):
    """
    Far-field (Hermite) expansion of a source cluster.

    f(x_q) = sum_alpha C_alpha h_alpha((x_q - x_R) / bf),
    C_alpha = sum_r w_r / alpha! ((x_r - x_R) / bf)^alpha

    Valid OUTSIDE the source region it was built from.
    """

    def accumulate_coeffs(self, data: np.ndarray, weights: np.ndarray,
                          begin: int, end: int, order: int):
        """
        Accumulate the far-field moments of data[begin:end].

        Args:
            data: Source points (N x dimension)
            weights: Source weights (N,)
            begin: First point to use
            end: One past the last point to use
            order: Requested order; raises the expansion order if higher
        """
        data, weights = self._check_points(data, weights, begin, end)
        self.grow_order(order)

        total_num_coeffs = self.sea.total_num_coeffs(self._order)
        inv_factorials = self.sea.inv_multiindex_factorials[:total_num_coeffs]
        bandwidth_factor = self._bandwidth_factor()

        for r in range(begin, end):
            x_r_minus_x_R = (data[r] - self.center) / bandwidth_factor
            monomials = self.sea.compute_monomials(x_r_minus_x_R, self._order)
            self._coefficients[:total_num_coeffs] += (
                weights[r] * inv_factorials * monomials
            )

    def evaluate_field(self, data: Optional[np.ndarray] = None,
                       row_num: Optional[int] = None,
                       x_q: Optional[np.ndarray] = None) -> float:
        """Evaluate sum_alpha C_alpha h_alpha((x_q - x_R) / bf)."""
        x_q = self._query_point(data, row_num, x_q)
        total_num_coeffs = self.sea.total_num_coeffs(self._order)

        x_q_minus_x_R = (x_q - self.center) / self._bandwidth_factor()
        derivative_map = self.kernel_derivative.compute_directional_derivatives(
            x_q_minus_x_R, self._order
        )
        derivatives = self.kernel_derivative.compute_partial_derivative(
            derivative_map, self.sea.multiindex_array[:total_num_coeffs]
        )
        return float(np.dot(self._coefficients[:total_num_coeffs], derivatives))

    def translate_from_far_field(self, se: 'FarFieldExpansion'):
        """
        Shift another far-field expansion to this center and add it here.

        C'_alpha += sum_{gamma <= alpha} C_gamma delta^(alpha - gamma) / (alpha - gamma)!
        with delta = (x_R_source - x_R) / bf.
        """
        self._check_compatible(se)
        self.grow_order(se.order)

        source_num_coeffs = self.sea.total_num_coeffs(se.order)
        total_num_coeffs = self.sea.total_num_coeffs(self._order)
        source_coeffs = se.coeffs
        exps = self.sea.multiindex_array

        center_diff = (se.center - self.center) / se._bandwidth_factor()

        for j in range(total_num_coeffs):
            pos_coeffs = 0.0
            neg_coeffs = 0.0

            for k in self.sea.valid_lower_indices(j):
                if k >= source_num_coeffs:
                    break
                diff = exps[j] - exps[k]
                prod = (source_coeffs[k] * np.prod(center_diff ** diff) *
                        self.sea.inverse_factorial(self.sea.position(diff)))

                if prod > 0:
                    pos_coeffs += prod
                else:
                    neg_coeffs += prod

            self._coefficients[j] += pos_coeffs + neg_coeffs

    def _debug_title(self) -> str:
        return "Far field expansion"

    def _debug_term(self, multi_index: Tuple[int, ...]) -> str:
        return "".join(f"h_{a}(x_q{d} - ({c:g})) "
                       for d, (a, c) in enumerate(zip(multi_index, self.center)))


class LocalExpansion(Expansion):
    """
    Local (Taylor) expansion around the center of a query region.

    f(x_q) = sum_beta L_beta ((x_q - x_Q) / bf)^beta

    Valid INSIDE the region it represents.
    """

    def accumulate_coeffs(self, data: np.ndarray, weights: np.ndarray,
                          begin: int, end: int, order: int):
        """
        Accumulate the local moments of data[begin:end] into the coefficients.

        For every point the scaled displacement (x_Q - x_r) / bf feeds the
        kernel derivative generator, and each coefficient receives
        w_r (-1)^|beta| / beta! D^beta K.

        Args:
            data: Source points (N x dimension)
            weights: Source weights (N,)
            begin: First point to use
            end: One past the last point to use
            order: Requested order; raises the expansion order if higher
        """
        data, weights = self._check_points(data, weights, begin, end)
        self.grow_order(order)

        total_num_coeffs = self.sea.total_num_coeffs(self._order)
        neg_inv_multiindex_factorials = (
            self.sea.neg_inv_multiindex_factorials[:total_num_coeffs]
        )
        multiindices = self.sea.multiindex_array[:total_num_coeffs]
        bandwidth_factor = self._bandwidth_factor()

        for r in range(begin, end):
            x_r_minus_x_Q = (self.center - data[r]) / bandwidth_factor

            derivative_map = self.kernel_derivative.compute_directional_derivatives(
                x_r_minus_x_Q, self._order
            )
            derivatives = self.kernel_derivative.compute_partial_derivative(
                derivative_map, multiindices
            )

            self._coefficients[:total_num_coeffs] += (
                neg_inv_multiindex_factorials * weights[r] * derivatives
            )

    def evaluate_field(self, data: Optional[np.ndarray] = None,
                       row_num: Optional[int] = None,
                       x_q: Optional[np.ndarray] = None) -> float:
        """
        Evaluate the local expansion at one query point.

        The query is either row row_num of data or the explicit point x_q;
        exactly one of the two must be given.
        """
        x_q = self._query_point(data, row_num, x_q)
        total_num_coeffs = self.sea.total_num_coeffs(self._order)

        x_Q_to_x_q = (x_q - self.center) / self._bandwidth_factor()
        monomials = self.sea.compute_monomials(x_Q_to_x_q, self._order)

        return float(np.dot(self._coefficients[:total_num_coeffs], monomials))

    def order_for_evaluating(self, local_region, min_dist_sq: float,
                             max_error: float) -> OrderSelection:
        """
        Find the smallest order whose truncation error bound is below max_error.

        The bound holds for any query in local_region whose sources lie at
        squared distance at least min_dist_sq from it. Nothing is mutated.

        Args:
            local_region: HRectBound (or (dim, 2) array) of query points
            min_dist_sq: Minimum squared distance between the regions
            max_error: Maximum tolerated error

        Returns:
            OrderSelection with the order and achieved bound, or the reason
            no supported order suffices
        """
        region = HRectBound.coerce(local_region)
        dim = self.sea.dimension
        if region.dim != dim:
            raise ValueError(f"Region has dimension {region.dim}, expected {dim}")

        frontfactor = self.kernel_derivative.error_front_factor(
            min_dist_sq, self.bandwidth_sq
        )
        widest_width = region.widest_width()
        r = widest_width / self.kernel_derivative.characteristic_scale(self.bandwidth_sq)

        # the Taylor series is only guaranteed to converge fast enough below 1
        if r >= 1.0:
            logger.debug("order search failed: width ratio %g >= 1", r)
            return OrderSelection.fail(OrderFailure.REGION_TOO_WIDE)

        r_raised_to_p_alpha = 1.0
        p_alpha = 0

        while True:
            if p_alpha > self.sea.max_order:
                logger.debug("order search failed: no order up to %d meets %g",
                             self.sea.max_order, max_error)
                return OrderSelection.fail(OrderFailure.ORDER_CAPACITY_EXCEEDED)

            r_raised_to_p_alpha *= r

            floor_fact = self.sea.factorial(p_alpha // dim)
            ceil_fact = self.sea.factorial(-(-p_alpha // dim))
            if floor_fact is None or ceil_fact is None:
                return OrderSelection.fail(OrderFailure.FACTORIAL_OUT_OF_RANGE)

            remainder = p_alpha % dim
            num_terms = (self.sea.total_num_coeffs(p_alpha + 1) -
                         self.sea.total_num_coeffs(p_alpha))

            ret = (frontfactor * num_terms * r_raised_to_p_alpha /
                   math.sqrt(floor_fact ** (dim - remainder) * ceil_fact ** remainder))

            if ret <= max_error:
                return OrderSelection.success(p_alpha, ret)
            p_alpha += 1

    def translate_from_far_field(self, se: FarFieldExpansion):
        """
        Convert a far-field expansion into local coefficients and add them here.

        L_beta += (-1)^|beta| / beta! sum_alpha C_alpha h_{alpha+beta}((x_Q - x_R) / bf)

        The inner sum over alpha is split into positive and negative parts
        before combining them.
        """
        self._check_compatible(se)
        self.grow_order(se.order)

        far_num_coeffs = self.sea.total_num_coeffs(se.order)
        total_num_coeffs = self.sea.total_num_coeffs(self._order)
        far_coeffs = se.coeffs[:far_num_coeffs]
        exps = self.sea.multiindex_array
        alpha_mappings = exps[:far_num_coeffs]

        cent_diff = (self.center - se.center) / self.kernel_derivative.bandwidth_factor(
            se.bandwidth_sq
        )
        derivative_map = self.kernel_derivative.compute_directional_derivatives(
            cent_diff, 2 * self._order
        )

        pos_arrtmp = np.zeros(total_num_coeffs)
        neg_arrtmp = np.zeros(total_num_coeffs)

        for j in range(total_num_coeffs):
            beta_plus_alpha = alpha_mappings + exps[j]
            derivative_factors = self.kernel_derivative.compute_partial_derivative(
                derivative_map, beta_plus_alpha
            )
            prods = far_coeffs * derivative_factors

            pos_arrtmp[j] = prods[prods > 0].sum()
            neg_arrtmp[j] = prods[prods <= 0].sum()

        C_k_neg = self.sea.neg_inv_multiindex_factorials[:total_num_coeffs]
        self._coefficients[:total_num_coeffs] += (pos_arrtmp + neg_arrtmp) * C_k_neg

    def translate_to_local(self, se: 'LocalExpansion'):
        """
        Re-center this expansion onto se and add the result to se.

        L'_alpha += sum_{beta >= alpha} L_beta C(beta, alpha) delta^(beta - alpha)
        with delta = (x_Q' - x_Q) / bf. The order of se is raised to this
        expansion's order if it is lower; that is part of the accumulation
        contract, not a side effect.
        """
        self._check_compatible(se)

        total_num_coeffs = self.sea.total_num_coeffs(self._order)
        exps = self.sea.multiindex_array

        center_diff = (se.center - self.center) / self._bandwidth_factor()

        se.grow_order(self._order)
        new_coeffs = se._coefficients

        for j in range(total_num_coeffs):
            alpha_mapping = exps[j]
            pos_coeffs = 0.0
            neg_coeffs = 0.0

            for k in self.sea.valid_upper_indices(j):
                if k >= total_num_coeffs:
                    break

                tmp_storage = exps[k] - alpha_mapping
                if np.any(tmp_storage < 0):
                    continue

                diff1 = np.prod(center_diff ** tmp_storage)
                prod = self._coefficients[k] * diff1 * self.sea.choose_weight(k, j)

                if prod > 0:
                    pos_coeffs += prod
                else:
                    neg_coeffs += prod

            new_coeffs[j] += pos_coeffs + neg_coeffs

    def _debug_title(self) -> str:
        return "Local expansion"

    def _debug_term(self, multi_index: Tuple[int, ...]) -> str:
        return "".join(f"(x_q{d} - ({c:g}))^{a} "
                       for d, (a, c) in enumerate(zip(multi_index, self.center)))
