"""
Series Expansion Auxiliary Module

Precomputed multi-index tables shared by every series expansion of a given
dimension and maximum order.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.special import comb, factorial

logger = logging.getLogger(__name__)


class SeriesExpansionAux:
    """
    Read-only lookup tables for multivariate Taylor series bookkeeping.

    Multi-indices are enumerated by increasing total degree. Within a degree
    they follow the power recurrence used by compute_monomials (each monomial
    of degree k is a monomial of degree k-1 extended by one dimension), so
    position j of a coefficient buffer always pairs with the j-th monomial.

    A single instance is meant to be built once and handed to every
    expansion that shares its dimension.
    """

    def __init__(self, max_order: int, dimension: int):
        """
        Build the tables.

        Args:
            max_order: Maximum truncation order supported by the tables
            dimension: Spatial dimension of the expansions
        """
        if dimension < 1:
            raise ValueError("Dimension must be positive")
        if max_order < 0:
            raise ValueError("Max order must be non-negative")

        self._dimension = dimension
        self._max_order = max_order

        # factorials are needed up to twice the max order for the bound search
        self._factorials = factorial(np.arange(2 * max_order + 1), exact=False)

        self._multiindices = self._enumerate_multiindices()
        self._positions = {alpha: j for j, alpha in enumerate(self._multiindices)}
        self._multiindex_array = np.array(self._multiindices, dtype=np.int64)

        degrees = self._multiindex_array.sum(axis=1)
        self._multiindex_factorials = np.prod(
            factorial(self._multiindex_array, exact=False), axis=1
        )
        self._inv_multiindex_factorials = 1.0 / self._multiindex_factorials
        self._neg_inv_multiindex_factorials = (
            (-1.0) ** degrees * self._inv_multiindex_factorials
        )

        # n_multichoose_k[upper, lower] = prod_d C(upper_d, lower_d)
        exps = self._multiindex_array
        self._n_multichoose_k = np.prod(
            comb(exps[:, None, :], exps[None, :, :]), axis=2
        )

        self._upper_mapping_index: List[List[int]] = []
        self._lower_mapping_index: List[List[int]] = []
        for alpha in exps:
            upper = np.all(exps >= alpha, axis=1)
            lower = np.all(exps <= alpha, axis=1)
            self._upper_mapping_index.append(np.nonzero(upper)[0].tolist())
            self._lower_mapping_index.append(np.nonzero(lower)[0].tolist())

        logger.info("built multi-index tables: dimension=%d, max_order=%d, "
                    "%d coefficients", dimension, max_order,
                    len(self._multiindices))

    def _enumerate_multiindices(self) -> List[Tuple[int, ...]]:
        """Enumerate exponent tuples up to max_order in recurrence order."""
        dim = self._dimension
        indices = [(0,) * dim]
        heads = [0] * dim
        tail = 1

        for _ in range(self._max_order):
            for i in range(dim):
                head = heads[i]
                heads[i] = len(indices)
                for j in range(head, tail):
                    alpha = list(indices[j])
                    alpha[i] += 1
                    indices.append(tuple(alpha))
            tail = len(indices)

        return indices

    @property
    def dimension(self) -> int:
        """Return the spatial dimension."""
        return self._dimension

    @property
    def max_order(self) -> int:
        """Return the maximum supported truncation order."""
        return self._max_order

    @property
    def max_total_num_coeffs(self) -> int:
        """Number of coefficients of an expansion at the maximum order."""
        return len(self._multiindices)

    def total_num_coeffs(self, order: int) -> int:
        """
        Number of multi-indices whose total degree is at most order.

        This is C(order + dimension, dimension). Orders past max_order are
        allowed since the error bound looks one order ahead.
        """
        if order < 0:
            raise ValueError(f"Order must be non-negative, got {order}")
        return int(comb(order + self._dimension, self._dimension, exact=True))

    def multi_index(self, position: int) -> Tuple[int, ...]:
        """Return the exponent tuple stored at the given position."""
        return self._multiindices[position]

    def position(self, multi_index: Sequence[int]) -> int:
        """Return the position of an exponent tuple."""
        key = tuple(int(a) for a in multi_index)
        try:
            return self._positions[key]
        except KeyError:
            raise ValueError(
                f"Multi-index {key} is not in the table (max order {self._max_order})"
            ) from None

    @property
    def multiindex_array(self) -> np.ndarray:
        """All exponent tuples as an (num_coeffs, dimension) integer array."""
        return self._multiindex_array

    @property
    def inv_multiindex_factorials(self) -> np.ndarray:
        """1 / alpha! for every multi-index alpha."""
        return self._inv_multiindex_factorials

    @property
    def neg_inv_multiindex_factorials(self) -> np.ndarray:
        """(-1)^|alpha| / alpha! for every multi-index alpha."""
        return self._neg_inv_multiindex_factorials

    def inverse_factorial(self, position: int) -> float:
        return float(self._inv_multiindex_factorials[position])

    def negated_inverse_factorial(self, position: int) -> float:
        return float(self._neg_inv_multiindex_factorials[position])

    def factorial(self, n: int) -> Optional[float]:
        """
        Return n! from the precomputed table.

        Returns None when n lies outside the precomputed range, which callers
        treat as an invalid factorial term.
        """
        if n < 0 or n >= len(self._factorials):
            return None
        return float(self._factorials[n])

    def valid_upper_indices(self, position: int) -> List[int]:
        """
        Positions of the multi-indices beta with beta >= alpha componentwise.

        The list is in ascending position order, so callers working at a
        lower order can stop at the first position past their coefficient
        count.
        """
        return self._upper_mapping_index[position]

    def valid_lower_indices(self, position: int) -> List[int]:
        """Positions of the multi-indices gamma with gamma <= alpha componentwise."""
        return self._lower_mapping_index[position]

    def choose_weight(self, upper_position: int, lower_position: int) -> float:
        """Product of binomial coefficients C(beta_d, alpha_d) over dimensions."""
        return float(self._n_multichoose_k[upper_position, lower_position])

    def compute_monomials(self, x: np.ndarray, order: int) -> np.ndarray:
        """
        Compute x^alpha for every multi-index alpha up to the given order.

        Monomials of degree k are obtained by multiplying the monomials of
        degree k-1 by one coordinate at a time, which reproduces the
        enumeration order of the table.

        Args:
            x: Point of the ambient dimension
            order: Highest total degree to generate

        Returns:
            Array of length total_num_coeffs(order)
        """
        dim = self._dimension
        powers = np.empty(self.total_num_coeffs(order), dtype=np.float64)
        powers[0] = 1.0

        heads = [0] * dim
        tail = 1
        t = 1
        for _ in range(order):
            for i in range(dim):
                head = heads[i]
                heads[i] = t
                count = tail - head
                powers[t:t + count] = powers[head:tail] * x[i]
                t += count
            tail = t

        return powers

    def __repr__(self) -> str:
        return (f"SeriesExpansionAux(dimension={self._dimension}, "
                f"max_order={self._max_order})")
