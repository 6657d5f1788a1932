"""
Order Selection Module

Result type of the truncation-order search performed against an error bound.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OrderFailure(Enum):
    """Reason the series cannot meet the requested accuracy."""
    REGION_TOO_WIDE = "region_too_wide"
    ORDER_CAPACITY_EXCEEDED = "order_capacity_exceeded"
    FACTORIAL_OUT_OF_RANGE = "factorial_out_of_range"


@dataclass(frozen=True)
class OrderSelection:
    """
    Outcome of an order search.

    Either order and actual_error are set, or failure names why no order up
    to the table's maximum meets the bound. On failure the caller has to
    fall back to direct evaluation.

    Attributes:
        order: Smallest sufficient truncation order (None on failure)
        actual_error: Error bound achieved at that order (None on failure)
        failure: Failure reason (None on success)
    """
    order: Optional[int] = None
    actual_error: Optional[float] = None
    failure: Optional[OrderFailure] = None

    def __post_init__(self):
        if (self.failure is None) == (self.order is None):
            raise ValueError("OrderSelection needs exactly one of order and failure")

    @classmethod
    def success(cls, order: int, actual_error: float) -> 'OrderSelection':
        return cls(order=order, actual_error=actual_error)

    @classmethod
    def fail(cls, failure: OrderFailure) -> 'OrderSelection':
        return cls(failure=failure)

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    def __bool__(self) -> bool:
        return self.succeeded
