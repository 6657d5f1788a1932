"""
Bounds Module

Axis-aligned hyper-rectangles describing the regions an expansion is
evaluated over.
"""

from dataclasses import dataclass
from typing import Iterator, Sequence, Tuple, Union

import numpy as np


@dataclass(frozen=True)
class Interval:
    """Closed interval [lo, hi] along one dimension."""
    lo: float
    hi: float

    def __post_init__(self):
        if self.hi < self.lo:
            raise ValueError(f"Interval upper end {self.hi} below lower end {self.lo}")

    @property
    def width(self) -> float:
        return self.hi - self.lo

    @property
    def mid(self) -> float:
        return 0.5 * (self.lo + self.hi)

    def distance_to(self, x: float) -> float:
        """Distance from a coordinate to the interval (0 inside)."""
        return max(self.lo - x, x - self.hi, 0.0)

    def distance_to_interval(self, other: 'Interval') -> float:
        """Gap between two intervals (0 when they overlap)."""
        return max(other.lo - self.hi, self.lo - other.hi, 0.0)


class HRectBound:
    """
    Hyper-rectangle bound, one interval per dimension.

    Attributes:
        intervals: Per-dimension intervals
    """

    def __init__(self, intervals: Sequence[Union[Interval, Tuple[float, float]]]):
        self.intervals = tuple(
            iv if isinstance(iv, Interval) else Interval(float(iv[0]), float(iv[1]))
            for iv in intervals
        )
        if not self.intervals:
            raise ValueError("Bound needs at least one dimension")

    @classmethod
    def from_points(cls, points: np.ndarray) -> 'HRectBound':
        """Smallest bound containing all rows of points."""
        points = np.asarray(points, dtype=np.float64)
        if points.ndim == 1:
            points = points.reshape(1, -1)
        return cls(list(zip(points.min(axis=0), points.max(axis=0))))

    @classmethod
    def from_center(cls, center: np.ndarray, half_widths) -> 'HRectBound':
        """Bound centered at center with the given half widths (scalar or per-dimension)."""
        center = np.asarray(center, dtype=np.float64)
        half_widths = np.broadcast_to(np.asarray(half_widths, dtype=np.float64),
                                      center.shape)
        return cls(list(zip(center - half_widths, center + half_widths)))

    @classmethod
    def coerce(cls, bound) -> 'HRectBound':
        """Accept an HRectBound or a (dim, 2) array of [lo, hi] rows."""
        if isinstance(bound, HRectBound):
            return bound
        array = np.asarray(bound, dtype=np.float64)
        if array.ndim != 2 or array.shape[1] != 2:
            raise ValueError("Region must be an HRectBound or a (dim, 2) array")
        return cls([tuple(row) for row in array])

    @property
    def dim(self) -> int:
        return len(self.intervals)

    def get(self, d: int) -> Interval:
        return self.intervals[d]

    def __iter__(self) -> Iterator[Interval]:
        return iter(self.intervals)

    @property
    def center(self) -> np.ndarray:
        return np.array([iv.mid for iv in self.intervals])

    def widest_width(self) -> float:
        """Largest per-dimension width."""
        return max(iv.width for iv in self.intervals)

    def min_distance_sq(self, point: np.ndarray) -> float:
        """Squared distance from a point to the nearest point of the bound."""
        point = np.asarray(point, dtype=np.float64)
        if point.shape != (self.dim,):
            raise ValueError(f"Point must have dimension {self.dim}")
        return float(sum(iv.distance_to(x) ** 2 for iv, x in zip(self.intervals, point)))

    def min_distance_sq_to(self, other: 'HRectBound') -> float:
        """Squared distance between the nearest points of two bounds."""
        if other.dim != self.dim:
            raise ValueError("Bounds have different dimensions")
        return float(sum(a.distance_to_interval(b) ** 2
                         for a, b in zip(self.intervals, other.intervals)))

    def __repr__(self) -> str:
        ranges = ", ".join(f"[{iv.lo:g}, {iv.hi:g}]" for iv in self.intervals)
        return f"HRectBound({ranges})"
