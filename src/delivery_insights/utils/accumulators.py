from __future__ import annotations

import heapq
import math
from dataclasses import dataclass
from typing import Hashable, Iterable, List, Tuple, TypeVar

import numpy as np

from ..errors import EmptyAggregateDomain, InsufficientSample, UndefinedCorrelation

K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True)
class Summary:
    """Count / sum / extrema over a set of values.

    Partials built on separate partitions combine with `merge`, which is
    associative and commutative, so the merged result does not depend on how
    the input was split.
    """
    count: int = 0
    total: float = 0.0
    minimum: float = math.inf
    maximum: float = -math.inf

    @classmethod
    def of(cls, values: Iterable[float]) -> "Summary":
        arr = np.asarray(list(values), dtype=float)
        if arr.size == 0:
            return cls()
        return cls(int(arr.size), float(arr.sum()), float(arr.min()), float(arr.max()))

    def merge(self, other: "Summary") -> "Summary":
        return Summary(
            count=self.count + other.count,
            total=self.total + other.total,
            minimum=min(self.minimum, other.minimum),
            maximum=max(self.maximum, other.maximum),
        )

    def _require_values(self):
        if self.count == 0:
            raise EmptyAggregateDomain("aggregate over zero values")

    @property
    def mean(self) -> float:
        self._require_values()
        return self.total / self.count

    @property
    def min(self) -> float:
        self._require_values()
        return self.minimum

    @property
    def max(self) -> float:
        self._require_values()
        return self.maximum


@dataclass(frozen=True)
class CorrelationAccumulator:
    """
    Running co-moments for a Pearson coefficient (Welford update, Chan et al.
    pairwise merge). Numerically stable for long series and mergeable across
    partitions.
    """
    n: int = 0
    mean_x: float = 0.0
    mean_y: float = 0.0
    m2_x: float = 0.0   # sum of squared deviations of x
    m2_y: float = 0.0
    c_xy: float = 0.0   # sum of co-deviations

    def add(self, x: float, y: float) -> "CorrelationAccumulator":
        n = self.n + 1
        dx = x - self.mean_x
        dy = y - self.mean_y
        mean_x = self.mean_x + dx / n
        mean_y = self.mean_y + dy / n
        return CorrelationAccumulator(
            n=n,
            mean_x=mean_x,
            mean_y=mean_y,
            m2_x=self.m2_x + dx * (x - mean_x),
            m2_y=self.m2_y + dy * (y - mean_y),
            c_xy=self.c_xy + dx * (y - mean_y),
        )

    @classmethod
    def of(cls, xs: Iterable[float], ys: Iterable[float]) -> "CorrelationAccumulator":
        acc = cls()
        for x, y in zip(xs, ys):
            acc = acc.add(float(x), float(y))
        return acc

    def merge(self, other: "CorrelationAccumulator") -> "CorrelationAccumulator":
        if other.n == 0:
            return self
        if self.n == 0:
            return other
        n = self.n + other.n
        dx = other.mean_x - self.mean_x
        dy = other.mean_y - self.mean_y
        weight = self.n * other.n / n
        return CorrelationAccumulator(
            n=n,
            mean_x=self.mean_x + dx * other.n / n,
            mean_y=self.mean_y + dy * other.n / n,
            m2_x=self.m2_x + other.m2_x + dx * dx * weight,
            m2_y=self.m2_y + other.m2_y + dy * dy * weight,
            c_xy=self.c_xy + other.c_xy + dx * dy * weight,
        )

    def coefficient(self) -> float:
        if self.n < 2:
            raise InsufficientSample(
                f"correlation needs at least 2 aligned points, got {self.n}"
            )
        if self.m2_x <= 0 or self.m2_y <= 0:
            raise UndefinedCorrelation("correlation is undefined for a constant series")
        r = self.c_xy / math.sqrt(self.m2_x * self.m2_y)
        return max(-1.0, min(1.0, r))


def top_n(items: Iterable[Tuple[K, float]], n: int) -> List[Tuple[K, float]]:
    """Largest `n` (key, value) pairs; ties go to the smaller key."""
    return heapq.nsmallest(n, items, key=lambda kv: (-kv[1], kv[0]))
