# -*- coding: utf-8 -*-
"""pandas-ta stream – windowed primitives.

WindowedMean
    O(1) arithmetic mean over the last ``capacity`` values, with a
    timestamp gate (``min_gap``) that silently skips samples arriving
    too soon.
RollingExtrema
    Amortized O(1) min and max via two monotonic deques over a window
    that trims itself adaptively:  it shrinks while the tracked range
    ``(max - min) / min`` exceeds ``target_range`` and grows up to ten
    times ``capacity`` while the series stays flat.

Both split their update into ``plan`` (pure) and ``commit`` so the
indicators built on top can project several primitives first and only
mutate once every projection succeeded.
"""
from __future__ import annotations

import math
import warnings
from collections import deque
from itertools import chain, islice
from typing import Any, Deque, Iterator, List, NamedTuple, Optional, Tuple

from ._base import NAN, ConfigError, InvariantError


# ===========================================================================
# WindowedMean
# ===========================================================================

class MeanStep(NamedTuple):
    """Pending WindowedMean update returned by ``WindowedMean.plan``."""
    accepted:  bool
    timestamp: int
    value:     float
    total:     float     # running sum after the update
    evicted:   int       # number of oldest values dropped
    mean:      float     # mean after the update (unchanged if rejected)


class WindowedMean:
    """Simple moving average with a running sum.

    ``mean()`` equals the seed until the first accepted ``append``.
    """

    def __init__(self, capacity: int, min_gap: int = 0, seed: float = 0.0) -> None:
        if capacity < 1:
            raise ConfigError(f"WindowedMean capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.min_gap = min_gap
        self._values: Deque[float] = deque()
        self._sum = 0.0
        self._mean = float(seed)
        self._prev_mean = 0.0
        self._last_ts: Optional[int] = None

    def accepts(self, timestamp: int) -> bool:
        return self._last_ts is None or timestamp >= self._last_ts + self.min_gap

    def plan(self, timestamp: int, value: float) -> MeanStep:
        if not self.accepts(timestamp):
            return MeanStep(False, timestamp, value, self._sum, 0, self._mean)
        total = self._sum + value
        evicted = max(0, len(self._values) + 1 - self.capacity)
        for i in range(evicted):
            total -= self._values[i]
        count = len(self._values) + 1 - evicted
        return MeanStep(True, timestamp, value, total, evicted, total / count)

    def commit(self, step: MeanStep) -> float:
        if not step.accepted:
            return self._mean
        self._last_ts = step.timestamp
        self._values.append(step.value)
        for _ in range(step.evicted):
            self._values.popleft()
        self._sum = step.total
        self._prev_mean = self._mean
        self._mean = step.mean
        return self._mean

    def append(self, timestamp: int, value: float) -> float:
        return self.commit(self.plan(timestamp, value))

    def peek(self, value: float, timestamp: Optional[int] = None) -> float:
        """Mean after appending *value*, without appending it.

        With *timestamp* omitted the time gate is not consulted.
        """
        if timestamp is None:
            timestamp = self._last_ts + self.min_gap if self._last_ts is not None else 0
        return self.plan(timestamp, value).mean

    def mean(self) -> float:
        return self._mean

    def previous_mean(self) -> float:
        return self._prev_mean

    def count(self) -> int:
        return len(self._values)

    def is_full(self) -> bool:
        return len(self._values) == self.capacity

    def values(self, step: Optional[MeanStep] = None) -> Iterator[float]:
        """Iterate the window, or the window as it would be after *step*."""
        if step is None or not step.accepted:
            return iter(self._values)
        return chain(islice(self._values, step.evicted, None), (step.value,))

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return (f"WindowedMean(capacity={self.capacity}, count={len(self._values)}, "
                f"mean={self._mean!r})")


# ===========================================================================
# RollingExtrema
# ===========================================================================
# values : ground truth window, oldest first
# lows   : non-decreasing, lows[0]  == min(values)
# highs  : non-increasing, highs[0] == max(values)
#
# The trim/push routines below only use len(), [0], [-1], popleft(), pop()
# and append(), so they run unchanged on a real deque (commit) and on a
# _DequeView (plan / peek).

class _DequeView:
    """Copy-free projection of a deque: pops and appends are recorded,
    the underlying deque is only touched by ``apply``."""

    __slots__ = ("_base", "_head", "_end", "_tail", "_tail_head")

    def __init__(self, base: Deque[float]) -> None:
        self._base = base
        self._head = 0
        self._end = len(base)
        self._tail: List[float] = []
        self._tail_head = 0

    def __len__(self) -> int:
        return (self._end - self._head) + (len(self._tail) - self._tail_head)

    def __getitem__(self, index: int) -> float:
        if index == 0:
            if self._head < self._end:
                return self._base[self._head]
            return self._tail[self._tail_head]
        if index == -1:
            if len(self._tail) > self._tail_head:
                return self._tail[-1]
            return self._base[self._end - 1]
        raise IndexError("_DequeView only exposes its ends")

    def popleft(self) -> None:
        if self._head < self._end:
            self._head += 1
        else:
            self._tail_head += 1

    def pop(self) -> None:
        if len(self._tail) > self._tail_head:
            self._tail.pop()
        else:
            self._end -= 1

    def append(self, value: float) -> None:
        self._tail.append(value)

    def apply(self) -> None:
        base = self._base
        for _ in range(len(base) - self._end):
            base.pop()
        for _ in range(self._head):
            base.popleft()
        base.extend(self._tail[self._tail_head:])


def _relative_range(lows: Any, highs: Any) -> float:
    low = lows[0] if len(lows) else 0.0
    high = highs[0] if len(highs) else 0.0
    if low == 0.0:
        # x / 0 on floats: +inf for a positive spread, NaN (never > target) otherwise
        return math.inf if high > low else NAN
    return (high - low) / low


def _evict_front(values: Any, lows: Any, highs: Any) -> None:
    value = values[0]
    if len(lows) and value < lows[0]:
        raise InvariantError(f"wrong min deque value {value} min={lows[0]}")
    if len(highs) and value > highs[0]:
        raise InvariantError(f"wrong max deque value {value} max={highs[0]}")
    values.popleft()
    if len(lows) and value == lows[0]:
        lows.popleft()
    if len(highs) and value == highs[0]:
        highs.popleft()


def _push(values: Any, lows: Any, highs: Any, value: float,
          capacity: int, target_range: float) -> None:
    while (len(values) >= capacity * 10
           or (len(values) >= capacity
               and _relative_range(lows, highs) > target_range)):
        _evict_front(values, lows, highs)

    while len(lows) and lows[-1] > value:
        lows.pop()
    lows.append(value)
    while len(highs) and highs[-1] < value:
        highs.pop()
    highs.append(value)
    values.append(value)


class ExtremaPlan:
    """Pending RollingExtrema insertion returned by ``RollingExtrema.plan``."""

    __slots__ = ("values", "lows", "highs")

    def __init__(self, values: _DequeView, lows: _DequeView, highs: _DequeView) -> None:
        self.values = values
        self.lows = lows
        self.highs = highs

    def min(self) -> float:
        return self.lows[0] if len(self.lows) else 0.0

    def max(self) -> float:
        return self.highs[0] if len(self.highs) else 0.0

    def __len__(self) -> int:
        return len(self.values)


class RollingExtrema:
    """Rolling min/max over an adaptively trimmed window.

    ``min()`` / ``max()`` read 0.0 while empty; gate on ``len()`` before
    trusting them.
    """

    def __init__(self, capacity: int, target_range: float = 0.0001,
                 min_gap: int = 1000) -> None:
        if capacity < 0:
            raise ConfigError(f"RollingExtrema capacity must be >= 0, got {capacity}")
        if capacity == 0:
            warnings.warn(
                "RollingExtrema created with capacity 0; every insert will fail "
                "until capacity is set.",
                UserWarning,
                stacklevel=2,
            )
        self.capacity = capacity
        self.target_range = target_range
        self.min_gap = min_gap
        self._values: Deque[float] = deque()
        self._lows: Deque[float] = deque()
        self._highs: Deque[float] = deque()
        self._last_ts: Optional[int] = None

    def plan(self, *values: float) -> ExtremaPlan:
        """Project inserting *values* in order.  Raises before any mutation."""
        if self.capacity == 0:
            raise ConfigError("RollingExtrema capacity is 0")
        plan = ExtremaPlan(_DequeView(self._values),
                           _DequeView(self._lows),
                           _DequeView(self._highs))
        for value in values:
            _push(plan.values, plan.lows, plan.highs, value,
                  self.capacity, self.target_range)
        return plan

    def commit(self, plan: ExtremaPlan) -> None:
        plan.values.apply()
        plan.lows.apply()
        plan.highs.apply()

    def insert(self, value: float) -> None:
        self.commit(self.plan(value))

    def insert_many(self, *values: float) -> None:
        self.commit(self.plan(*values))

    def accepts(self, timestamp: int) -> bool:
        return self._last_ts is None or timestamp > self._last_ts + self.min_gap

    def insert_throttled(self, timestamp: int, value: float) -> None:
        """Insert only if more than ``min_gap`` has elapsed since the last
        accepted timestamp.  Rejection is a no-op."""
        if self.capacity == 0:
            raise ConfigError("RollingExtrema capacity is 0")
        if not self.accepts(timestamp):
            return
        self.insert(value)
        self._last_ts = timestamp

    def peek(self, *values: float) -> Tuple[float, float]:
        plan = self.plan(*values)
        return plan.min(), plan.max()

    def min(self) -> float:
        return self._lows[0] if self._lows else 0.0

    def max(self) -> float:
        return self._highs[0] if self._highs else 0.0

    def mid(self) -> float:
        return (self.max() + self.min()) / 2.0

    def is_full(self) -> bool:
        return len(self._values) >= self.capacity

    def values(self) -> Iterator[float]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return (f"RollingExtrema(capacity={self.capacity}, len={len(self._values)}, "
                f"min={self.min()!r}, max={self.max()!r})")
