# -*- coding: utf-8 -*-
"""pandas-ta stream – overlap indicators.

Registered kinds
----------------
bbands
"""
from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ._base import (
    _param, _as_int, _as_float, _require,
    PeekCommit,
    StatefulIndicator,
    STATEFUL_REGISTRY, SEED_REGISTRY,
    replay_seed,
)
from ._window import MeanStep, WindowedMean


# ===========================================================================
# BBANDS  (Bollinger Bands)
# ===========================================================================
# mid   = SMA(close, window)
# std   = population std of the retained window around mid
# upper = mid + multiplier * std
# lower = mid - multiplier * std
# Defaults: window=20, multiplier=2.0

def _band_levels(values: Iterable[float], mean: float, multiplier: float) -> Tuple[float, float]:
    sq_sum = 0.0
    n = 0
    for x in values:
        diff = x - mean
        sq_sum += diff * diff
        n += 1
    variance = sq_sum / n if n else 0.0
    width = multiplier * math.sqrt(variance)
    return mean - width, mean + width


class BBandsState(PeekCommit):
    """Bollinger Bands over a WindowedMean.

    ``add(value)`` / ``peek(value)`` return ``(lower, mid, upper)``.
    """

    def __init__(self, window: int = 20, multiplier: float = 2.0,
                 values: Optional[Sequence[float]] = None) -> None:
        self.window = _require(window, 1, "Bollinger window")
        self.multiplier = multiplier
        self._sma = WindowedMean(window, 0, 0.0)
        self.lower = 0.0
        self.upper = 0.0
        self._clock = 1
        for value in values or ():
            self.add(value)

    def _project(self, value: float) -> Tuple[Tuple[float, float, float], Tuple[MeanStep, float, float]]:
        step = self._sma.plan(self._clock, value)
        lower, upper = _band_levels(self._sma.values(step), step.mean, self.multiplier)
        return (lower, step.mean, upper), (step, lower, upper)

    def _apply(self, plan: Tuple[MeanStep, float, float]) -> None:
        step, self.lower, self.upper = plan
        self._sma.commit(step)
        self._clock += 1

    def get(self) -> Tuple[float, float, float]:
        return self.lower, self._sma.mean(), self.upper

    def is_above_upper_band(self, value: float) -> bool:
        return value > self.upper

    def is_below_lower_band(self, value: float) -> bool:
        return value < self.lower

    def is_inside_band(self, value: float) -> bool:
        return self.lower <= value <= self.upper

    def __len__(self) -> int:
        return len(self._sma)


def _bbands_init(params: Dict[str, Any]) -> BBandsState:
    length = _as_int(_param(params, "length", 20), 20)
    std = _as_float(_param(params, "std", 2.0), 2.0)
    return BBandsState(window=length, multiplier=std)


def _bbands_update(
    state: BBandsState, bar: Dict[str, float], params: Dict[str, Any]
) -> Tuple[List[Optional[float]], BBandsState]:
    return list(state.add(bar["close"])), state


def _bbands_peek(
    state: BBandsState, bar: Dict[str, float], params: Dict[str, Any]
) -> List[Optional[float]]:
    return list(state.peek(bar["close"]))


def _bbands_output_names(params: Dict[str, Any]) -> List[str]:
    length = _as_int(_param(params, "length", 20), 20)
    std = _as_float(_param(params, "std", 2.0), 2.0)
    p = f"_{length}_{std}"
    return [f"BBL{p}", f"BBM{p}", f"BBU{p}"]


def _bbands_seed(series: Dict[str, "pd.Series"], params: Dict[str, Any]) -> BBandsState:  # noqa: F821
    return replay_seed("bbands", series, params)


STATEFUL_REGISTRY["bbands"] = StatefulIndicator(
    kind="bbands",
    inputs=("close",),
    init=_bbands_init,
    update=_bbands_update,
    peek=_bbands_peek,
    output_names=_bbands_output_names,
)
SEED_REGISTRY["bbands"] = _bbands_seed
