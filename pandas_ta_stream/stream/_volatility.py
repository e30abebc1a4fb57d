# -*- coding: utf-8 -*-
"""pandas-ta stream – volatility indicators.

Registered kinds
----------------
atr, stdev, stdev_pct
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from ._base import (
    NAN, NEUTRAL, _param, _as_int, _require,
    ConfigError,
    HistoryBuffer,
    PeekCommit,
    StatefulIndicator,
    STATEFUL_REGISTRY, SEED_REGISTRY,
    replay_seed,
)
from ._window import MeanStep, WindowedMean


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def true_range(high: float, low: float, prev_close: float) -> float:
    return max(high - low, abs(high - prev_close), abs(low - prev_close))


def _population_std(values: Sequence[float], mean: float) -> float:
    """Population std of *values* around a given *mean* (0.0 when empty)."""
    if not values:
        return 0.0
    total = 0.0
    for x in values:
        diff = x - mean
        total += diff * diff
    return math.sqrt(total / len(values))


def _return_std(prices: Sequence[float]) -> Optional[float]:
    """Population std of percentage step returns; None under two returns.

    Steps whose base price is <= 0 are skipped.
    """
    returns: List[float] = []
    for prev, price in zip(prices, prices[1:]):
        if prev <= 0.0:
            continue
        returns.append(100.0 * (price - prev) / prev)
    if len(returns) < 2:
        return None
    return _population_std(returns, sum(returns) / len(returns))


def volatility_percentage(prices: Sequence[float], period: int) -> List[Optional[float]]:
    """Percentage-return std over the trailing *period* steps, per position.

    Position ``i`` uses ``prices[max(0, i - period) : i + 1]``; positions
    with fewer than two usable returns read None.
    """
    _require(period, 1, "volatility period")
    prices = list(prices)
    return [_return_std(prices[max(0, i - period): i + 1]) for i in range(len(prices))]


def _mid(bid: float, ask: float) -> float:
    return (bid + ask) / 2.0


# ===========================================================================
# ATR
# ===========================================================================
# TR  = max(high - low, |high - prev_close|, |low - prev_close|)
# ATR = SMA(TR, period), seeded with 0.  The first candle only provides
# prev_close, so the first TR arrives with the second candle.
# Defaults: period=14

class _ATRPlan(NamedTuple):
    high:  float
    low:   float
    close: float
    step:  Optional[MeanStep]


class ATRState(PeekCommit):
    """Average true range over a WindowedMean of true ranges."""

    def __init__(self, period: int = 14, candle_period: int = 0) -> None:
        if period < 2:
            raise ConfigError(f"ATR period must be at least 2, got {period}")
        self.period = period
        self.candle_period = candle_period
        self.high = HistoryBuffer(period, "atr high")
        self.low = HistoryBuffer(period, "atr low")
        self.close = HistoryBuffer(period, "atr close")
        self._atr = WindowedMean(period, 0, 0.0)
        self._clock = 1

    def _project(self, high: float, low: float, close: float = NAN) -> Tuple[float, _ATRPlan]:
        if not len(self.close):
            return self._atr.mean(), _ATRPlan(high, low, close, None)
        step = self._atr.plan(self._clock, true_range(high, low, self.close[-1]))
        return step.mean, _ATRPlan(high, low, close, step)

    def _apply(self, plan: _ATRPlan) -> None:
        self.high.append(plan.high)
        self.low.append(plan.low)
        self.close.append(plan.close)
        if plan.step is not None:
            self._atr.commit(plan.step)
            self._clock += 1

    def peek(self, high: float, low: float) -> float:  # type: ignore[override]
        """ATR after a candle with this *high* / *low*; the close only
        matters for the candle after it."""
        return self._project(high, low)[0]

    def peek_wilder(self, high: float, low: float) -> float:
        """Wilder-style closed form ``(atr * (n - 1) + tr) / n``.

        Approximates ``peek``: a full SMA window drops its oldest true
        range instead of decaying it.
        """
        prev_close = self.close[-1] if len(self.close) else 0.0
        tr = true_range(high, low, prev_close)
        return (self._atr.mean() * (self.period - 1) + tr) / self.period

    def get(self) -> float:
        return self._atr.mean()

    def fluctuant_index(self, average_atr: Mapping[int, float]) -> float:
        """ATR/close against a reference ratio for ``candle_period``, in bp."""
        if not len(self.close):
            return NEUTRAL
        last_close = self.close[-1]
        if last_close == 0.0:
            return NAN
        avg = average_atr.get(self.candle_period, 0.0)
        return 10000.0 * (self._atr.mean() / last_close - avg)

    def __len__(self) -> int:
        return len(self.close)


def _atr_init(params: Dict[str, Any]) -> ATRState:
    length = _as_int(_param(params, "length", 14), 14)
    return ATRState(period=length)


def _atr_update(
    state: ATRState, bar: Dict[str, float], params: Dict[str, Any]
) -> Tuple[List[Optional[float]], ATRState]:
    value = state.add(bar["high"], bar["low"], bar["close"])
    return [value if len(state) > 1 else None], state


def _atr_peek(
    state: ATRState, bar: Dict[str, float], params: Dict[str, Any]
) -> List[Optional[float]]:
    return [state.peek(bar["high"], bar["low"]) if len(state) else None]


def _atr_output_names(params: Dict[str, Any]) -> List[str]:
    length = _as_int(_param(params, "length", 14), 14)
    return [f"ATRs_{length}"]


def _atr_seed(series: Dict[str, "pd.Series"], params: Dict[str, Any]) -> ATRState:  # noqa: F821
    """Reconstruct ATRState by replaying over the raw input series."""
    return replay_seed("atr", series, params)


STATEFUL_REGISTRY["atr"] = StatefulIndicator(
    kind="atr",
    inputs=("high", "low", "close"),
    init=_atr_init,
    update=_atr_update,
    peek=_atr_peek,
    output_names=_atr_output_names,
)
SEED_REGISTRY["atr"] = _atr_seed


# ===========================================================================
# STDEV  (rolling std of mid prices)
# ===========================================================================
# sma = SMA(mid, period), timestamp gated by min_gap
# std = population std of the last `period` recorded mids around sma
# Quotes with a non-positive mid are ignored.
# Defaults: period=20, max_length=period

class _StdevPlan(NamedTuple):
    step: MeanStep
    mid:  float
    std:  float


class StdevState(PeekCommit):
    """Rolling mean and standard deviation of bid/ask mid prices.

    ``add(timestamp, bid, ask)`` / ``peek(...)`` return ``(sma, std)``.
    """

    def __init__(self, period: int = 20, max_length: Optional[int] = None,
                 min_gap: int = 0) -> None:
        self.period = _require(period, 1, "stdev period")
        self._sma = WindowedMean(period, min_gap, 0.0)
        self.mids = HistoryBuffer(max_length or period, "stdev mids")
        self._std = 0.0

    def _project(self, timestamp: int, bid: float, ask: float) -> Tuple[Tuple[float, float], Optional[_StdevPlan]]:
        current = (self._sma.mean(), self._std)
        mid = _mid(bid, ask)
        if mid <= 0.0:
            return current, None
        step = self._sma.plan(timestamp, mid)
        if not step.accepted:
            return current, None
        std = _population_std(self.mids.window(self.period, (mid,)), step.mean)
        return (step.mean, std), _StdevPlan(step, mid, std)

    def _apply(self, plan: Optional[_StdevPlan]) -> None:
        if plan is None:
            return
        self._sma.commit(plan.step)
        self.mids.append(plan.mid)
        self._std = plan.std

    def get(self) -> Tuple[float, float]:
        return self._sma.mean(), self._std

    def get_sma(self) -> float:
        return self._sma.mean()

    def get_std(self) -> float:
        return self._std

    def __len__(self) -> int:
        return len(self.mids)


def _stdev_init(params: Dict[str, Any]) -> StdevState:
    length = _as_int(_param(params, "length", 20), 20)
    max_length = _as_int(_param(params, "max_length", length), length)
    min_gap = _as_int(_param(params, "min_gap", 0), 0)
    return StdevState(period=length, max_length=max_length, min_gap=min_gap)


def _stdev_readings(state: StdevState, bar: Dict[str, float], commit: bool) -> List[Optional[float]]:
    """Readings for *bar*; None until the first recorded quote."""
    outputs, plan = state._project(int(bar["timestamp"]), bar["bid"], bar["ask"])
    if commit:
        state._apply(plan)
    if plan is None and not len(state):
        return [None, None]
    return list(outputs)


def _stdev_update(
    state: StdevState, bar: Dict[str, float], params: Dict[str, Any]
) -> Tuple[List[Optional[float]], StdevState]:
    return _stdev_readings(state, bar, commit=True), state


def _stdev_peek(
    state: StdevState, bar: Dict[str, float], params: Dict[str, Any]
) -> List[Optional[float]]:
    return _stdev_readings(state, bar, commit=False)


def _stdev_output_names(params: Dict[str, Any]) -> List[str]:
    length = _as_int(_param(params, "length", 20), 20)
    return [f"STDEVm_{length}", f"STDEV_{length}"]


def _stdev_seed(series: Dict[str, "pd.Series"], params: Dict[str, Any]) -> StdevState:  # noqa: F821
    return replay_seed("stdev", series, params)


STATEFUL_REGISTRY["stdev"] = StatefulIndicator(
    kind="stdev",
    inputs=("timestamp", "bid", "ask"),
    init=_stdev_init,
    update=_stdev_update,
    peek=_stdev_peek,
    output_names=_stdev_output_names,
)
SEED_REGISTRY["stdev"] = _stdev_seed


# ===========================================================================
# STDEV_PCT  (std of percentage returns of mid prices)
# ===========================================================================
# Mid prices > 0 are recorded; the reading is the population std of the
# percentage returns over the last `period` steps (0.0 below two returns).
# Defaults: period=20, max_length=period+1

class StdevPctState(PeekCommit):
    """Volatility of mid-price returns, in percent."""

    def __init__(self, period: int = 20, max_length: Optional[int] = None) -> None:
        self.period = _require(period, 1, "stdev_pct period")
        self.mids = HistoryBuffer(max_length or period + 1, "stdev_pct mids")
        self._std = 0.0

    def _project(self, bid: float, ask: float) -> Tuple[float, Optional[Tuple[float, float]]]:
        mid = _mid(bid, ask)
        if mid <= 0.0:
            return self._std, None
        std = _return_std(self.mids.window(self.period + 1, (mid,)))
        std = 0.0 if std is None else std
        return std, (mid, std)

    def _apply(self, plan: Optional[Tuple[float, float]]) -> None:
        if plan is None:
            return
        mid, self._std = plan
        self.mids.append(mid)

    def get(self) -> float:
        return self._std

    def get_history_size(self) -> int:
        return len(self.mids)


def _stdev_pct_init(params: Dict[str, Any]) -> StdevPctState:
    length = _as_int(_param(params, "length", 20), 20)
    max_length = _as_int(_param(params, "max_length", length + 1), length + 1)
    return StdevPctState(period=length, max_length=max_length)


def _stdev_pct_update(
    state: StdevPctState, bar: Dict[str, float], params: Dict[str, Any]
) -> Tuple[List[Optional[float]], StdevPctState]:
    return [state.add(bar["bid"], bar["ask"])], state


def _stdev_pct_peek(
    state: StdevPctState, bar: Dict[str, float], params: Dict[str, Any]
) -> List[Optional[float]]:
    return [state.peek(bar["bid"], bar["ask"])]


def _stdev_pct_output_names(params: Dict[str, Any]) -> List[str]:
    length = _as_int(_param(params, "length", 20), 20)
    return [f"STDEVPCT_{length}"]


def _stdev_pct_seed(series: Dict[str, "pd.Series"], params: Dict[str, Any]) -> StdevPctState:  # noqa: F821
    return replay_seed("stdev_pct", series, params)


STATEFUL_REGISTRY["stdev_pct"] = StatefulIndicator(
    kind="stdev_pct",
    inputs=("bid", "ask"),
    init=_stdev_pct_init,
    update=_stdev_pct_update,
    peek=_stdev_pct_peek,
    output_names=_stdev_pct_output_names,
)
SEED_REGISTRY["stdev_pct"] = _stdev_pct_seed
