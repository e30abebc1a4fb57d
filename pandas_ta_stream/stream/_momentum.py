# -*- coding: utf-8 -*-
"""pandas-ta stream -- momentum indicators.

Each section follows the pattern:
  1. State class  (PeekCommit: ``_project`` pure, ``_apply`` persists)
  2. init / update / peek / output_names helpers
  3. STATEFUL_REGISTRY["<kind>"] = StatefulIndicator(...)
  4. SEED_REGISTRY["<kind>"]     = seed_fn   (replay over raw inputs)
"""
from __future__ import annotations

import math
from collections import deque
from typing import Any, Deque, Dict, List, NamedTuple, Optional, Sequence, Tuple

from ._base import (
    NEUTRAL,
    _param,
    _as_int,
    _require,
    ComputationError,
    HistoryBuffer,
    PeekCommit,
    StatefulIndicator,
    STATEFUL_REGISTRY,
    SEED_REGISTRY,
    replay_seed,
)
from ._window import ExtremaPlan, MeanStep, RollingExtrema, WindowedMean


OVERBOUGHT = 80.0
OVERSOLD = 20.0


def _percent_k(value: float, low: float, high: float, flat: float = 0.0) -> float:
    """100 * (value - low) / (high - low); 0.0 when the range is flat."""
    if abs(high - low) <= flat:
        return 0.0
    return 100.0 * (value - low) / (high - low)


# ===========================================================================
# KDJ
# ===========================================================================
# fastk = 100 * (close - lowest(high/low)) / (highest(high/low) - lowest(...))
#         over RollingExtrema(2 * fast_k) fed with high then low
# K = SMA(fastk, slow_k)
# D = SMA(K,     slow_d)
# J = 3*K - 2*D
# Defaults: fast_k=9, slow_k=3, slow_d=3

class _KDJPlan(NamedTuple):
    extrema: ExtremaPlan
    k_step:  MeanStep
    d_step:  MeanStep
    j:       float


class KDJState(PeekCommit):
    """KDJ oscillator.  ``add`` / ``peek`` return ``(k, d, j)``."""

    def __init__(self, fast_k: int = 9, slow_k: int = 3, slow_d: int = 3) -> None:
        self.fast_k = _require(fast_k, 1, "KDJ fast_k")
        self.slow_k = _require(slow_k, 1, "KDJ slow_k")
        self.slow_d = _require(slow_d, 1, "KDJ slow_d")
        self._extrema = RollingExtrema(fast_k * 2, 0.0001)
        self._k = WindowedMean(slow_k, 0, 0.0)
        self._d = WindowedMean(slow_d, 0, 0.0)
        self.j = 0.0
        self._clock = 1

    def _project(self, high: float, low: float, close: float) -> Tuple[Tuple[float, float, float], _KDJPlan]:
        extrema = self._extrema.plan(high, low)
        fastk = _percent_k(close, extrema.min(), extrema.max())
        k_step = self._k.plan(self._clock, fastk)
        d_step = self._d.plan(self._clock, k_step.mean)
        k, d = k_step.mean, d_step.mean
        j = 3.0 * k - 2.0 * d
        if math.isnan(j):
            raise ComputationError(f"KDJ J is nan K={k} D={d}")
        return (k, d, j), _KDJPlan(extrema, k_step, d_step, j)

    def _apply(self, plan: _KDJPlan) -> None:
        self._extrema.commit(plan.extrema)
        self._k.commit(plan.k_step)
        self._d.commit(plan.d_step)
        self.j = plan.j
        self._clock += 1

    def raw_k(self, close: float) -> float:
        """Unsmoothed %K of *close* against the committed high/low range."""
        return _percent_k(close, self._extrema.min(), self._extrema.max())

    def get(self) -> Tuple[float, float, float]:
        return self._k.mean(), self._d.mean(), self.j

    def j_centered(self) -> float:
        return self.j - 50.0

    def length(self) -> int:
        return len(self._extrema)

    # -- signal helpers (thresholds are the caller's policy) --------------

    def over_bought_sold(self, over_bought: float, over_sold: float) -> float:
        if not self._k.count():
            return NEUTRAL
        d = self._d.mean()
        if d > over_bought:
            return 1.0
        if d < over_sold:
            return -1.0
        return NEUTRAL

    def cross_golden_death(self, golden: float, death: float) -> float:
        """1.0 when K crosses above D at or below *golden*, -1.0 when it
        crosses below D at or above *death*."""
        if self._k.count() < 2:
            return NEUTRAL
        k, d = self._k.mean(), self._d.mean()
        k_prev, d_prev = self._k.previous_mean(), self._d.previous_mean()
        if k > d and k_prev < d_prev and k <= golden:
            return 1.0
        if k < d and k_prev > d_prev and k >= death:
            return -1.0
        return NEUTRAL

    def peak_bottom(self, peak: float, bottom: float) -> float:
        if not self._k.count():
            return NEUTRAL
        if self.j > peak:
            return 1.0
        if self.j < bottom:
            return -1.0
        return NEUTRAL


def _kdj_init(params: Dict[str, Any]) -> KDJState:
    length = _as_int(_param(params, "length", 9), 9)
    signal = _as_int(_param(params, "signal", 3), 3)
    return KDJState(fast_k=length, slow_k=signal, slow_d=signal)


def _kdj_update(
    state: KDJState, bar: Dict[str, Any], params: Dict[str, Any]
) -> Tuple[List[Optional[float]], KDJState]:
    return list(state.add(bar["high"], bar["low"], bar["close"])), state


def _kdj_peek(
    state: KDJState, bar: Dict[str, Any], params: Dict[str, Any]
) -> List[Optional[float]]:
    return list(state.peek(bar["high"], bar["low"], bar["close"]))


def _kdj_output_names(params: Dict[str, Any]) -> List[str]:
    length = _as_int(_param(params, "length", 9), 9)
    signal = _as_int(_param(params, "signal", 3), 3)
    p = f"_{length}_{signal}"
    return [f"K{p}", f"D{p}", f"J{p}"]


def _kdj_seed(series: Dict[str, Any], params: Dict[str, Any]) -> KDJState:
    return replay_seed("kdj", series, params)


STATEFUL_REGISTRY["kdj"] = StatefulIndicator(
    kind="kdj",
    inputs=("high", "low", "close"),
    init=_kdj_init,
    update=_kdj_update,
    peek=_kdj_peek,
    output_names=_kdj_output_names,
)
SEED_REGISTRY["kdj"] = _kdj_seed


# ===========================================================================
# MACD
# ===========================================================================
# MACD   = SMA(close, fast) - SMA(close, slow)
# Signal = SMA(MACD, signal)
# Hist   = MACD - Signal
# Defaults: fast=12, slow=26, signal=9, divergence=20
#
# Short histories feed the cross / divergence checks:
#   fast, slow, diff, signal -> 10 samples
#   hist                     -> max(divergence, 5) samples
#   price                    -> divergence samples

MACD_HISTORY = 10
CROSS_LOOKBACK = 5


class _MACDPlan(NamedTuple):
    price:       float
    fast_step:   MeanStep
    slow_step:   MeanStep
    signal_step: MeanStep
    diff:        float
    hist:        float


class MACDState(PeekCommit):
    """MACD over simple moving averages.

    ``add`` / ``peek`` return ``(macd, signal, hist)``.
    """

    def __init__(self, fast: int = 12, slow: int = 26, signal: int = 9,
                 divergence: int = 20, prices: Optional[Sequence[float]] = None) -> None:
        _require(fast, 1, "MACD fast")
        _require(slow, 1, "MACD slow")
        _require(signal, 1, "MACD signal")
        _require(divergence, 2, "MACD divergence window")
        if slow < fast:
            fast, slow = slow, fast
        self.fast, self.slow, self.signal = fast, slow, signal
        self.divergence = divergence
        self._fast = WindowedMean(fast, 0, 0.0)
        self._slow = WindowedMean(slow, 0, 0.0)
        self._signal = WindowedMean(signal, 0, 0.0)
        self.fast_history = HistoryBuffer(MACD_HISTORY, "macd fast")
        self.slow_history = HistoryBuffer(MACD_HISTORY, "macd slow")
        self.diff_history = HistoryBuffer(MACD_HISTORY, "macd diff")
        self.signal_history = HistoryBuffer(MACD_HISTORY, "macd signal")
        self.hist_history = HistoryBuffer(max(divergence, CROSS_LOOKBACK), "macd hist")
        self.price_history = HistoryBuffer(divergence, "macd price")
        self._clock = 1
        for price in prices or ():
            self.add(price)

    def _project(self, price: float) -> Tuple[Tuple[float, float, float], _MACDPlan]:
        fast_step = self._fast.plan(self._clock, price)
        slow_step = self._slow.plan(self._clock, price)
        diff = fast_step.mean - slow_step.mean
        signal_step = self._signal.plan(self._clock + 1, diff)
        hist = diff - signal_step.mean
        plan = _MACDPlan(price, fast_step, slow_step, signal_step, diff, hist)
        return (diff, signal_step.mean, hist), plan

    def _apply(self, plan: _MACDPlan) -> None:
        self._fast.commit(plan.fast_step)
        self._slow.commit(plan.slow_step)
        self._signal.commit(plan.signal_step)
        self._clock += 2

        self.fast_history.append(self._fast.mean())
        self.slow_history.append(self._slow.mean())
        self.diff_history.append(plan.diff)
        self.signal_history.append(self._signal.mean())
        self.hist_history.append(plan.hist)
        self.price_history.append(plan.price)

    def get(self) -> Tuple[float, float, float]:
        if not len(self.hist_history):
            return 0.0, 0.0, 0.0
        return self.diff_history[-1], self.signal_history[-1], self.hist_history[-1]

    def size(self) -> int:
        return len(self.slow_history)

    def check_cross(self) -> bool:
        """True when the histogram changed sign over the last five samples."""
        if len(self.diff_history) < CROSS_LOOKBACK:
            return False
        last = self.hist_history[-1]
        prev = self.hist_history[-CROSS_LOOKBACK]
        return (last > 0.0 and prev < 0.0) or (last < 0.0 and prev > 0.0)

    def check_divergence(self) -> float:
        """``price_slope - macd_slope`` when price and histogram slopes over
        the divergence window point in strictly opposite directions."""
        w = self.divergence
        if len(self.hist_history) < w or len(self.price_history) < w:
            return 0.0
        macd_slope = (self.hist_history[-1] - self.hist_history[-w]) / (w - 1)
        price_slope = (self.price_history[-1] - self.price_history[-w]) / (w - 1)
        if macd_slope * price_slope >= 0.0:
            return 0.0
        return price_slope - macd_slope


def _macd_init(params: Dict[str, Any]) -> MACDState:
    fast       = _as_int(_param(params, "fast",   12), 12)
    slow       = _as_int(_param(params, "slow",   26), 26)
    signal     = _as_int(_param(params, "signal",  9),  9)
    divergence = _as_int(_param(params, "divergence", 20), 20)
    return MACDState(fast=fast, slow=slow, signal=signal, divergence=divergence)


def _macd_update(
    state: MACDState, bar: Dict[str, Any], params: Dict[str, Any]
) -> Tuple[List[Optional[float]], MACDState]:
    return list(state.add(bar["close"])), state


def _macd_peek(
    state: MACDState, bar: Dict[str, Any], params: Dict[str, Any]
) -> List[Optional[float]]:
    return list(state.peek(bar["close"]))


def _macd_output_names(params: Dict[str, Any]) -> List[str]:
    fast   = _as_int(_param(params, "fast",   12), 12)
    slow   = _as_int(_param(params, "slow",   26), 26)
    signal = _as_int(_param(params, "signal",  9),  9)
    if slow < fast:
        fast, slow = slow, fast
    p = f"_{fast}_{slow}_{signal}"
    return [f"MACD{p}", f"MACDs{p}", f"MACDh{p}"]


def _macd_seed(series: Dict[str, Any], params: Dict[str, Any]) -> MACDState:
    return replay_seed("macd", series, params)


STATEFUL_REGISTRY["macd"] = StatefulIndicator(
    kind="macd",
    inputs=("close",),
    init=_macd_init,
    update=_macd_update,
    peek=_macd_peek,
    output_names=_macd_output_names,
)
SEED_REGISTRY["macd"] = _macd_seed


# ===========================================================================
# RSI
# ===========================================================================
# Window of the last `period` closes.
# gain / loss = sums of positive / negative changes inside the window,
#               kept as running sums (eviction subtracts the dropped change)
# avg_gain = gain / period, avg_loss = loss / period
# RS  = avg_gain / avg_loss  (100 when |avg_loss| < 1e-4)
# RSI = 100 - 100 / (1 + RS), seeded at 50 until two closes.
# Default period=14

RSI_SEED = 50.0
RSI_EPSILON = 0.0001


def _split_change(change: float) -> Tuple[float, float]:
    if change > 0.0:
        return change, 0.0
    return 0.0, -change


class _RSIPlan(NamedTuple):
    price:   float
    gain:    float
    loss:    float
    evicted: int
    rsi:     Optional[float]


class RSIState(PeekCommit):
    """Relative strength index with period-normalised gain/loss sums."""

    def __init__(self, period: int = 14) -> None:
        self.period = _require(period, 2, "RSI period")
        self._prices: Deque[float] = deque()
        self._gain = 0.0
        self._loss = 0.0
        self.rsi = RSI_SEED
        self.prev_rsi = RSI_SEED

    def _project(self, price: float) -> Tuple[float, _RSIPlan]:
        prices = self._prices
        gain, loss = self._gain, self._loss
        if prices:
            g, l = _split_change(price - prices[-1])
            gain += g
            loss += l
        evicted = max(0, len(prices) + 1 - self.period)
        for i in range(evicted):
            g, l = _split_change(prices[i + 1] - prices[i])
            gain -= g
            loss -= l

        if len(prices) + 1 - evicted < 2:
            return self.rsi, _RSIPlan(price, gain, loss, evicted, None)

        avg_gain = gain / self.period
        avg_loss = loss / self.period
        rs = 100.0 if abs(avg_loss) < RSI_EPSILON else avg_gain / avg_loss
        rsi = 100.0 - 100.0 / (1.0 + rs)
        return rsi, _RSIPlan(price, gain, loss, evicted, rsi)

    def _apply(self, plan: _RSIPlan) -> None:
        self._prices.append(plan.price)
        for _ in range(plan.evicted):
            self._prices.popleft()
        self._gain, self._loss = plan.gain, plan.loss
        if plan.rsi is not None:
            self.prev_rsi = self.rsi
            self.rsi = plan.rsi

    def get(self) -> float:
        return self.rsi

    def get_prev(self) -> float:
        return self.prev_rsi

    def __len__(self) -> int:
        return len(self._prices)


def _rsi_init(params: Dict[str, Any]) -> RSIState:
    length = _as_int(_param(params, "length", 14), 14)
    return RSIState(period=length)


def _rsi_update(
    state: RSIState, bar: Dict[str, Any], params: Dict[str, Any]
) -> Tuple[List[Optional[float]], RSIState]:
    return [state.add(bar["close"])], state


def _rsi_peek(
    state: RSIState, bar: Dict[str, Any], params: Dict[str, Any]
) -> List[Optional[float]]:
    return [state.peek(bar["close"])]


def _rsi_output_names(params: Dict[str, Any]) -> List[str]:
    length = _as_int(_param(params, "length", 14), 14)
    return [f"RSI_{length}"]


def _rsi_seed(series: Dict[str, Any], params: Dict[str, Any]) -> RSIState:
    return replay_seed("rsi", series, params)


STATEFUL_REGISTRY["rsi"] = StatefulIndicator(
    kind="rsi",
    inputs=("close",),
    init=_rsi_init,
    update=_rsi_update,
    peek=_rsi_peek,
    output_names=_rsi_output_names,
)
SEED_REGISTRY["rsi"] = _rsi_seed


# ===========================================================================
# STOCH  (Stochastic Oscillator)
# ===========================================================================
# %K = 100 * (close - lowest) / (highest - lowest) over RollingExtrema(k, 0.0)
#      0 when the range is flat (|highest - lowest| <= 1e-10)
# %D = SMA(%K, d)
# Overbought / oversold (80 / 20) only once the extrema window holds k samples.
# Defaults: k=14, d=3

STOCH_FLAT = 1e-10


class _StochPlan(NamedTuple):
    extrema: ExtremaPlan
    d_step:  MeanStep
    k:       float


class StochState(PeekCommit):
    """Stochastic oscillator.  ``add`` / ``peek`` return ``(k, d)``."""

    def __init__(self, k_period: int = 14, d_period: int = 3) -> None:
        self.k_period = _require(k_period, 1, "Stochastic k_period")
        self.d_period = _require(d_period, 1, "Stochastic d_period")
        self._extrema = RollingExtrema(k_period, 0.0)
        self._d = WindowedMean(d_period, 0, 0.0)
        self.percent_k = 0.0
        self.percent_d = 0.0
        self._clock = 1

    def _project(self, value: float) -> Tuple[Tuple[float, float], _StochPlan]:
        extrema = self._extrema.plan(value)
        k = _percent_k(value, extrema.min(), extrema.max(), STOCH_FLAT)
        d_step = self._d.plan(self._clock, k)
        return (k, d_step.mean), _StochPlan(extrema, d_step, k)

    def _apply(self, plan: _StochPlan) -> None:
        self._extrema.commit(plan.extrema)
        self._d.commit(plan.d_step)
        self.percent_k = plan.k
        self.percent_d = plan.d_step.mean
        self._clock += 1

    def get_k(self) -> float:
        return self.percent_k

    def get_d(self) -> float:
        return self.percent_d

    def is_overbought(self) -> bool:
        if len(self._extrema) < self.k_period:
            return False
        return self.percent_k > OVERBOUGHT

    def is_oversold(self) -> bool:
        if len(self._extrema) < self.k_period:
            return False
        return self.percent_k < OVERSOLD

    def __len__(self) -> int:
        return len(self._extrema)


def _stoch_init(params: Dict[str, Any]) -> StochState:
    k = _as_int(_param(params, "k", 14), 14)
    d = _as_int(_param(params, "d", 3), 3)
    return StochState(k_period=k, d_period=d)


def _stoch_update(
    state: StochState, bar: Dict[str, Any], params: Dict[str, Any]
) -> Tuple[List[Optional[float]], StochState]:
    return list(state.add(bar["close"])), state


def _stoch_peek(
    state: StochState, bar: Dict[str, Any], params: Dict[str, Any]
) -> List[Optional[float]]:
    return list(state.peek(bar["close"]))


def _stoch_output_names(params: Dict[str, Any]) -> List[str]:
    k = _as_int(_param(params, "k", 14), 14)
    d = _as_int(_param(params, "d", 3), 3)
    p = f"_{k}_{d}"
    return [f"STOCHk{p}", f"STOCHd{p}"]


def _stoch_seed(series: Dict[str, Any], params: Dict[str, Any]) -> StochState:
    return replay_seed("stoch", series, params)


STATEFUL_REGISTRY["stoch"] = StatefulIndicator(
    kind="stoch",
    inputs=("close",),
    init=_stoch_init,
    update=_stoch_update,
    peek=_stoch_peek,
    output_names=_stoch_output_names,
)
SEED_REGISTRY["stoch"] = _stoch_seed
