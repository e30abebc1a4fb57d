"""Derived indicators: ATR, Bollinger, KDJ, MACD, RSI, Stochastic, Stdev."""
import math

import numpy as np
import pytest

from pandas_ta_stream.stream import (
    NEUTRAL,
    ATRState,
    BBandsState,
    ComputationError,
    ConfigError,
    InvariantError,
    KDJState,
    MACDState,
    RSIState,
    StdevPctState,
    StdevState,
    StochState,
    true_range,
    volatility_percentage,
)


# ---------------------------------------------------------------------------
# ATR
# ---------------------------------------------------------------------------

def test_atr_second_candle_is_single_true_range():
    atr = ATRState(14)
    atr.add(110.0, 100.0, 105.0)
    assert atr.get() == 0.0
    assert atr.peek(115.0, 105.0) == 10.0
    assert atr.add(115.0, 105.0, 110.0) == 10.0
    assert len(atr) == 2


def test_atr_matches_mean_of_true_ranges(ohlcv):
    atr = ATRState(5)
    trs = []
    prev_close = None
    for hi, lo, cl in ohlcv[["high", "low", "close"]].to_numpy():
        value = atr.add(hi, lo, cl)
        if prev_close is not None:
            trs.append(true_range(hi, lo, prev_close))
            assert math.isclose(value, sum(trs[-5:]) / len(trs[-5:]), rel_tol=1e-9)
        prev_close = cl


def test_atr_wilder_closed_form():
    atr = ATRState(4)
    atr.add(110.0, 100.0, 105.0)
    atr.add(115.0, 105.0, 110.0)
    assert atr.peek_wilder(112.0, 108.0) == (10.0 * 3 + 4.0) / 4


def test_atr_fluctuant_index():
    atr = ATRState(14, candle_period=60)
    assert atr.fluctuant_index({60: 0.01}) == NEUTRAL
    atr.add(110.0, 100.0, 105.0)
    atr.add(115.0, 105.0, 110.0)
    expected = 10000.0 * (10.0 / 110.0 - 0.01)
    assert math.isclose(atr.fluctuant_index({60: 0.01}), expected)
    assert math.isclose(atr.fluctuant_index({}), 10000.0 * 10.0 / 110.0)


def test_atr_period_too_small():
    with pytest.raises(ConfigError):
        ATRState(1)


# ---------------------------------------------------------------------------
# Bollinger Bands
# ---------------------------------------------------------------------------

def test_bbands_midpoint_is_mean():
    bb = BBandsState(window=5, multiplier=2.0)
    for v in (100.0, 101.0, 102.0):
        lower, mid, upper = bb.add(v)
    assert upper > lower
    assert mid == 101.0
    assert math.isclose((upper + lower) / 2.0, mid)
    assert math.isclose(upper - mid, 2.0 * math.sqrt(2.0 / 3.0))
    assert bb.is_inside_band(101.0)
    assert bb.is_above_upper_band(200.0)
    assert bb.is_below_lower_band(0.0)


def test_bbands_matches_numpy(ohlcv):
    close = ohlcv["close"].to_numpy()
    bb = BBandsState(window=20, multiplier=2.5)
    for i, v in enumerate(close):
        lower, mid, upper = bb.add(v)
        window = close[max(0, i - 19): i + 1]
        assert math.isclose(mid, window.mean(), rel_tol=1e-9)
        assert math.isclose(upper, window.mean() + 2.5 * window.std(), rel_tol=1e-9)
        assert math.isclose(lower, window.mean() - 2.5 * window.std(), rel_tol=1e-9)


def test_bbands_seeded_from_values():
    bb = BBandsState(3, 2.0, values=[1.0, 2.0, 3.0])
    assert bb.get()[1] == 2.0
    assert len(bb) == 3


# ---------------------------------------------------------------------------
# KDJ
# ---------------------------------------------------------------------------

def test_kdj_first_candle():
    kdj = KDJState()
    assert kdj.add(10.0, 9.0, 9.5) == (50.0, 50.0, 50.0)
    assert kdj.length() == 2
    assert kdj.j_centered() == 0.0


def test_kdj_flat_range_reads_zero():
    kdj = KDJState()
    for _ in range(5):
        k, d, j = kdj.add(10.0, 10.0, 10.0)
    assert (k, d, j) == (0.0, 0.0, 0.0)


def test_kdj_nan_j_leaves_state_untouched():
    kdj = KDJState()
    kdj.add(10.0, 9.0, 9.5)
    with pytest.raises(ComputationError):
        kdj.add(11.0, 10.0, float("nan"))
    assert kdj.length() == 2
    assert kdj.get() == (50.0, 50.0, 50.0)


def test_kdj_broken_extrema_leaves_state_untouched():
    kdj = KDJState(fast_k=1, slow_k=1, slow_d=1)
    kdj.add(10.0, 9.0, 9.5)
    kdj._extrema._highs[0] = 9.5

    with pytest.raises(InvariantError):
        kdj.add(11.0, 10.0, 10.5)
    assert kdj.get() == (50.0, 50.0, 50.0)
    assert kdj.length() == 2
    assert kdj._k.count() == 1

def test_kdj_signals():
    kdj = KDJState(fast_k=5, slow_k=1, slow_d=2)
    assert kdj.cross_golden_death(100.0, 0.0) == NEUTRAL
    assert kdj.peak_bottom(100.0, 0.0) == NEUTRAL

    kdj.add(10.0, 0.0, 5.0)
    assert kdj.get() == (50.0, 50.0, 50.0)
    kdj.add(10.0, 0.0, 0.0)
    assert kdj.get() == (0.0, 25.0, -50.0)
    assert kdj.peak_bottom(100.0, 0.0) == -1.0
    kdj.add(10.0, 0.0, 10.0)
    assert kdj.get() == (100.0, 50.0, 200.0)

    assert kdj.cross_golden_death(100.0, 0.0) == 1.0
    assert kdj.cross_golden_death(90.0, 0.0) == NEUTRAL
    assert kdj.peak_bottom(100.0, 0.0) == 1.0
    assert kdj.over_bought_sold(80.0, 20.0) == NEUTRAL
    assert kdj.over_bought_sold(40.0, 20.0) == 1.0
    assert kdj.raw_k(5.0) == 50.0


# ---------------------------------------------------------------------------
# MACD
# ---------------------------------------------------------------------------

def _macd_reference(prices, fast, slow, signal):
    diffs, out = [], []
    for i in range(len(prices)):
        f = prices[max(0, i - fast + 1): i + 1]
        s = prices[max(0, i - slow + 1): i + 1]
        diffs.append(sum(f) / len(f) - sum(s) / len(s))
        sig = diffs[max(0, i - signal + 1): i + 1]
        sig_mean = sum(sig) / len(sig)
        out.append((diffs[-1], sig_mean, diffs[-1] - sig_mean))
    return out


def test_macd_matches_reference(ohlcv):
    prices = [float(v) for v in ohlcv["close"]]
    macd = MACDState(fast=5, slow=13, signal=4)
    for price, expected in zip(prices, _macd_reference(prices, 5, 13, 4)):
        got = macd.add(price)
        for g, e in zip(got, expected):
            assert math.isclose(g, e, rel_tol=1e-7, abs_tol=1e-9)
    assert macd.get() == got
    assert macd.size() == 10


def test_macd_swaps_fast_and_slow():
    macd = MACDState(fast=26, slow=12)
    assert (macd.fast, macd.slow) == (12, 26)


def test_macd_invalid_divergence():
    with pytest.raises(ConfigError):
        MACDState(divergence=1)


def test_macd_cross_and_divergence():
    macd = MACDState(fast=1, slow=2, signal=2, divergence=3)
    assert macd.get() == (0.0, 0.0, 0.0)
    for price in (10.0, 10.0, 12.0):
        macd.add(price)
    assert macd.check_cross() is False

    macd.add(13.0)
    macd.add(13.5)
    assert list(macd.hist_history) == [0.0, 0.0, 0.5, -0.25, -0.125]
    assert macd.check_cross() is False
    assert math.isclose(macd.check_divergence(), 0.75 + 0.3125)

    macd.add(15.0)
    assert macd.hist_history[-1] == 0.25
    assert macd.check_cross() is False
    macd.add(15.0)
    assert macd.hist_history[-1] == -0.375
    assert macd.check_cross() is True


def test_macd_cross_follows_histogram_signs(ohlcv):
    macd = MACDState(fast=3, slow=7, signal=3, divergence=8)
    for price in ohlcv["close"]:
        macd.add(float(price))
        if len(macd.hist_history) < 5:
            assert not macd.check_cross()
            continue
        hist = list(macd.hist_history)
        assert macd.check_cross() == (hist[-1] * hist[-5] < 0.0)


def test_macd_flat_prices_have_no_divergence():
    macd = MACDState(divergence=4, prices=[5.0] * 10)
    assert macd.check_divergence() == 0.0
    assert macd.get() == (0.0, 0.0, 0.0)


# ---------------------------------------------------------------------------
# RSI
# ---------------------------------------------------------------------------

def _rsi_reference(window, period):
    if len(window) < 2:
        return 50.0
    gain = sum(max(b - a, 0.0) for a, b in zip(window, window[1:]))
    loss = sum(max(a - b, 0.0) for a, b in zip(window, window[1:]))
    avg_gain, avg_loss = gain / period, loss / period
    rs = 100.0 if abs(avg_loss) < 0.0001 else avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def test_rsi_seed_until_two_prices():
    rsi = RSIState(14)
    assert rsi.add(100.0) == 50.0
    assert rsi.get() == 50.0


def test_rsi_rising_prices():
    rsi = RSIState(14)
    for price in range(1, 16):
        value = rsi.add(float(price))
    assert math.isclose(value, 100.0 - 100.0 / 101.0)


def test_rsi_matches_reference(ohlcv):
    prices = [float(v) for v in ohlcv["close"]]
    rsi = RSIState(14)
    prev = 50.0
    for i, price in enumerate(prices):
        value = rsi.add(price)
        expected = _rsi_reference(prices[max(0, i - 13): i + 1], 14)
        assert math.isclose(value, expected, rel_tol=1e-6, abs_tol=1e-6)
        assert rsi.get_prev() == prev
        prev = value if i > 0 else prev


def test_rsi_period_too_small():
    with pytest.raises(ConfigError):
        RSIState(1)


# ---------------------------------------------------------------------------
# Stochastic
# ---------------------------------------------------------------------------

def test_stoch_value_equal_to_window_minimum():
    stoch = StochState(k_period=5)
    for v in (100.0, 101.0, 102.0, 103.0, 104.0):
        stoch.add(v)
    assert stoch.get_k() == 100.0
    assert stoch.is_overbought()

    k, d = stoch.add(100.0)
    assert k == 0.0
    assert math.isclose(d, 200.0 / 3.0)
    assert stoch.is_oversold()


def test_stoch_bands_need_full_window():
    stoch = StochState(k_period=5)
    stoch.add(1.0)
    stoch.add(2.0)
    assert stoch.get_k() == 100.0
    assert not stoch.is_overbought()
    assert not stoch.is_oversold()


def test_stoch_broken_extrema_leaves_state_untouched():
    stoch = StochState(k_period=3)
    for v in (1.0, 2.0, 3.0):
        stoch.add(v)
    stoch._extrema._lows[0] = 1.5
    before = (stoch.get_k(), stoch.get_d(), len(stoch))

    with pytest.raises(InvariantError):
        stoch.add(4.0)
    with pytest.raises(InvariantError):
        stoch.peek(4.0)
    assert (stoch.get_k(), stoch.get_d(), len(stoch)) == before
    assert stoch._d.count() == 3

def test_stoch_flat_range():
    stoch = StochState(3, 3)
    for _ in range(4):
        assert stoch.add(7.0) == (0.0, 0.0)


# ---------------------------------------------------------------------------
# Stdev / StdevPct
# ---------------------------------------------------------------------------

def test_stdev_of_mids():
    sd = StdevState(period=3)
    sd.add(0, 9.5, 10.5)
    sd.add(1, 10.5, 11.5)
    sma, std = sd.add(2, 11.5, 12.5)
    assert sma == 11.0
    assert math.isclose(std, math.sqrt(2.0 / 3.0))

    assert sd.add(3, -12.0, 12.0) == (sma, std)
    assert len(sd) == 3
    assert sd.get() == (sd.get_sma(), sd.get_std())


def test_stdev_gates_on_mid():
    sd = StdevState(period=3)
    assert sd.add(0, 0.0, 20.0) == (10.0, 0.0)
    assert sd.add(1, -5.0, 5.0) == (10.0, 0.0)
    assert len(sd) == 1


def test_stdev_time_gate():
    sd = StdevState(period=3, min_gap=100)
    sd.add(0, 9.5, 10.5)
    assert sd.add(50, 19.5, 20.5) == (10.0, 0.0)
    assert len(sd) == 1
    assert sd.add(100, 19.5, 20.5) == (15.0, 5.0)


def test_stdev_pct_returns_in_percent():
    sp = StdevPctState(period=3)
    assert sp.add(99.0, 101.0) == 0.0
    assert sp.add(109.0, 111.0) == 0.0
    assert math.isclose(sp.add(98.0, 100.0), 10.0)
    assert sp.get_history_size() == 3


def test_stdev_pct_skips_non_positive_mid():
    sp = StdevPctState(period=3)
    sp.add(99.0, 101.0)
    assert sp.add(-1.0, 0.5) == 0.0
    assert sp.get_history_size() == 1


def test_volatility_percentage():
    out = volatility_percentage([100.0, 110.0, 99.0], 2)
    assert out[:2] == [None, None]
    assert math.isclose(out[2], 10.0)

    with pytest.raises(ConfigError):
        volatility_percentage([1.0], 0)


def test_volatility_percentage_matches_numpy():
    rng = np.random.default_rng(2)
    prices = 100.0 + rng.normal(0.0, 1.0, 60).cumsum()
    out = volatility_percentage(prices, 10)
    returns = 100.0 * np.diff(prices) / prices[:-1]
    assert math.isclose(out[-1], returns[-10:].std(), rel_tol=1e-9)
