# -*- coding: utf-8 -*-
import numpy as np
import pandas as pd
import pytest


def make_ohlcv(rows: int, seed: int) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    base = 100 + rng.standard_normal(rows).cumsum()
    close = base + rng.normal(0, 0.2, rows)
    open_ = base + rng.normal(0, 0.2, rows)
    high = np.maximum(open_, close) + rng.random(rows) * 0.5
    low = np.minimum(open_, close) - rng.random(rows) * 0.5
    spread = 0.01 + rng.random(rows) * 0.05
    return pd.DataFrame(
        {
            "timestamp": np.arange(rows, dtype="int64") * 1000,
            "open": open_,
            "high": high,
            "low": low,
            "close": close,
            "bid": close - spread,
            "ask": close + spread,
        },
        index=pd.date_range("2025-01-01", periods=rows, freq="1min"),
    )


@pytest.fixture
def ohlcv() -> pd.DataFrame:
    return make_ohlcv(300, seed=7)
