# -*- coding: utf-8 -*-
"""pandas-ta.stream – incremental indicators with side-effect-free peek.

Category modules populate STATEFUL_REGISTRY and SEED_REGISTRY at import
time.  This package re-exports them plus the shared base API and the
windowed primitives.
"""
from __future__ import annotations

# Base API (always available)
from ._base import (
    NAN,
    NEUTRAL,
    StreamError,
    ConfigError,
    ComputationError,
    InvariantError,
    HistoryIndexError,
    HistoryBuffer,
    PeekCommit,
    StatefulIndicator,
    STATEFUL_REGISTRY,
    SEED_REGISTRY,
    SPEC_EXCLUDES,
    replay_seed,
    resolve_output_names,
    stream_frame,
    supported_kinds,
    _is_nan,
    _param,
    _as_int,
    _as_float,
)
from ._window import MeanStep, WindowedMean, ExtremaPlan, RollingExtrema

# ---------------------------------------------------------------------------
# Category modules – each populates the shared registries on import
# ---------------------------------------------------------------------------
from . import _overlap      # noqa: F401  bbands
from . import _momentum     # noqa: F401  kdj, macd, rsi, stoch
from . import _volatility   # noqa: F401  atr, stdev, stdev_pct

from ._overlap import BBandsState
from ._momentum import KDJState, MACDState, RSIState, StochState
from ._volatility import (
    ATRState,
    StdevState,
    StdevPctState,
    true_range,
    volatility_percentage,
)

__all__ = [
    # base
    "NAN",
    "NEUTRAL",
    "StreamError",
    "ConfigError",
    "ComputationError",
    "InvariantError",
    "HistoryIndexError",
    "HistoryBuffer",
    "PeekCommit",
    "StatefulIndicator",
    "STATEFUL_REGISTRY",
    "SEED_REGISTRY",
    "replay_seed",
    "resolve_output_names",
    "stream_frame",
    "supported_kinds",
    # primitives
    "MeanStep",
    "WindowedMean",
    "ExtremaPlan",
    "RollingExtrema",
    # indicators
    "ATRState",
    "BBandsState",
    "KDJState",
    "MACDState",
    "RSIState",
    "StdevState",
    "StdevPctState",
    "StochState",
    "true_range",
    "volatility_percentage",
]
