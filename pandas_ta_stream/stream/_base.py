# -*- coding: utf-8 -*-
"""pandas-ta stream – shared base: helpers, errors, history, registries.

All category modules (``_overlap``, ``_momentum``, …) import from here
and populate the registries at load time.

Every indicator follows the peek/commit contract: ``_project`` computes
the outputs *and* a plan of the pending mutation from committed state
only; ``_apply`` persists the plan.  ``peek`` stops after the projection,
``add`` applies it, so both read the same arithmetic.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from itertools import chain, islice
from typing import Any, Callable, Deque, Dict, Iterable, Iterator, List, Optional, Tuple

import math

NAN = float("nan")
NEUTRAL = 1e-6   # "no signal" reading of the signal helpers


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _is_nan(x: Any) -> bool:
    """True when *x* is None or a float NaN."""
    return x is None or (isinstance(x, float) and math.isnan(x))


def _param(params: Dict[str, Any], key: str, default: Any) -> Any:
    """Pull *key* from *params*; treat None as missing → default."""
    value = params.get(key, default)
    return default if value is None else value


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float(default)


def _require(value: int, minimum: int, what: str) -> int:
    if value < minimum:
        raise ConfigError(f"{what} must be >= {minimum}, got {value}")
    return value


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class StreamError(ValueError):
    """Base class of every error raised by the stream indicators."""


class ConfigError(StreamError):
    """Invalid configuration (period, capacity, window)."""


class ComputationError(StreamError):
    """A derived reading could not be computed (e.g. NaN)."""


class InvariantError(ComputationError):
    """A monotonic deque disagrees with its ground-truth window."""


class HistoryIndexError(IndexError):
    """History lookup on an empty buffer or outside ``[-len, len)``."""


# ---------------------------------------------------------------------------
# Bounded history with signed indexing
# ---------------------------------------------------------------------------

class HistoryBuffer:
    """Fixed-capacity FIFO of floats.

    ``buf[-1]`` is the newest sample, ``buf[0]`` the oldest retained one.
    Out-of-range lookups raise :class:`HistoryIndexError` instead of
    clamping.
    """

    __slots__ = ("name", "_items")

    def __init__(self, maxlen: int, name: str = "history") -> None:
        _require(maxlen, 1, f"{name} maxlen")
        self.name = name
        self._items: Deque[float] = deque(maxlen=maxlen)

    @property
    def maxlen(self) -> int:
        return self._items.maxlen  # type: ignore[return-value]

    def append(self, value: float) -> None:
        self._items.append(value)

    def is_full(self) -> bool:
        return len(self._items) == self.maxlen

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[float]:
        return iter(self._items)

    def __getitem__(self, index: int) -> float:
        size = len(self._items)
        if size == 0:
            raise HistoryIndexError(f"{self.name} is empty")
        pos = index + size if index < 0 else index
        if pos < 0 or pos >= size:
            raise HistoryIndexError(
                f"{self.name} index out of range index={index} size={size}"
            )
        return self._items[pos]

    def window(self, n: int, pending: Iterable[float] = ()) -> List[float]:
        """Last *n* retained items as they would be after appending *pending*."""
        pending = list(pending)
        total = len(self._items) + len(pending)
        kept = min(total, self.maxlen, n)
        return list(islice(chain(self._items, pending), total - kept, None))

    def __repr__(self) -> str:
        return f"HistoryBuffer({self.name}, {list(self._items)!r}, maxlen={self.maxlen})"


# ---------------------------------------------------------------------------
# Peek / commit contract
# ---------------------------------------------------------------------------

class PeekCommit:
    """Template for indicators offering ``peek`` next to ``add``.

    Subclasses implement:

    ``_project(*inputs) -> (outputs, plan)``
        Pure: reads committed state plus *inputs*, mutates nothing, and
        raises before returning if the update is not computable.
    ``_apply(plan)``
        Persists *plan*.  Must not fail.

    ``peek(x)`` evaluated right before ``add(x)`` therefore returns the
    very same object ``add(x)`` returns.
    """

    def _project(self, *inputs: float) -> Tuple[Any, Any]:
        raise NotImplementedError

    def _apply(self, plan: Any) -> None:
        raise NotImplementedError

    def peek(self, *inputs: float) -> Any:
        return self._project(*inputs)[0]

    def add(self, *inputs: float) -> Any:
        outputs, plan = self._project(*inputs)
        self._apply(plan)
        return outputs


# ---------------------------------------------------------------------------
# Indicator descriptor & registries  (populated by category modules)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StatefulIndicator:
    """Immutable descriptor for a single stream indicator."""
    kind:         str
    inputs:       Tuple[str, ...]
    init:         Callable[[Dict[str, Any]], Any]
    update:       Callable[[Any, Dict[str, Any], Dict[str, Any]],
                           Tuple[List[Optional[float]], Any]]
    peek:         Callable[[Any, Dict[str, Any], Dict[str, Any]],
                           List[Optional[float]]]
    output_names: Callable[[Dict[str, Any]], List[str]]


# Populated by category modules at import time.
STATEFUL_REGISTRY: Dict[str, StatefulIndicator] = {}
SEED_REGISTRY:     Dict[str, Callable] = {}    # kind -> seed_fn(inputs, params) -> State


def _lookup(kind: str) -> StatefulIndicator:
    indicator = STATEFUL_REGISTRY.get(kind)
    if indicator is None:
        raise ValueError(f"Indicator '{kind}' not found in STATEFUL_REGISTRY")
    return indicator


# ---------------------------------------------------------------------------
# Seeding & pandas bridge
# ---------------------------------------------------------------------------

def replay_seed(kind: str, inputs: Dict[str, Any], params: Dict[str, Any]) -> Any:
    """Generic seed: replay the stream update over historical Series.

    *inputs* values must be ``pd.Series`` (or any indexable with ``.iloc``).
    Rows where any input is missing are skipped.  Returns the final state.
    """
    import pandas as pd          # lazy – pandas not required at module load
    indicator = _lookup(kind)
    state = indicator.init(params)
    keys = list(inputs.keys())
    if not keys:
        return state
    n = len(inputs[keys[0]])
    for i in range(n):
        bar: Dict[str, float] = {}
        valid = True
        for k in keys:
            v = inputs[k].iloc[i]
            if pd.isna(v):
                valid = False
                break
            bar[k] = float(v)
        if not valid:
            continue
        _, state = indicator.update(state, bar, params)
    return state


SPEC_EXCLUDES = frozenset({
    "kind", "prefix", "suffix", "delimiter", "col_names", "returns_state",
})


def resolve_output_names(
        base_names: List[str], spec: Dict[str, Any]
) -> Tuple[Optional[List[str]], Optional[str]]:
    """Apply prefix / suffix / col_names overrides from *spec*."""
    names = list(base_names)
    delimiter = spec.get("delimiter", "_")
    prefix = spec.get("prefix") or ""
    suffix = spec.get("suffix") or ""
    if prefix:
        prefix = f"{prefix}{delimiter}"
    if suffix:
        suffix = f"{delimiter}{suffix}"
    if prefix or suffix:
        names = [f"{prefix}{n}{suffix}" for n in names]
    col_names = spec.get("col_names")
    if col_names is not None:
        if not isinstance(col_names, tuple):
            col_names = (col_names,)
        if len(col_names) < len(names):
            return None, f"[!] col_names too short: {len(col_names)} < {len(names)}"
        names = list(col_names[: len(names)])
    return names, None


def stream_frame(kind: str, frame: Any, state: Any = None, **spec: Any) -> Any:
    """Run *kind* row by row over *frame* (a ``pd.DataFrame``).

    Columns named after the indicator inputs are read; rows with a missing
    input yield NaN outputs and leave the state untouched.  Pass *state* to
    continue a previous run.  With ``returns_state=True`` the final state
    is returned alongside the result frame.
    """
    import pandas as pd
    indicator = _lookup(kind)
    params = {k: v for k, v in spec.items() if k not in SPEC_EXCLUDES}
    missing = [c for c in indicator.inputs if c not in frame.columns]
    if missing:
        raise KeyError(f"{kind}: missing input columns {missing}")

    names, err = resolve_output_names(indicator.output_names(params), spec)
    if names is None:
        raise ValueError(err)

    if state is None:
        state = indicator.init(params)
    rows: List[List[Optional[float]]] = []
    empty = [NAN] * len(names)
    columns = [frame[c].to_numpy() for c in indicator.inputs]
    for values in zip(*columns):
        if any(pd.isna(v) for v in values):
            rows.append(empty)
            continue
        bar = {k: float(v) for k, v in zip(indicator.inputs, values)}
        out, state = indicator.update(state, bar, params)
        rows.append([NAN if _is_nan(v) else v for v in out])

    result = pd.DataFrame(rows, index=frame.index, columns=names, dtype=float)
    if spec.get("returns_state", False):
        return result, state
    return result


def supported_kinds() -> List[str]:
    """Return sorted list of registered indicator kinds."""
    return sorted(STATEFUL_REGISTRY.keys())
