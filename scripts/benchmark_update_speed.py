#!/usr/bin/env python3
"""Benchmark per-update cost of the stream indicators.

Seeds every registered kind over a history of ``rows`` bars, then times
``peek`` and ``update`` on the tail bars.  Per-update cost should stay flat
as the history grows.
"""
from __future__ import annotations

import argparse
import copy
import os
import sys
from time import perf_counter
from typing import Dict, List

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import numpy as np
import pandas as pd
import pandas_ta_stream as ta


def make_ohlcv(rows: int, seed: int) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    idx = pd.date_range("2025-01-01", periods=rows, freq="1min")
    base = 100 + rng.standard_normal(rows).cumsum()
    close = base + rng.normal(0, 0.2, rows)
    open_ = base + rng.normal(0, 0.2, rows)
    high = np.maximum(open_, close) + rng.random(rows) * 0.5
    low = np.minimum(open_, close) - rng.random(rows) * 0.5
    spread = rng.random(rows) * 0.05
    df = pd.DataFrame(
        {
            "open": open_,
            "high": high,
            "low": low,
            "close": close,
            "bid": close - spread,
            "ask": close + spread,
        },
        index=idx,
    )
    df["timestamp"] = np.arange(rows, dtype="int64") * 60_000
    return df


def parse_list(value: str) -> List[int]:
    return [int(v.strip()) for v in value.split(",") if v.strip()]


def parse_kinds(value: str | None) -> List[str]:
    if not value:
        return ta.supported_kinds()
    return [v.strip() for v in value.split(",") if v.strip()]


def bars(df: pd.DataFrame, inputs) -> List[Dict[str, float]]:
    cols = [df[c].to_numpy(dtype=float) for c in inputs]
    return [dict(zip(inputs, row)) for row in zip(*cols)]


def time_per_bar(fn, bars_: List[Dict[str, float]], runs: int) -> float:
    times = []
    for _ in range(max(runs, 1)):
        start = perf_counter()
        for bar in bars_:
            fn(bar)
        times.append(perf_counter() - start)
    return sum(times) / len(times) / max(len(bars_), 1)


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument(
        "--sizes",
        type=str,
        default="1000,10000,100000",
        help="comma-separated history row counts",
    )
    ap.add_argument("--tail", type=int, default=1000, help="timed bars per run")
    ap.add_argument("--seed", type=int, default=7)
    ap.add_argument("--kinds", type=str, default="", help="comma-separated kinds (default: all)")
    ap.add_argument("--runs", type=int, default=3, help="timed runs")
    args = ap.parse_args()

    sizes = parse_list(args.sizes)
    kinds = parse_kinds(args.kinds)

    print(f"[i] sizes: {sizes}")
    print(f"[i] tail: {args.tail}")
    print(f"[i] runs: {args.runs}")
    print(f"[i] kinds: {kinds}")

    for rows in sizes:
        df = make_ohlcv(rows + args.tail, args.seed)
        df_hist = df.iloc[:rows]
        df_tail = df.iloc[rows:]
        print(f"\n[+] rows={rows}")
        print(f"{'kind':<12}{'seed s':>10}{'peek us':>10}{'add us':>10}")

        for kind in kinds:
            indicator = ta.STATEFUL_REGISTRY[kind]
            params: Dict[str, float] = {}

            start = perf_counter()
            seeded = ta.SEED_REGISTRY[kind](
                {c: df_hist[c] for c in indicator.inputs}, params
            )
            seed_s = perf_counter() - start

            tail_bars = bars(df_tail, indicator.inputs)
            peek_us = 1e6 * time_per_bar(
                lambda bar: indicator.peek(seeded, bar, params), tail_bars, args.runs
            )

            add_times = []
            for _ in range(max(args.runs, 1)):
                state = copy.deepcopy(seeded)
                start = perf_counter()
                for bar in tail_bars:
                    indicator.update(state, bar, params)
                add_times.append(perf_counter() - start)
            add_us = 1e6 * sum(add_times) / len(add_times) / max(len(tail_bars), 1)

            print(f"{kind:<12}{seed_s:>10.3f}{peek_us:>10.2f}{add_us:>10.2f}")


if __name__ == "__main__":
    main()
