"""Allocation-weighted aggregation of per-holding observations.

The upstream data source returns a sparse set of fields per ticker, so each
field is aggregated over the holdings that actually carry it. When the covered
holdings make up more than half of the fund, the weighted sum is rescaled as
if they were the whole fund; otherwise there is no defensible value and the
aggregate is absent (None), never zero.
"""
from __future__ import annotations
import logging
from typing import Iterable, Optional

import pandas as pd

from .models import HOLDING_FIELDS, FundAggregates, Holding, HoldingField, Portfolio

logger = logging.getLogger(__name__)

COVERAGE_THRESHOLD = 50.0  # percent of fund weight; coverage must be strictly above


def holdings_frame(holdings: Iterable[Holding]) -> pd.DataFrame:
    """One row per holding: ticker, weight and each optional field (NaN when absent)."""
    rows = []
    for h in holdings:
        row = {"ticker": h.ticker, "weight": float(h.weight)}
        for name in HOLDING_FIELDS:
            value = h.value(name)
            row[name] = float("nan") if value is None else value
        rows.append(row)
    return pd.DataFrame(rows, columns=["ticker", "weight", *HOLDING_FIELDS])


def _covered(df: pd.DataFrame, field: HoldingField) -> pd.DataFrame:
    if df.empty:
        return df
    return df.loc[df[field].notna(), ["ticker", "weight", field]]


def covered_weight(holdings: Iterable[Holding], field: HoldingField) -> float:
    """Sum of weights of holdings where ``field`` is present."""
    covered = _covered(holdings_frame(holdings), field)
    return float(covered["weight"].sum()) if not covered.empty else 0.0


def weighted_aggregate(
    holdings: Iterable[Holding],
    field: HoldingField,
    threshold: float = COVERAGE_THRESHOLD,
) -> Optional[float]:
    """Weighted value of ``field`` across holdings, renormalised to covered weight.

    Returns None unless covered weight is strictly greater than ``threshold``.
    """
    if field not in HOLDING_FIELDS:
        raise KeyError(f"Unknown holding field: {field!r}")
    covered = _covered(holdings_frame(holdings), field)
    if covered.empty:
        logger.debug("No holdings carry %s", field)
        return None

    weight = covered["weight"]
    cov_w = float(weight.sum())
    if not cov_w > threshold:
        logger.debug("Insufficient coverage for %s: %.2f%% <= %.2f%%", field, cov_w, threshold)
        return None

    weighted_sum = float((weight / 100.0 * covered[field]).sum())
    return weighted_sum * 100.0 / cov_w


def aggregate_fund(portfolio: Portfolio, threshold: float = COVERAGE_THRESHOLD) -> FundAggregates:
    """Fresh FundAggregates for the portfolio's current holdings and benchmark."""
    holdings = list(portfolio.holdings)
    bench = portfolio.benchmark
    return FundAggregates(
        one_year_return=weighted_aggregate(holdings, "one_year_return", threshold),
        three_year_return=weighted_aggregate(holdings, "three_year_return", threshold),
        five_year_return=weighted_aggregate(holdings, "five_year_return", threshold),
        dividend_yield=weighted_aggregate(holdings, "dividend_yield", threshold),
        benchmark_one_year=bench.one_year,
        benchmark_three_year=bench.three_year,
        benchmark_five_year=bench.five_year,
    )


__all__ = ["COVERAGE_THRESHOLD", "holdings_frame", "covered_weight", "weighted_aggregate", "aggregate_fund"]
