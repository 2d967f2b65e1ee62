"""
Derived fund metrics: projected return, dividend yield, volatility proxy, Sharpe.

All calculators return ``None`` when upstream data is too thin; absence flows
through to the caller unchanged so the display layer can show "data
unavailable" instead of a made-up number.

The volatility figure is a cross-sectional proxy (dispersion of holdings'
trailing 1Y returns scaled by a diversification factor). It is NOT a
time-series volatility and should be labelled as an estimate wherever shown.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional

import numpy as np

from .aggregation import COVERAGE_THRESHOLD, aggregate_fund, holdings_frame
from .models import FundAggregates, Holding, Portfolio

logger = logging.getLogger(__name__)

EXPENSE_RATIO = 0.10            # percentage points
RISK_FREE_RATE = 4.25           # percent, US 10Y treasury proxy
DIVERSIFICATION_FACTOR = 0.7    # proxy for imperfect correlation between holdings
MIN_VOLATILITY_HOLDINGS = 3
MIN_VOLATILITY_WEIGHT = 50.0    # inclusive


@dataclass(frozen=True)
class MetricParams:
    expense_ratio: float = EXPENSE_RATIO
    risk_free_rate: float = RISK_FREE_RATE
    diversification_factor: float = DIVERSIFICATION_FACTOR
    min_volatility_holdings: int = MIN_VOLATILITY_HOLDINGS
    min_volatility_weight: float = MIN_VOLATILITY_WEIGHT
    coverage_threshold: float = COVERAGE_THRESHOLD

    @classmethod
    def from_config(cls, cfg: Mapping) -> "MetricParams":
        m = dict(cfg.get("metrics") or {})
        agg = dict(cfg.get("aggregation") or {})
        return cls(
            expense_ratio=float(m.get("expense_ratio", EXPENSE_RATIO)),
            risk_free_rate=float(m.get("risk_free_rate", RISK_FREE_RATE)),
            diversification_factor=float(m.get("diversification_factor", DIVERSIFICATION_FACTOR)),
            min_volatility_holdings=int(m.get("min_volatility_holdings", MIN_VOLATILITY_HOLDINGS)),
            min_volatility_weight=float(m.get("min_volatility_weight", MIN_VOLATILITY_WEIGHT)),
            coverage_threshold=float(agg.get("coverage_threshold", COVERAGE_THRESHOLD)),
        )


@dataclass(frozen=True)
class PortfolioMetrics:
    projected_return: Optional[float] = None
    dividend_yield: Optional[float] = None
    volatility: Optional[float] = None
    sharpe_ratio: Optional[float] = None


def projected_return(aggregates: FundAggregates, expense_ratio: float = EXPENSE_RATIO) -> Optional[float]:
    """Trailing 1Y weighted return net of the fund's expense ratio."""
    if aggregates.one_year_return is None:
        return None
    return aggregates.one_year_return - expense_ratio


def portfolio_dividend_yield(aggregates: FundAggregates) -> Optional[float]:
    return aggregates.dividend_yield


def volatility_proxy(
    holdings: Iterable[Holding],
    diversification_factor: float = DIVERSIFICATION_FACTOR,
    min_holdings: int = MIN_VOLATILITY_HOLDINGS,
    min_weight: float = MIN_VOLATILITY_WEIGHT,
) -> Optional[float]:
    """Approximate fund volatility from the spread of holdings' 1Y returns.

    Needs at least ``min_holdings`` holdings with a 1Y return whose combined
    weight is >= ``min_weight``. Uses the unweighted mean and the population
    standard deviation (ddof=0) of those returns, times ``diversification_factor``.
    """
    df = holdings_frame(holdings)
    covered = df.loc[df["one_year_return"].notna()] if not df.empty else df
    if len(covered) < min_holdings:
        logger.debug("Volatility proxy needs %d holdings with 1Y data, got %d", min_holdings, len(covered))
        return None
    if float(covered["weight"].sum()) < min_weight:
        logger.debug("Volatility proxy coverage below %.1f%%", min_weight)
        return None

    returns = covered["one_year_return"].to_numpy(dtype=float)
    std = float(np.sqrt(np.mean((returns - returns.mean()) ** 2)))
    return std * diversification_factor


def sharpe_ratio(
    projected: Optional[float],
    volatility: Optional[float],
    risk_free_rate: float = RISK_FREE_RATE,
) -> Optional[float]:
    if projected is None or volatility is None:
        return None
    if volatility == 0:
        return None
    return (projected - risk_free_rate) / volatility


def compute_metrics(portfolio: Portfolio, params: MetricParams | None = None) -> PortfolioMetrics:
    """Recompute every derived metric from the portfolio's current holdings."""
    p = params or MetricParams()
    aggregates = aggregate_fund(portfolio, threshold=p.coverage_threshold)
    proj = projected_return(aggregates, expense_ratio=p.expense_ratio)
    vol = volatility_proxy(
        portfolio.holdings,
        diversification_factor=p.diversification_factor,
        min_holdings=p.min_volatility_holdings,
        min_weight=p.min_volatility_weight,
    )
    return PortfolioMetrics(
        projected_return=proj,
        dividend_yield=portfolio_dividend_yield(aggregates),
        volatility=vol,
        sharpe_ratio=sharpe_ratio(proj, vol, risk_free_rate=p.risk_free_rate),
    )


# --- display helpers -----------------------------------------------------------

def _signed_pct(value: float, decimals: int) -> str:
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.{decimals}f}%"


def format_metrics(metrics: PortfolioMetrics) -> Dict[str, Optional[str]]:
    """Display strings for each metric; absent metrics stay None."""
    def fmt(value, render):
        return None if value is None else render(value)

    return {
        "projectedReturn": fmt(metrics.projected_return, lambda v: _signed_pct(v, 1)),
        "dividendYield": fmt(metrics.dividend_yield, lambda v: f"{v:.2f}%"),
        "annualizedVolatility": fmt(metrics.volatility, lambda v: f"{v:.2f}%"),
        "sharpeRatio": fmt(metrics.sharpe_ratio, lambda v: f"{v:.2f}"),
    }


# generator's metric key -> key in format_metrics output
_DISPLAY_KEYS = {
    "projectedReturn": "projectedReturn",
    "dividendYield": "dividendYield",
    "projectedVolatility": "annualizedVolatility",
    "sharpeRatio": "sharpeRatio",
    "carbonFootprintReduction": None,
}


def merge_display_metrics(ai_metrics: Mapping[str, str], metrics: PortfolioMetrics) -> Dict[str, object]:
    """Overlay calculated values on the generator's estimates.

    Each metric keeps the AI estimate only when no calculated value exists;
    ``isCalculated`` records which one is shown. Carbon reduction has no
    calculation and is always an estimate.
    """
    formatted = format_metrics(metrics)
    shown: Dict[str, object] = {}
    flags: Dict[str, bool] = {}
    for key, computed_key in _DISPLAY_KEYS.items():
        computed = formatted.get(computed_key) if computed_key else None
        flags[key] = computed is not None
        shown[key] = computed if computed is not None else ai_metrics.get(key)
    shown["isCalculated"] = flags
    return shown


__all__ = [
    "EXPENSE_RATIO",
    "RISK_FREE_RATE",
    "DIVERSIFICATION_FACTOR",
    "MetricParams",
    "PortfolioMetrics",
    "projected_return",
    "portfolio_dividend_yield",
    "volatility_proxy",
    "sharpe_ratio",
    "compute_metrics",
    "format_metrics",
    "merge_display_metrics",
]
