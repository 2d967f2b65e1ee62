"""Merge sparse market observations into a fund composition.

The generator returns whatever it could verify per ticker; anything it could
not find is simply missing. Merging keeps that sparseness: a numeric value
replaces the old one, and anything else leaves the previous observation in
place. Each refresh returns a new Portfolio.
"""
from __future__ import annotations
import logging
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from climateshift.models import BenchmarkReturns, Holding, Portfolio, as_optional_number
from climateshift.utils.env_tools import get_api_key, load_config

from . import gemini

logger = logging.getLogger(__name__)

Progress = Optional[Callable[[str], None]]
BatchFetcher = Callable[[List[str]], Dict[str, dict]]
BenchmarkFetcher = Callable[[], dict]

# provider key -> Holding attribute
_QUOTE_FIELDS = {
    "price": "current_price",
    "oneYearChange": "one_year_return",
    "threeYearChange": "three_year_return",
    "fiveYearChange": "five_year_return",
    "dividendYield": "dividend_yield",
}


def batched(items: List[str], size: int) -> List[List[str]]:
    size = max(1, int(size))
    return [items[i:i + size] for i in range(0, len(items), size)]


def _lookup(market: Mapping[str, dict], ticker: str) -> Optional[dict]:
    return market.get(ticker) or market.get(ticker.upper())


def merge_quotes(holding: Holding, quote: Optional[Mapping]) -> Holding:
    if not quote:
        return holding
    updates = {}
    for key, attr in _QUOTE_FIELDS.items():
        value = as_optional_number(quote.get(key))
        if value is not None:
            updates[attr] = value
    return replace(holding, **updates) if updates else holding


def merge_benchmark(current: BenchmarkReturns, data: Optional[Mapping]) -> BenchmarkReturns:
    if not data:
        return current
    return BenchmarkReturns(
        one_year=_prefer(data.get("oneYearChange"), current.one_year),
        three_year=_prefer(data.get("threeYearChange"), current.three_year),
        five_year=_prefer(data.get("fiveYearChange"), current.five_year),
    )


def _prefer(new, old: Optional[float]) -> Optional[float]:
    value = as_optional_number(new)
    return value if value is not None else old


def _progress(on_progress: Progress, msg: str) -> None:
    logger.info(msg)
    if on_progress:
        on_progress(msg)


def missing_five_year(tickers: Iterable[str], market: Mapping[str, dict]) -> List[str]:
    """Tickers whose fetched data has no numeric five-year return."""
    out = []
    for t in tickers:
        data = _lookup(market, t)
        if not data or as_optional_number(data.get("fiveYearChange")) is None:
            out.append(t)
    return out


def coverage_summary(tickers: List[str], market: Mapping[str, dict], benchmark: Mapping) -> dict:
    return {
        "total_tickers": len(tickers),
        "with_price": sum(1 for t in tickers if as_optional_number((_lookup(market, t) or {}).get("price")) is not None),
        "with_five_year": len(tickers) - len(missing_five_year(tickers, market)),
        "has_benchmark": as_optional_number((benchmark or {}).get("fiveYearChange")) is not None,
    }


def refresh_portfolio(
    portfolio: Portfolio,
    fetch_batch: BatchFetcher,
    fetch_benchmark: BenchmarkFetcher,
    on_progress: Progress = None,
    batch_size: int | None = None,
) -> Portfolio:
    """Re-fetch prices and 1Y/3Y/5Y returns for every holding plus the benchmark.

    Batches are fetched sequentially, then tickers still missing a five-year
    return get one repair pass.
    """
    if batch_size is None:
        batch_size = int(load_config().get("market_data", {}).get("batch_size", 4))

    tickers = portfolio.tickers
    market: Dict[str, dict] = {}

    _progress(on_progress, "Syncing with global exchanges...")
    for batch in batched(tickers, batch_size):
        _progress(on_progress, f"Fetching data for: {', '.join(batch)}...")
        market.update(fetch_batch(batch) or {})

    _progress(on_progress, "Fetching S&P 500 benchmark data...")
    benchmark = fetch_benchmark() or {}

    missing = missing_five_year(tickers, market)
    if missing:
        _progress(on_progress, f"Repairing data for: {len(missing)} tickers...")
        for batch in batched(missing, batch_size):
            market.update(fetch_batch(batch) or {})

    logger.info("Data coverage summary: %s", coverage_summary(tickers, market, benchmark))

    holdings = [merge_quotes(h, _lookup(market, h.ticker)) for h in portfolio.holdings]
    return portfolio.with_holdings(holdings, benchmark=merge_benchmark(portfolio.benchmark, benchmark))


def refresh_prices(portfolio: Portfolio, on_progress: Progress = None) -> Portfolio:
    """Refresh against the live generator; raises MissingAPIKeyError without a key."""
    if not get_api_key():
        raise gemini.MissingAPIKeyError("API Key is missing (set GEMINI_API_KEY)")
    return refresh_portfolio(portfolio, gemini.fetch_stock_batch, gemini.fetch_benchmark, on_progress)


def build_portfolio(preferences: str | None = None, on_progress: Progress = None) -> Portfolio:
    """Generate a fund structure, enrich it with market data and attach headlines.

    ``preferences`` is the rebalance request; None constructs from scratch.
    """
    if not get_api_key():
        raise gemini.MissingAPIKeyError("API Key is missing (set GEMINI_API_KEY)")

    _progress(on_progress, "Optimizing sector allocation and selecting constituents...")
    portfolio = gemini.generate_portfolio_structure(preferences)

    _progress(on_progress, "Fetching real-time market data and historical anchors...")
    portfolio = refresh_prices(portfolio, on_progress)

    _progress(on_progress, "Analyzing global financial news...")
    headlines = gemini.fetch_market_headlines()
    return replace(portfolio, headlines=tuple(headlines))


__all__ = [
    "batched",
    "merge_quotes",
    "merge_benchmark",
    "missing_five_year",
    "coverage_summary",
    "refresh_portfolio",
    "refresh_prices",
    "build_portfolio",
]
