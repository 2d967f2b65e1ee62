"""Fund, holding and backtest data structures.

Every optional numeric field uses ``None`` for "data unavailable"; a value of
``0.0`` is a real observation. Instances are frozen: a refresh or rebalance
produces a new Portfolio rather than patching the old one.
"""
from __future__ import annotations
import logging
import math
import numbers
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

HoldingField = Literal["one_year_return", "three_year_return", "five_year_return", "dividend_yield"]
Category = Literal["Core", "Growth", "Stabilizer"]

RETURN_FIELDS: Tuple[HoldingField, ...] = ("one_year_return", "three_year_return", "five_year_return")
HOLDING_FIELDS: Tuple[HoldingField, ...] = RETURN_FIELDS + ("dividend_yield",)

# snake_case attribute -> key used by the upstream generator / stored JSON
_HOLDING_KEYS = {
    "ticker": "ticker",
    "weight": "weight",
    "name": "name",
    "sector": "sector",
    "reason": "reason",
    "esg_score": "esgScore",
    "category": "type",
    "current_price": "currentPrice",
    "day_change": "dayChangePercent",
    "one_year_return": "oneYearChangePercent",
    "three_year_return": "threeYearChangePercent",
    "five_year_return": "fiveYearChangePercent",
    "dividend_yield": "dividendYieldPercent",
}

_BENCHMARK_KEYS = {
    "one_year": "benchmark1YearReturn",
    "three_year": "benchmark3YearReturn",
    "five_year": "benchmark5YearReturn",
}


def as_optional_number(value: Any) -> Optional[float]:
    """Coerce an observed value to float, or None when it is not a usable number.

    Booleans, strings, NaN and infinities all count as "no data".
    """
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, numbers.Real):
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _parse_weight(raw: Any, ticker: Any) -> float:
    """Portfolio weight in percent; numeric strings like "8.5" or "8.5%" are accepted."""
    if isinstance(raw, str):
        try:
            raw = float(raw.strip().rstrip("%"))
        except ValueError:
            pass
    value = as_optional_number(raw)
    if value is None:
        logger.debug(f"Unusable weight {raw!r} for {ticker}; using 0")
        return 0.0
    return value


def _pick(data: Mapping[str, Any], attr: str, keys: Mapping[str, str]) -> Any:
    if attr in data:
        return data[attr]
    return data.get(keys[attr])


@dataclass(frozen=True)
class Holding:
    ticker: str
    weight: float
    name: str = ""
    sector: str = ""
    reason: str = ""
    esg_score: str = ""
    category: Optional[Category] = None
    current_price: Optional[float] = None
    day_change: Optional[float] = None
    one_year_return: Optional[float] = None
    three_year_return: Optional[float] = None
    five_year_return: Optional[float] = None
    dividend_yield: Optional[float] = None

    def value(self, name: HoldingField) -> Optional[float]:
        return as_optional_number(getattr(self, name))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Holding":
        kwargs: Dict[str, Any] = {}
        for attr in _HOLDING_KEYS:
            raw = _pick(data, attr, _HOLDING_KEYS)
            if attr in ("ticker", "name", "sector", "reason", "esg_score"):
                kwargs[attr] = "" if raw is None else str(raw)
            elif attr == "category":
                kwargs[attr] = raw or None
            elif attr == "weight":
                kwargs[attr] = _parse_weight(raw, data.get("ticker"))
            else:
                kwargs[attr] = as_optional_number(raw)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for attr, key in _HOLDING_KEYS.items():
            val = getattr(self, attr)
            if val is None:
                continue
            out[key] = val
        return out


@dataclass(frozen=True)
class BenchmarkReturns:
    """Cumulative index returns (percent) over the trailing 1, 3 and 5 years."""
    one_year: Optional[float] = None
    three_year: Optional[float] = None
    five_year: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BenchmarkReturns":
        return cls(**{a: as_optional_number(_pick(data, a, _BENCHMARK_KEYS)) for a in _BENCHMARK_KEYS})

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, a) for a, key in _BENCHMARK_KEYS.items() if getattr(self, a) is not None}


@dataclass(frozen=True)
class FundAggregates:
    one_year_return: Optional[float] = None
    three_year_return: Optional[float] = None
    five_year_return: Optional[float] = None
    dividend_yield: Optional[float] = None
    benchmark_one_year: Optional[float] = None
    benchmark_three_year: Optional[float] = None
    benchmark_five_year: Optional[float] = None

    def fund_returns(self) -> Tuple[Optional[float], Optional[float], Optional[float]]:
        return (self.one_year_return, self.three_year_return, self.five_year_return)

    def benchmark_returns(self) -> Tuple[Optional[float], Optional[float], Optional[float]]:
        return (self.benchmark_one_year, self.benchmark_three_year, self.benchmark_five_year)


@dataclass(frozen=True)
class BacktestPoint:
    date: date
    label: str
    month_index: int
    year: int
    decimal_year: float
    fund: int
    benchmark: int


@dataclass(frozen=True)
class Headline:
    title: str
    source: str
    url: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Headline":
        return cls(title=str(data.get("title", "")), source=str(data.get("source", "")), url=str(data.get("url", "")))

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "source": self.source, "url": self.url}


@dataclass(frozen=True)
class Portfolio:
    name: str
    holdings: Tuple[Holding, ...] = ()
    description: str = ""
    narrative: str = ""
    benchmark: BenchmarkReturns = field(default_factory=BenchmarkReturns)
    # metric strings estimated by the generator (e.g. "10-12%"), shown when no calculation is possible
    ai_metrics: Dict[str, str] = field(default_factory=dict)
    headlines: Tuple[Headline, ...] = ()

    @property
    def tickers(self) -> List[str]:
        return [h.ticker for h in self.holdings]

    def with_holdings(self, holdings, benchmark: Optional[BenchmarkReturns] = None) -> "Portfolio":
        return replace(self, holdings=tuple(holdings), benchmark=benchmark or self.benchmark)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Portfolio":
        metrics = dict(data.get("metrics") or {})
        benchmark = BenchmarkReturns.from_dict({**metrics, **(data.get("benchmark") or {})})
        ai_metrics = {
            k: str(v) for k, v in metrics.items()
            if k not in _BENCHMARK_KEYS.values() and isinstance(v, str)
        }
        positions = data.get("positions", data.get("holdings")) or []
        return cls(
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            narrative=str(data.get("narrative", "")),
            holdings=tuple(Holding.from_dict(p) for p in positions),
            benchmark=benchmark,
            ai_metrics=ai_metrics,
            headlines=tuple(Headline.from_dict(h) for h in data.get("headlines") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "narrative": self.narrative,
            "positions": [h.to_dict() for h in self.holdings],
            "metrics": {**self.ai_metrics, **self.benchmark.to_dict()},
            "headlines": [h.to_dict() for h in self.headlines],
        }


__all__ = [
    "HoldingField",
    "RETURN_FIELDS",
    "HOLDING_FIELDS",
    "as_optional_number",
    "Holding",
    "BenchmarkReturns",
    "FundAggregates",
    "BacktestPoint",
    "Headline",
    "Portfolio",
]
