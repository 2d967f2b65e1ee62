"""
Five-year monthly equity curve reconstructed from sparse return anchors.

Only cumulative 1Y, 3Y and 5Y returns are known for the fund and its
benchmark. Working backwards from today's value, each known return pins the
curve at one point in time; the gaps are filled with compound-growth
(exponential) interpolation so every window lands exactly on its endpoints.

Windows (months since start, start = 60 months before the reference date):
  0-24   start    -> 3Y ago   (start -> now over m/60 if the 3Y anchor is missing)
  24-48  3Y ago   -> 1Y ago   (each end falls back to the direct path / now)
  48-60  1Y ago   -> now      (start falls back to 3Y ago, then start)
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional, Sequence, Tuple

import pandas as pd

from .aggregation import COVERAGE_THRESHOLD, aggregate_fund
from .models import BacktestPoint, Portfolio

logger = logging.getLogger(__name__)

START_VALUE = 10000.0
HORIZON_MONTHS = 60

Returns = Tuple[Optional[float], Optional[float], Optional[float]]  # (1Y, 3Y, 5Y) in percent


@dataclass(frozen=True)
class Anchors:
    start: float
    now: float
    minus_3y: Optional[float] = None
    minus_1y: Optional[float] = None

    @property
    def total_loss(self) -> bool:
        return self.now == 0

    def direct(self, months: float) -> float:
        """Value on the single start -> now path after ``months``."""
        return _interp(self.start, self.now, months, HORIZON_MONTHS)


def _interp(start: float, end: float, progress: float, duration: float) -> float:
    return start * (end / start) ** (progress / duration)


def _back_solve(now: float, ret: Optional[float]) -> Optional[float]:
    """Value ``ret`` percent ago such that growing it by ``ret`` reaches ``now``."""
    if ret is None:
        return None
    growth = 1.0 + ret / 100.0
    if growth <= 0:
        return None
    value = now / growth
    return value if value > 0 else None


def build_anchors(start_value: float, returns: Returns) -> Optional[Anchors]:
    """Anchor values for one series, or None when the 5Y anchor is unusable.

    A five-year return of exactly -100% is a total loss (``now == 0``); below
    that the ending value is negative and no series exists.
    """
    r1, r3, r5 = returns
    if r5 is None or start_value <= 0:
        return None
    now = start_value * (1.0 + r5 / 100.0)
    if now < 0:
        logger.warning("Five-year return %.2f%% leaves a negative ending value; no backtest", r5)
        return None
    return Anchors(start=start_value, now=now, minus_3y=_back_solve(now, r3), minus_1y=_back_solve(now, r1))


def _window_1(a: Anchors, m: int) -> float:
    if a.minus_3y is not None:
        return _interp(a.start, a.minus_3y, m, 24)
    return a.direct(m)


def _window_2(a: Anchors, m: int) -> float:
    start = a.minus_3y if a.minus_3y is not None else a.direct(24)
    end = a.minus_1y if a.minus_1y is not None else a.now
    return _interp(start, end, m - 24, 24)


def _window_3(a: Anchors, m: int) -> float:
    if a.minus_1y is not None:
        start = a.minus_1y
    elif a.minus_3y is not None:
        start = a.minus_3y
    else:
        start = a.start
    return _interp(start, a.now, m - 48, 12)


# (last month of window, value rule); months 24 and 48 belong to the earlier window
WINDOWS: Sequence[Tuple[int, Callable[[Anchors, int], float]]] = (
    (24, _window_1),
    (48, _window_2),
    (60, _window_3),
)


def value_at(anchors: Anchors, month: int) -> float:
    """Unrounded series value at ``month`` (0..60)."""
    if not 0 <= month <= HORIZON_MONTHS:
        raise ValueError(f"month {month} outside 0..{HORIZON_MONTHS}")
    if anchors.total_loss:
        # nothing to interpolate towards: the start value, then zero
        return anchors.start if month == 0 else 0.0
    for last_month, rule in WINDOWS:
        if month <= last_month:
            return rule(anchors, month)
    raise ValueError(f"month {month} outside 0..{HORIZON_MONTHS}")


def _round_units(value: float) -> int:
    # round half up
    return int(math.floor(value + 0.5))


def _as_timestamp(reference_date) -> pd.Timestamp:
    ts = pd.Timestamp(reference_date)
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts


def reconstruct_backtest(
    fund_returns: Returns,
    benchmark_returns: Returns,
    reference_date: date | datetime | str,
    start_value: float = START_VALUE,
) -> List[BacktestPoint]:
    """61 monthly points for fund and benchmark ending at ``reference_date``.

    ``fund_returns`` / ``benchmark_returns`` are (1Y, 3Y, 5Y) cumulative
    returns in percent, any of which may be None. Without both 5Y returns the
    result is an empty list. Values are rounded to whole currency units.
    """
    fund = build_anchors(start_value, fund_returns)
    bench = build_anchors(start_value, benchmark_returns)
    if fund is None or bench is None:
        logger.debug("Backtest skipped: fund or benchmark five-year anchor missing")
        return []

    ref = _as_timestamp(reference_date)
    points: List[BacktestPoint] = []
    for m in range(HORIZON_MONTHS + 1):
        dt = ref - pd.DateOffset(months=HORIZON_MONTHS - m)
        points.append(BacktestPoint(
            date=dt.date(),
            label=dt.strftime("%b %Y"),
            month_index=m,
            year=dt.year,
            decimal_year=dt.year + (dt.month - 1) / 12.0,
            fund=_round_units(value_at(fund, m)),
            benchmark=_round_units(value_at(bench, m)),
        ))
    return points


def generate_backtest(
    portfolio: Portfolio,
    reference_date: date | datetime | str | None = None,
    start_value: float = START_VALUE,
    threshold: float = COVERAGE_THRESHOLD,
) -> List[BacktestPoint]:
    """Backtest for a portfolio; production callers may omit ``reference_date`` to use today."""
    if reference_date is None:
        reference_date = datetime.now()
    agg = aggregate_fund(portfolio, threshold=threshold)
    return reconstruct_backtest(agg.fund_returns(), agg.benchmark_returns(), reference_date, start_value)


def backtest_frame(points: Sequence[BacktestPoint]) -> pd.DataFrame:
    """Series as a DataFrame indexed by date (columns: month_index, label, fund, benchmark)."""
    cols = ["month_index", "label", "year", "decimal_year", "fund", "benchmark"]
    if not points:
        return pd.DataFrame(columns=cols, index=pd.DatetimeIndex([], name="date"))
    df = pd.DataFrame([{"date": p.date, **{c: getattr(p, c) for c in cols}} for p in points])
    df["date"] = pd.to_datetime(df["date"])
    return df.set_index("date")


def summarize_backtest(fund_5y: Optional[float], benchmark_5y: Optional[float]) -> dict:
    """Headline numbers shown next to the curve; alpha is None unless both returns exist."""
    available = fund_5y is not None and benchmark_5y is not None
    return {
        "available": available,
        "fund_5y": fund_5y,
        "benchmark_5y": benchmark_5y,
        "alpha": (fund_5y - benchmark_5y) if available else None,
    }


__all__ = [
    "START_VALUE",
    "Anchors",
    "build_anchors",
    "value_at",
    "reconstruct_backtest",
    "generate_backtest",
    "backtest_frame",
    "summarize_backtest",
]
