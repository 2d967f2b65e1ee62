from __future__ import annotations
from datetime import date, datetime

import pandas as pd
import pytest

from climateshift.backtest import (
    backtest_frame,
    build_anchors,
    generate_backtest,
    reconstruct_backtest,
    summarize_backtest,
    value_at,
)
from climateshift.models import BenchmarkReturns, Holding, Portfolio

REF = date(2026, 10, 16)
FUND = (15.0, 30.0, 50.0)
BENCH = (10.0, 30.0, 50.0)


def _mock_portfolio() -> Portfolio:
    return Portfolio(
        name="Test Fund",
        holdings=(
            Holding("A", 50, one_year_return=20.0, three_year_return=40.0, five_year_return=60.0),
            Holding("B", 50, one_year_return=10.0, three_year_return=20.0, five_year_return=40.0),
        ),
        benchmark=BenchmarkReturns(one_year=10.0, three_year=30.0, five_year=50.0),
    )


def test_generates_61_points():
    assert len(reconstruct_backtest(FUND, BENCH, REF)) == 61


def test_empty_without_fund_five_year():
    assert reconstruct_backtest((15.0, 30.0, None), BENCH, REF) == []


def test_empty_without_benchmark_five_year():
    assert reconstruct_backtest(FUND, (10.0, 30.0, None), REF) == []


def test_starts_at_start_value():
    first = reconstruct_backtest(FUND, BENCH, REF)[0]
    assert first.fund == 10000
    assert first.benchmark == 10000
    assert first.month_index == 0


def test_ends_at_five_year_growth():
    points = reconstruct_backtest((None, None, 73.456), (None, None, 50.0), REF)
    assert points[-1].fund == round(10000 * 1.73456)
    assert points[-1].benchmark == 15000


def test_lands_on_anchors():
    points = reconstruct_backtest(FUND, BENCH, REF)
    now = 10000 * 1.5
    assert abs(points[24].fund - now / 1.30) <= 0.5
    assert abs(points[48].fund - now / 1.15) <= 0.5
    assert abs(points[48].benchmark - now / 1.10) <= 0.5


def test_missing_three_year_uses_direct_path():
    anchors = build_anchors(10000.0, (15.0, None, 50.0))
    assert anchors.minus_3y is None
    expected = 10000 * 1.5 ** (12 / 60)
    assert value_at(anchors, 12) == pytest.approx(expected)
    # window 2 starts where the direct path is at month 24
    assert value_at(anchors, 24) == pytest.approx(10000 * 1.5 ** (24 / 60))
    assert value_at(anchors, 48) == pytest.approx(15000 / 1.15)


def test_missing_one_year_falls_back_to_three_year_then_now():
    anchors = build_anchors(10000.0, (None, 30.0, 50.0))
    minus_3y = 15000 / 1.3
    # window 2 heads to "now"; window 3 then starts from the 3Y anchor
    assert value_at(anchors, 36) == pytest.approx(minus_3y * (15000 / minus_3y) ** (12 / 24))
    assert value_at(anchors, 54) == pytest.approx(minus_3y * (15000 / minus_3y) ** (6 / 12))


def test_only_five_year_anchor():
    anchors = build_anchors(10000.0, (None, None, 50.0))
    # window 3 restarts from the start value
    assert value_at(anchors, 48) == pytest.approx(15000.0)
    assert value_at(anchors, 54) == pytest.approx(10000 * 1.5 ** 0.5)
    assert value_at(anchors, 60) == pytest.approx(15000.0)


def test_total_loss_five_year_keeps_full_series():
    points = reconstruct_backtest((None, None, -100.0), BENCH, REF)
    assert len(points) == 61
    assert points[0].fund == 10000
    assert points[-1].fund == 0
    assert all(p.fund == 0 for p in points[1:])
    assert points[-1].benchmark == 15000


def test_total_loss_with_short_anchors():
    points = reconstruct_backtest((-50.0, -80.0, -100.0), (-100.0, -100.0, -100.0), REF)
    assert len(points) == 61
    assert points[0].fund == points[0].benchmark == 10000
    assert points[-1].fund == points[-1].benchmark == 0


def test_below_total_loss_yields_empty():
    assert build_anchors(10000.0, (None, None, -120.0)) is None
    assert reconstruct_backtest((None, None, -120.0), BENCH, REF) == []


def test_value_at_rejects_out_of_range_month():
    anchors = build_anchors(10000.0, FUND)
    with pytest.raises(ValueError):
        value_at(anchors, 61)
    with pytest.raises(ValueError):
        value_at(anchors, -1)


def test_degenerate_three_year_anchor_is_ignored():
    anchors = build_anchors(10000.0, (10.0, -100.0, 50.0))
    assert anchors.minus_3y is None
    assert len(reconstruct_backtest((10.0, -100.0, 50.0), BENCH, REF)) == 61


def test_dates_are_monthly_and_end_at_reference():
    points = reconstruct_backtest(FUND, BENCH, REF)
    assert points[0].date == date(2021, 10, 16)
    assert points[0].label == "Oct 2021"
    assert points[0].decimal_year == pytest.approx(2021.75)
    assert points[-1].date == REF
    assert [p.month_index for p in points] == list(range(61))


def test_month_end_reference_is_clamped():
    points = reconstruct_backtest(FUND, BENCH, "2024-03-31")
    assert points[59].date == date(2024, 2, 29)
    assert points[58].date == date(2024, 1, 31)


def test_deterministic():
    ref = datetime(2025, 1, 15, 9, 30)
    assert reconstruct_backtest(FUND, BENCH, ref) == reconstruct_backtest(FUND, BENCH, ref)


def test_generate_backtest_from_portfolio():
    points = generate_backtest(_mock_portfolio(), reference_date=REF)
    assert len(points) == 61
    assert points[0].fund == 10000
    assert points[-1].fund == 15000
    assert points[-1].benchmark == 15000


def test_generate_backtest_insufficient_holdings_data():
    pf = _mock_portfolio()
    sparse = pf.with_holdings([pf.holdings[0], Holding("B", 50)])
    assert generate_backtest(sparse, reference_date=REF) == []


def test_backtest_frame():
    df = backtest_frame(reconstruct_backtest(FUND, BENCH, REF))
    assert isinstance(df.index, pd.DatetimeIndex)
    assert len(df) == 61
    assert df["fund"].iloc[0] == 10000
    assert backtest_frame([]).empty


def test_summarize_backtest():
    assert summarize_backtest(50.0, 42.5)["alpha"] == pytest.approx(7.5)
    summary = summarize_backtest(None, 42.5)
    assert summary["available"] is False
    assert summary["alpha"] is None
