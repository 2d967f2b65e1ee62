from __future__ import annotations
import math

import pytest

from climateshift.aggregation import aggregate_fund, covered_weight, holdings_frame, weighted_aggregate
from climateshift.models import BenchmarkReturns, Holding, Portfolio


def _pair(**overrides):
    a = dict(ticker="A", weight=50, one_year_return=20.0, three_year_return=40.0,
             five_year_return=60.0, dividend_yield=2.0)
    b = dict(ticker="B", weight=50, one_year_return=10.0, three_year_return=20.0,
             five_year_return=40.0, dividend_yield=1.0)
    a.update(overrides.get("a", {}))
    b.update(overrides.get("b", {}))
    return [Holding(**a), Holding(**b)]


def test_weighted_average_full_coverage():
    # 50% * 20 + 50% * 10
    assert weighted_aggregate(_pair(), "one_year_return") == 15.0


def test_exactly_half_coverage_is_absent():
    holdings = _pair(a={"one_year_return": None})
    assert covered_weight(holdings, "one_year_return") == 50.0
    # strict ">": 50 covered is not enough, and the answer is None, not 10
    assert weighted_aggregate(holdings, "one_year_return") is None


def test_just_over_half_is_renormalised():
    holdings = [
        Holding("A", 49, one_year_return=None),
        Holding("B", 51, one_year_return=10.0),
    ]
    assert weighted_aggregate(holdings, "one_year_return") == pytest.approx(10.0)


def test_no_coverage_is_absent():
    holdings = _pair(a={"dividend_yield": None}, b={"dividend_yield": None})
    assert weighted_aggregate(holdings, "dividend_yield") is None


def test_zero_value_counts_as_data():
    holdings = [Holding("A", 60, dividend_yield=0.0), Holding("B", 40)]
    assert weighted_aggregate(holdings, "dividend_yield") == 0.0


def test_nan_counts_as_missing():
    holdings = [Holding("A", 60, one_year_return=math.nan), Holding("B", 40, one_year_return=5.0)]
    assert weighted_aggregate(holdings, "one_year_return") is None


def test_formula_matches_definition():
    holdings = [
        Holding("A", 30, five_year_return=80.0),
        Holding("B", 25, five_year_return=-10.0),
        Holding("C", 20, five_year_return=None),
        Holding("D", 15, five_year_return=35.0),
    ]
    covered = [(30, 80.0), (25, -10.0), (15, 35.0)]
    cov_w = sum(w for w, _ in covered)
    expected = sum(w / 100 * v for w, v in covered) / cov_w * 100
    assert weighted_aggregate(holdings, "five_year_return") == pytest.approx(expected, rel=1e-12)


def test_weights_need_not_sum_to_100():
    holdings = [Holding("A", 40, one_year_return=10.0), Holding("B", 40, one_year_return=20.0)]
    # 80 covered -> rescaled to a plain average of the covered holdings
    assert weighted_aggregate(holdings, "one_year_return") == pytest.approx(15.0)


def test_custom_threshold():
    holdings = [Holding("A", 40, one_year_return=10.0), Holding("B", 60)]
    assert weighted_aggregate(holdings, "one_year_return") is None
    assert weighted_aggregate(holdings, "one_year_return", threshold=30) == pytest.approx(10.0)


def test_unknown_field_raises():
    with pytest.raises(KeyError):
        weighted_aggregate(_pair(), "price")


def test_empty_holdings():
    assert weighted_aggregate([], "one_year_return") is None
    assert covered_weight([], "one_year_return") == 0.0
    assert holdings_frame([]).empty


def test_idempotent():
    holdings = _pair(b={"three_year_return": 17.3})
    first = weighted_aggregate(holdings, "three_year_return")
    second = weighted_aggregate(holdings, "three_year_return")
    assert first == second


def test_aggregate_fund_carries_benchmark():
    pf = Portfolio(name="Test", holdings=tuple(_pair()),
                   benchmark=BenchmarkReturns(one_year=10.0, three_year=None, five_year=50.0))
    agg = aggregate_fund(pf)
    assert agg.one_year_return == pytest.approx(15.0)
    assert agg.three_year_return == pytest.approx(30.0)
    assert agg.five_year_return == pytest.approx(50.0)
    assert agg.dividend_yield == pytest.approx(1.5)
    assert agg.benchmark_returns() == (10.0, None, 50.0)
