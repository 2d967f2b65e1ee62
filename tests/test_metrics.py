from __future__ import annotations

import pytest

from climateshift.metrics import (
    MetricParams,
    PortfolioMetrics,
    compute_metrics,
    format_metrics,
    merge_display_metrics,
    portfolio_dividend_yield,
    projected_return,
    sharpe_ratio,
    volatility_proxy,
)
from climateshift.models import FundAggregates, Holding, Portfolio


TWO_HOLDINGS = (
    Holding("A", 50, one_year_return=20.0, dividend_yield=2.0),
    Holding("B", 50, one_year_return=10.0, dividend_yield=1.0),
)

THREE_HOLDINGS = (
    Holding("A", 30, one_year_return=25.0, dividend_yield=1.5),
    Holding("B", 30, one_year_return=15.0, dividend_yield=2.0),
    Holding("C", 40, one_year_return=10.0, dividend_yield=1.0),
)


def test_projected_return_subtracts_expense_ratio():
    assert projected_return(FundAggregates(one_year_return=15.0)) == pytest.approx(14.9)


def test_projected_return_absent_without_one_year():
    assert projected_return(FundAggregates(one_year_return=None)) is None


def test_dividend_yield_passthrough():
    assert portfolio_dividend_yield(FundAggregates(dividend_yield=1.5)) == 1.5
    assert portfolio_dividend_yield(FundAggregates()) is None


def test_volatility_needs_three_holdings():
    # two holdings is never enough, whatever their weight
    assert volatility_proxy(TWO_HOLDINGS) is None


def test_volatility_cross_sectional_estimate():
    # returns [25, 15, 10]: mean 16.67, population std 6.24, x0.7 -> 4.37
    assert volatility_proxy(THREE_HOLDINGS) == pytest.approx(4.37, abs=0.1)


def test_volatility_uses_population_stdev():
    returns = [25.0, 15.0, 10.0]
    mean = sum(returns) / 3
    expected = (sum((r - mean) ** 2 for r in returns) / 3) ** 0.5 * 0.7
    assert volatility_proxy(THREE_HOLDINGS) == pytest.approx(expected, rel=1e-12)


def test_volatility_weight_gate_is_inclusive():
    at_50 = [Holding(t, w, one_year_return=r) for t, w, r in [("A", 20, 5.0), ("B", 15, 10.0), ("C", 15, 20.0), ("D", 50, None)]]
    below = [Holding(t, w, one_year_return=r) for t, w, r in [("A", 20, 5.0), ("B", 15, 10.0), ("C", 14, 20.0), ("D", 51, None)]]
    assert volatility_proxy(at_50) is not None
    assert volatility_proxy(below) is None


def test_sharpe_ratio_example():
    # 1Y = 16, projected 15.9, vol ~4.37 -> (15.9 - 4.25) / 4.37 ~ 2.67
    metrics = compute_metrics(Portfolio(name="Test", holdings=THREE_HOLDINGS))
    assert metrics.projected_return == pytest.approx(15.9)
    assert metrics.sharpe_ratio is not None
    assert metrics.sharpe_ratio == pytest.approx(2.67, abs=0.1)


def test_sharpe_absent_inputs():
    assert sharpe_ratio(None, 4.0) is None
    assert sharpe_ratio(10.0, None) is None


def test_sharpe_zero_volatility_is_absent():
    same = tuple(Holding(t, 34, one_year_return=12.0) for t in "ABC")
    vol = volatility_proxy(same)
    assert vol == 0.0
    assert sharpe_ratio(11.9, vol) is None
    assert compute_metrics(Portfolio(name="Flat", holdings=same)).sharpe_ratio is None


def test_compute_metrics_two_holdings():
    metrics = compute_metrics(Portfolio(name="Test", holdings=TWO_HOLDINGS))
    assert metrics.projected_return == pytest.approx(14.9)
    assert metrics.dividend_yield == pytest.approx(1.5)
    assert metrics.volatility is None
    assert metrics.sharpe_ratio is None


def test_format_metrics():
    formatted = format_metrics(compute_metrics(Portfolio(name="Test", holdings=TWO_HOLDINGS)))
    assert formatted["projectedReturn"] == "+14.9%"
    assert formatted["dividendYield"] == "1.50%"
    assert formatted["sharpeRatio"] is None
    assert formatted["annualizedVolatility"] is None


def test_format_negative_return_has_no_plus():
    assert format_metrics(PortfolioMetrics(projected_return=-3.26))["projectedReturn"] == "-3.3%"
    assert format_metrics(PortfolioMetrics(projected_return=0.0))["projectedReturn"] == "0.0%"


def test_merge_display_metrics_prefers_calculated():
    ai = {"projectedReturn": "10-12%", "sharpeRatio": "1.2", "dividendYield": "1.8%",
          "projectedVolatility": "Medium", "carbonFootprintReduction": "-40%"}
    shown = merge_display_metrics(ai, compute_metrics(Portfolio(name="Test", holdings=TWO_HOLDINGS)))
    assert shown["projectedReturn"] == "+14.9%"
    assert shown["dividendYield"] == "1.50%"
    assert shown["sharpeRatio"] == "1.2"
    assert shown["projectedVolatility"] == "Medium"
    assert shown["carbonFootprintReduction"] == "-40%"
    assert shown["isCalculated"] == {
        "projectedReturn": True,
        "dividendYield": True,
        "projectedVolatility": False,
        "sharpeRatio": False,
        "carbonFootprintReduction": False,
    }


def test_params_from_config_override():
    params = MetricParams.from_config({"metrics": {"expense_ratio": 0.5, "risk_free_rate": 3.0}})
    assert params.expense_ratio == 0.5
    assert params.risk_free_rate == 3.0
    assert params.diversification_factor == 0.7
    metrics = compute_metrics(Portfolio(name="Test", holdings=TWO_HOLDINGS), params)
    assert metrics.projected_return == pytest.approx(14.5)
