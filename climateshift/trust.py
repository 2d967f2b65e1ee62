from __future__ import annotations
import hashlib, json
from typing import Dict, Iterable

from .aggregation import COVERAGE_THRESHOLD, holdings_frame
from .metrics import DIVERSIFICATION_FACTOR, EXPENSE_RATIO, RISK_FREE_RATE, PortfolioMetrics
from .models import HOLDING_FIELDS, Holding


def coverage_report(holdings: Iterable[Holding], threshold: float = COVERAGE_THRESHOLD) -> Dict[str, dict]:
    """Per-field covered weight and holding count, plus whether the field clears the threshold."""
    df = holdings_frame(holdings)
    out = {}
    for name in HOLDING_FIELDS:
        covered = df[df[name].notna()]
        weight = float(covered["weight"].sum())
        out[name] = {
            "covered_weight": round(weight, 4),
            "n_holdings": int(len(covered)),
            "sufficient": weight > threshold,
        }
    return out


def provenance_hash(obj: dict) -> str:
    """Stable hash of inputs (holdings, anchors, reference date), good for reproducibility logs."""
    b = json.dumps(obj, sort_keys=True, default=str).encode()
    return hashlib.sha256(b).hexdigest()


def metric_audit(metrics: PortfolioMetrics) -> Dict[str, dict]:
    """How each displayed metric was obtained: equation and plain-language explanation."""
    calc_return = metrics.projected_return is not None
    calc_sharpe = metrics.sharpe_ratio is not None
    calc_yield = metrics.dividend_yield is not None
    return {
        "projectedReturn": {
            "label": "Projected Annual Return",
            "calculated": calc_return,
            "equation": (
                "Projected_Return = [ Σ (w_i × R_1Y_i) / Σ w_valid ] - Expense_Ratio\n"
                f"  w_valid must exceed {COVERAGE_THRESHOLD:.0f}% of the fund\n"
                f"  Expense_Ratio = {EXPENSE_RATIO:.2f}%"
            ),
            "explanation": (
                "Weighted average of trailing 1-year returns of holdings with data, "
                "less the expense ratio. Trailing performance is used as a forward proxy."
                if calc_return else
                "Generator estimate; too little verified 1-year return data to calculate."
            ),
        },
        "sharpeRatio": {
            "label": "Sharpe Ratio",
            "calculated": calc_sharpe,
            "equation": (
                "Sharpe = ( R_projected - R_f ) / σ_estimated\n"
                f"  R_f = {RISK_FREE_RATE:.2f}% (US 10-Year Treasury proxy)\n"
                f"  σ_estimated = StdDev(holding 1Y returns) × {DIVERSIFICATION_FACTOR}"
            ),
            "explanation": (
                "Volatility is approximated from the spread of holdings' 1-year returns, "
                "scaled for diversification. A true Sharpe ratio needs daily return history."
                if calc_sharpe else
                "Generator estimate; volatility could not be approximated from the available data."
            ),
        },
        "dividendYield": {
            "label": "Dividend Yield (TTM)",
            "calculated": calc_yield,
            "equation": "Portfolio_Yield = [ Σ (w_i × Y_i) / Σ w_valid ] × 100",
            "explanation": (
                "Weighted average of trailing twelve-month dividend yields of holdings with data."
                if calc_yield else
                "Generator estimate of the portfolio's dividend yield."
            ),
        },
        "carbonFootprintReduction": {
            "label": "Carbon Intensity Reduction",
            "calculated": False,
            "equation": "Reduction = 1 - ( WACI_portfolio / WACI_benchmark )",
            "explanation": "Generator estimate; WACI needs licensed emissions data.",
        },
    }


__all__ = ["coverage_report", "provenance_hash", "metric_audit"]
