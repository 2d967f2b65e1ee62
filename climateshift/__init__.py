from importlib.metadata import version, PackageNotFoundError
__all__ = ["models", "aggregation", "metrics", "backtest", "trust", "validation", "data_sources", "utils"]
try:
    __version__ = version("climateshift")
except PackageNotFoundError:
    __version__ = "0.1.0"

from .aggregation import weighted_aggregate, aggregate_fund
from .metrics import projected_return, portfolio_dividend_yield, volatility_proxy, sharpe_ratio, compute_metrics
from .backtest import reconstruct_backtest, generate_backtest
from .models import Holding, Portfolio, FundAggregates, BacktestPoint

__all__ += [
    "weighted_aggregate",
    "aggregate_fund",
    "projected_return",
    "portfolio_dividend_yield",
    "volatility_proxy",
    "sharpe_ratio",
    "compute_metrics",
    "reconstruct_backtest",
    "generate_backtest",
    "Holding",
    "Portfolio",
    "FundAggregates",
    "BacktestPoint",
]
