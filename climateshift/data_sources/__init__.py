"""Upstream collaborators that supply per-holding observations."""
from .market_data import refresh_portfolio, refresh_prices, build_portfolio

__all__ = ("refresh_portfolio", "refresh_prices", "build_portfolio")
