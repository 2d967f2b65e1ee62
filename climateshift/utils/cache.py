from __future__ import annotations
import json
import logging
from pathlib import Path

from climateshift.models import Portfolio
from climateshift.utils.env_tools import load_config

logger = logging.getLogger(__name__)


def _to_path(path: str | Path | None) -> Path:
    """
    Explicit path, or the configured storage.portfolio_path.
    Ensures a .json extension and that the parent directory exists.
    """
    if path is None:
        path = load_config()["storage"]["portfolio_path"]
    p = Path(path)
    if p.suffix.lower() != ".json":
        p = p.with_suffix(".json")
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def save_portfolio(portfolio: Portfolio, path: str | Path | None = None) -> Path:
    p = _to_path(path)
    with p.open("w") as f:
        json.dump(portfolio.to_dict(), f, indent=2)
    return p


def load_portfolio(path: str | Path | None = None) -> Portfolio | None:
    """Return the saved Portfolio, or None if nothing is saved or the file is unreadable."""
    p = _to_path(path)
    if not p.exists():
        return None
    try:
        with p.open("r") as f:
            return Portfolio.from_dict(json.load(f))
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Failed to load saved portfolio {p}: {type(e).__name__}: {e}")
        return None


def clear_portfolio(path: str | Path | None = None) -> None:
    _to_path(path).unlink(missing_ok=True)
