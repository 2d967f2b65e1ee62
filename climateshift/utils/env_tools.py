from __future__ import annotations
import copy
import os
from pathlib import Path

from dotenv import dotenv_values

try:
    import yaml
except ImportError:
    yaml = None


DEFAULT_CONFIG: dict = {
    "aggregation": {"coverage_threshold": 50.0},
    "metrics": {
        "expense_ratio": 0.10,
        "risk_free_rate": 4.25,
        "diversification_factor": 0.7,
        "min_volatility_holdings": 3,
        "min_volatility_weight": 50.0,
    },
    "backtest": {"start_value": 10000},
    "market_data": {
        "model": "gemini-2.5-flash",
        "batch_size": 4,
        "timeout": 60,
        "max_headlines": 10,
    },
    "storage": {"portfolio_path": "data/cache/climateshift-portfolio.json"},
}


def load_env_once(dotenv_path: str | None = None):
    """
    Load .env without relying on find_dotenv() to avoid assertion errors in -c / REPL contexts.
    Existing environment variables always win over .env entries.
    """
    dp = dotenv_path or ".env"
    if not os.environ.get("_CLIMATESHIFT_ENV_LOADED", ""):
        if Path(dp).exists():
            env = dotenv_values(dp)
            for k, v in env.items():
                if v is not None and k not in os.environ:
                    os.environ[k] = str(v)
        os.environ["_CLIMATESHIFT_ENV_LOADED"] = "1"


def _default_config_path() -> Path:
    from climateshift.utils import find_project_root
    return find_project_root() / "config" / "config.yaml"


def load_config(config_path: str | Path | None = None) -> dict:
    """Load YAML config and backfill any keys the file leaves out.

    A missing file yields the built-in defaults. PyYAML is only required
    when a file is actually present.
    """
    p = Path(config_path) if config_path else _default_config_path()
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if not p.exists():
        return cfg
    if yaml is None:
        raise RuntimeError("PyYAML is required to load config.yaml")
    with p.open("r") as f:
        loaded = yaml.safe_load(f) or {}
    for section, values in loaded.items():
        if isinstance(values, dict):
            cfg.setdefault(section, {})
            cfg[section].update(values)
        else:
            cfg[section] = values
    return cfg


def _truthy(value, default: bool = False) -> bool:
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool | str = False) -> bool:
    """Return boolean interpretation of an environment flag (loads .env once)."""
    load_env_once()
    val = os.getenv(name)
    if val is None:
        return _truthy(default, default=False)
    return _truthy(val, default=False)


def get_api_key() -> str | None:
    """GEMINI_API_KEY, falling back to the generic API_KEY; None when unset."""
    load_env_once()
    return os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or None
