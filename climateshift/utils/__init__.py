from __future__ import annotations
from pathlib import Path
import json
import logging
import os

from .env_tools import load_config, load_env_once, env_flag, get_api_key


# Small logger so modules can do: from climateshift.utils import log
def get_logger(name: str = "climateshift"):
    lvl = os.getenv("CLIMATESHIFT_LOG_LEVEL", "INFO").upper()
    logger = logging.getLogger(name)
    if not logger.handlers:
        logging.basicConfig(level=getattr(logging, lvl, logging.INFO),
                            format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return logger

log = get_logger()


def find_project_root() -> Path:
    # start at this file and walk up looking for a 'config' directory
    here = Path(__file__).resolve()
    for parent in [here.parent] + list(here.parents):
        if (parent / "config" / "config.yaml").exists():
            return parent
    # fallback: assume two levels up (project root)
    return here.parents[2]


def load_json(path: str | Path):
    pth = Path(path)
    if not pth.is_absolute() and not pth.exists():
        pth = find_project_root() / pth
    with open(pth, "r") as f:
        return json.load(f)


__all__ = [
    "get_logger",
    "log",
    "find_project_root",
    "load_json",
    "load_config",
    "load_env_once",
    "env_flag",
    "get_api_key",
]
