from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from climateshift.models import Headline, Portfolio
from climateshift.utils.env_tools import env_flag, get_api_key, load_config
from climateshift.validation import validate_user_preferences

logger = logging.getLogger(__name__)

GEMINI_BASE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class MissingAPIKeyError(RuntimeError):
    """Raised when an operation needs the generation API but no key is configured."""


@dataclass
class GeminiResponse:
    text: str = ""
    grounding_chunks: List[dict] = field(default_factory=list)


def _settings() -> dict:
    return load_config().get("market_data", {})


def _require_key() -> str:
    key = get_api_key()
    if not key:
        raise MissingAPIKeyError("API Key is missing (set GEMINI_API_KEY)")
    return key


def generate_content(
    prompt: str,
    *,
    search: bool = True,
    response_schema: Optional[dict] = None,
    model: str | None = None,
    timeout: float | None = None,
) -> GeminiResponse:
    """
    Single generateContent call.
    - search=True enables Google Search grounding (cannot be combined with a schema)
    - response_schema requests strict JSON output
    Raises MissingAPIKeyError without a key and requests.HTTPError on non-2xx.
    """
    key = _require_key()
    cfg = _settings()
    model = model or cfg.get("model", "gemini-2.5-flash")
    timeout = timeout or cfg.get("timeout", 60)

    body: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
    if response_schema is not None:
        body["generationConfig"] = {"responseMimeType": "application/json", "responseSchema": response_schema}
    elif search and env_flag("CLIMATESHIFT_SEARCH_GROUNDING", True):
        body["tools"] = [{"google_search": {}}]

    r = requests.post(
        GEMINI_BASE.format(model=model),
        headers={"x-goog-api-key": key, "Content-Type": "application/json"},
        json=body,
        timeout=timeout,
    )
    r.raise_for_status()
    payload = r.json() or {}

    candidates = payload.get("candidates") or [{}]
    first = candidates[0] or {}
    parts = (first.get("content") or {}).get("parts") or []
    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
    chunks = (first.get("groundingMetadata") or {}).get("groundingChunks") or []
    return GeminiResponse(text=text, grounding_chunks=list(chunks))


def extract_json_block(text: str) -> dict:
    """First {...} object in a model reply (markdown fences tolerated); {} when none parses."""
    clean = re.sub(r"```json|```", "", text or "").strip()
    m = re.search(r"\{[\s\S]*\}", clean)
    if not m:
        return {}
    try:
        data = json.loads(m.group(0))
    except ValueError as e:
        logger.warning(f"Failed to parse model JSON: {type(e).__name__}: {str(e)[:100]}")
        return {}
    return data if isinstance(data, dict) else {}


# --- per-ticker and benchmark returns ------------------------------------------

_BATCH_PROMPT = """Find real-time stock data for these tickers: {tickers}

For each ticker find the current price in USD and the 1-year, 3-year and
5-year total return percentages. The 5-year return is the most important.

Return only a JSON object keyed by ticker, for example:
{{"AAPL": {{"price": 185.5, "oneYearChange": 25.5, "threeYearChange": 45.0, "fiveYearChange": 280.5}}}}

Omit any field you cannot find and omit tickers with no data at all.
Do not guess values."""

_BENCHMARK_PROMPT = """Find the S&P 500 (SPY) 1-year, 3-year and 5-year total return percentages.
Return only a JSON object:
{"oneYearChange": 12.5, "threeYearChange": 35.2, "fiveYearChange": 85.0}"""


def fetch_stock_batch(tickers: List[str]) -> Dict[str, dict]:
    """Sparse {ticker: {price, oneYearChange, threeYearChange, fiveYearChange}}; {} on failure."""
    if not tickers:
        return {}
    try:
        resp = generate_content(_BATCH_PROMPT.format(tickers=", ".join(tickers)))
    except requests.RequestException as e:
        logger.warning(f"Batch fetch failed for {', '.join(tickers)}: {type(e).__name__}: {e}")
        return {}
    data = extract_json_block(resp.text)
    return {str(k): v for k, v in data.items() if isinstance(v, dict)}


def fetch_benchmark() -> dict:
    try:
        resp = generate_content(_BENCHMARK_PROMPT)
    except requests.RequestException as e:
        logger.warning(f"Benchmark fetch failed: {type(e).__name__}: {e}")
        return {}
    return extract_json_block(resp.text)


# --- headlines -----------------------------------------------------------------

_HEADLINE_PROMPT = """Find {limit} of the most significant and latest financial news headlines relevant to: {query}.
Only use reputable outlets (Reuters, Bloomberg, WSJ, FT, CNBC, The Economist, Barron's and similar).
Format the answer as a numbered list:
1. Headline text - Source Name"""

_NUMBERED_LINE = re.compile(r"^\d+\.")
_HEADLINE_LINE = re.compile(r"^\d+\.\s*(.+?)(?:\s*-\s*(.+))?$")


def _source_from_url(uri: str) -> str:
    host = urlparse(uri).hostname or ""
    if not host:
        return "News"
    domain = re.sub(r"^www\.", "", host).split(".")[0]
    return domain[:1].upper() + domain[1:] if domain else "News"


def parse_headlines(text: str, grounding_chunks: List[dict], limit: int = 10) -> List[Headline]:
    """Pair numbered "N. Title - Source" lines with grounding chunks, in order.

    Chunks without a web URI are dropped. When a line has no source, the
    source is the capitalised domain of the chunk URL.
    """
    if not grounding_chunks:
        return []
    lines = [ln.strip() for ln in (text or "").splitlines() if _NUMBERED_LINE.match(ln.strip())]
    web_chunks = [c["web"] for c in grounding_chunks if isinstance(c, dict) and (c.get("web") or {}).get("uri")]

    out: List[Headline] = []
    for i, web in enumerate(web_chunks):
        title, source = "Financial News", None
        if i < len(lines):
            m = _HEADLINE_LINE.match(lines[i])
            if m:
                title = m.group(1).strip().strip('"')
                source = m.group(2).strip() if m.group(2) else None
            else:
                title = re.sub(r"^\d+\.\s*", "", lines[i]).strip()
        elif web.get("title") and "http" not in web["title"]:
            title = web["title"]
        out.append(Headline(title=title, source=source or _source_from_url(web["uri"]), url=web["uri"]))
    return out[:limit]


def fetch_market_headlines(query: str = "major global financial news and market movers") -> List[Headline]:
    """Latest headlines; [] without an API key or on any provider failure."""
    if not get_api_key():
        return []
    limit = int(_settings().get("max_headlines", 10))
    try:
        resp = generate_content(_HEADLINE_PROMPT.format(limit=limit, query=query))
    except requests.RequestException as e:
        logger.warning(f"Error fetching market headlines: {type(e).__name__}: {e}")
        return []
    return parse_headlines(resp.text, resp.grounding_chunks, limit=limit)


# --- fund structure ------------------------------------------------------------

_STRUCTURE_PROMPT = """Act as a senior quantitative portfolio manager.
Design the "ClimateShift Alpha" ETF: a sustainability-focused fund that aims
to outperform the S&P 500 with similar beta.

Exclusions (strict): fossil fuels, weapons, predatory lending, tobacco,
pre-revenue companies, business models at high risk of obsolescence from
generative AI, and companies public for less than 5 years.

{rebalance}
Include 12-18 positions whose weights sum to approximately 100. Categorise
each as Core (sustainable leaders), Growth (clean-tech innovation) or
Stabilizer (low-volatility neutral companies). Provide estimated metrics."""

_REBALANCE_CONTEXT = """Rebalancing request from the user: "{preferences}".
Adapt sector weights and selection to it, but never relax the exclusions.
Explain the rebalance in the narrative.
"""

STRUCTURE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING"},
        "description": {"type": "STRING"},
        "narrative": {"type": "STRING"},
        "metrics": {
            "type": "OBJECT",
            "properties": {
                k: {"type": "STRING"}
                for k in ("projectedReturn", "projectedVolatility", "dividendYield",
                          "carbonFootprintReduction", "sharpeRatio")
            },
        },
        "positions": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "ticker": {"type": "STRING"},
                    "name": {"type": "STRING"},
                    "weight": {"type": "NUMBER"},
                    "sector": {"type": "STRING"},
                    "reason": {"type": "STRING"},
                    "esgScore": {"type": "STRING"},
                    "type": {"type": "STRING", "enum": ["Core", "Growth", "Stabilizer"]},
                },
                "required": ["ticker", "name", "weight", "sector", "reason", "esgScore", "type"],
            },
        },
    },
    "required": ["name", "description", "positions", "metrics", "narrative"],
}


def generate_portfolio_structure(preferences: str | None = None) -> Portfolio:
    """Ask the model for a fund composition (weights and descriptive fields only).

    Raises ValueError for rejected preferences, MissingAPIKeyError without a
    key and requests exceptions on transport failure.
    """
    rebalance = ""
    if preferences is not None:
        rebalance = _REBALANCE_CONTEXT.format(preferences=validate_user_preferences(preferences))
    resp = generate_content(_STRUCTURE_PROMPT.format(rebalance=rebalance), search=False,
                            response_schema=STRUCTURE_SCHEMA)
    if not resp.text:
        raise ValueError("No data returned from the model for the fund structure")
    return Portfolio.from_dict(json.loads(resp.text))


# --- single stock detail -------------------------------------------------------

_STOCK_PROMPT = """Find real-time financial data for {ticker}: current price (USD), market cap,
P/E ratio, dividend yield (%) and 3 bullet points of recent news.
End the answer with a JSON object (no code fence) like:
{{"1W": 1.2, "1M": -2.4, "3M": 5.5, "1Y": 12.0, "5Y": 40.5, "marketCap": "2.5T", "peRatio": 30.5, "dividendYield": 0.5}}"""

_PERF_KEYS = {"1W": "one_week", "1M": "one_month", "3M": "three_month", "1Y": "one_year", "5Y": "five_year"}


def parse_stock_analysis(text: str) -> dict:
    """Split a stock analysis reply into prose content, performance figures and price."""
    text = text or ""
    performance: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    m = re.search(r'\{[\s\S]*"1W"[\s\S]*\}', text)
    if m:
        try:
            parsed = json.loads(m.group(0))
            performance = {v: parsed.get(k) for k, v in _PERF_KEYS.items()}
            extra = {k: parsed.get(k) for k in ("marketCap", "peRatio", "dividendYield")}
        except ValueError as e:
            logger.warning(f"Failed to parse performance JSON: {e}")
    content = text.replace(m.group(0), "").strip() if m else text.strip()
    price_match = re.search(r"\$([\d,]+\.\d{2})", content)
    price = float(price_match.group(1).replace(",", "")) if price_match else None
    return {
        "content": content,
        "performance": performance,
        "price": price,
        "market_cap": extra.get("marketCap"),
        "pe_ratio": extra.get("peRatio"),
        "dividend_yield": extra.get("dividendYield"),
    }


def analyze_stock(ticker: str) -> dict:
    resp = generate_content(_STOCK_PROMPT.format(ticker=ticker))
    result = parse_stock_analysis(resp.text)
    result["grounding_chunks"] = resp.grounding_chunks
    return result


__all__ = [
    "MissingAPIKeyError",
    "GeminiResponse",
    "generate_content",
    "extract_json_block",
    "fetch_stock_batch",
    "fetch_benchmark",
    "parse_headlines",
    "fetch_market_headlines",
    "generate_portfolio_structure",
    "parse_stock_analysis",
    "analyze_stock",
]
