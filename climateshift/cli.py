"""
ClimateShift fund report.

USAGE:
    climateshift report portfolio.json --as-of 2026-10-01 --csv backtest.csv
    climateshift validate "more defensive, add utilities"

Args (report):
    PORTFOLIO: JSON file in the generator's shape (positions + metrics)
    --as-of: reference date for the backtest (default: today)
    --csv: write the 61-point backtest series to this CSV
    --config: alternate config.yaml

Output:
    Weighted aggregates, derived metrics ("n/a" when data is insufficient)
    and the five-year backtest summary.
"""
from __future__ import annotations
import argparse
import sys
from datetime import datetime

from climateshift.aggregation import aggregate_fund
from climateshift.backtest import backtest_frame, reconstruct_backtest, summarize_backtest
from climateshift.metrics import MetricParams, compute_metrics, merge_display_metrics
from climateshift.models import Portfolio
from climateshift.trust import coverage_report, provenance_hash
from climateshift.utils import get_logger, load_config, load_json
from climateshift.validation import get_validation_message, validate_user_preferences

log = get_logger("climateshift.cli")


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="climateshift",
        description="Fund metrics and reconstructed backtest from a portfolio file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    rep = sub.add_parser("report", help="Print metrics and backtest summary")
    rep.add_argument("portfolio", type=str, help="Portfolio JSON file")
    rep.add_argument("--as-of", type=str, default=None, help="Reference date YYYY-MM-DD (default: today)")
    rep.add_argument("--csv", type=str, default=None, help="Write backtest series to CSV")
    rep.add_argument("--config", type=str, default=None, help="Path to config.yaml")

    val = sub.add_parser("validate", help="Check a rebalance preference string")
    val.add_argument("text", type=str, help="Preference text")

    return parser.parse_args(argv)


def _pct(value, decimals: int = 2) -> str:
    return "n/a" if value is None else f"{value:+.{decimals}f}%"


def run_report(args) -> int:
    cfg = load_config(args.config)
    params = MetricParams.from_config(cfg)
    start_value = float(cfg["backtest"]["start_value"])

    try:
        portfolio = Portfolio.from_dict(load_json(args.portfolio))
    except (OSError, ValueError, AttributeError, TypeError) as e:
        print(f"❌ Could not read portfolio: {e}", file=sys.stderr)
        return 2

    if args.as_of:
        try:
            as_of = datetime.strptime(args.as_of, "%Y-%m-%d")
        except ValueError:
            print(f"❌ Invalid --as-of date: {args.as_of}", file=sys.stderr)
            return 2
    else:
        as_of = datetime.now()

    agg = aggregate_fund(portfolio, threshold=params.coverage_threshold)
    metrics = compute_metrics(portfolio, params)
    display = merge_display_metrics(portfolio.ai_metrics, metrics)
    points = reconstruct_backtest(agg.fund_returns(), agg.benchmark_returns(), as_of, start_value)
    summary = summarize_backtest(agg.five_year_return, agg.benchmark_five_year)

    log.info("Report inputs hash: %s", provenance_hash({"portfolio": portfolio.to_dict(), "as_of": as_of.date()}))

    print(f"\n{portfolio.name or 'Portfolio'} ({len(portfolio.holdings)} holdings)")
    print("=" * 60)
    print("Coverage (weight % with data):")
    for name, row in coverage_report(portfolio.holdings, params.coverage_threshold).items():
        flag = "ok" if row["sufficient"] else "insufficient"
        print(f"  {name:<20} {row['covered_weight']:>7.2f}%  ({row['n_holdings']} holdings, {flag})")

    print("\nWeighted returns:")
    print(f"  1Y {_pct(agg.one_year_return)}   3Y {_pct(agg.three_year_return)}   5Y {_pct(agg.five_year_return)}")
    print(f"  Benchmark 1Y {_pct(agg.benchmark_one_year)}   3Y {_pct(agg.benchmark_three_year)}"
          f"   5Y {_pct(agg.benchmark_five_year)}")

    print("\nMetrics:")
    flags = display["isCalculated"]
    for key in ("projectedReturn", "dividendYield", "projectedVolatility", "sharpeRatio", "carbonFootprintReduction"):
        value = display.get(key) or "n/a"
        source = "calculated" if flags.get(key) else "estimate"
        print(f"  {key:<26} {value:>10}  [{source}]")

    print("\nBacktest (5Y):")
    if not points:
        print("  Insufficient data to reconstruct a backtest")
    else:
        print(f"  {points[0].label}: fund {points[0].fund:,}  benchmark {points[0].benchmark:,}")
        print(f"  {points[-1].label}: fund {points[-1].fund:,}  benchmark {points[-1].benchmark:,}")
        print(f"  Alpha (5Y total): {_pct(summary['alpha'], 1)}")
        if args.csv:
            backtest_frame(points).to_csv(args.csv)
            print(f"  ✓ Series written to {args.csv}")
    return 0


def run_validate(args) -> int:
    try:
        cleaned = validate_user_preferences(args.text)
    except ValueError as e:
        print(get_validation_message(e))
        return 2
    print(get_validation_message(None))
    print(cleaned)
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.command == "report":
        return run_report(args)
    return run_validate(args)


if __name__ == "__main__":
    sys.exit(main())
