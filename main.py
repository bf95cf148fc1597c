"""
main.py
--------
Entry point for the spending analytics engine.

Reads a transaction CSV (columns: date, amount, category, description),
trains every model family, and writes the analytics report to the
outputs/ folder.

Usage (from the project root):
    python main.py --input path/to/transactions.csv

    # With optional arguments:
    python main.py --input transactions.csv --days 14
    python main.py --input transactions.csv --savings-target 500
"""

import sys
import os
import argparse
import json
import logging
import pandas as pd
from datetime import datetime

# Ensure project root is on path (for runs from any working directory)
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from analytics_service import AnalyticsService
from config.config_loader import load_config
from core.exceptions import AnalyticsError
from core.models import AnomalyReport, TrainingReport, to_plain


# =============================================================================
# LOGGING SETUP
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("main")


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Spending analytics engine: forecasts, categories, anomalies, budgets and savings."
    )
    parser.add_argument(
        "--input", type=str, required=True,
        help="Path to input transactions CSV."
    )
    parser.add_argument(
        "--days", type=int, default=None,
        help="Forecast horizon in days. Defaults to config value (7)."
    )
    parser.add_argument(
        "--savings-target", type=float, default=None,
        help="Also build a savings plan for this target amount."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Output directory. Defaults to outputs/ in project root."
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to an alternative config.yaml."
    )
    return parser.parse_args(argv)


# =============================================================================
# MAIN
# =============================================================================

def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if args.config:
        load_config(args.config)

    # --- Resolve paths ---
    output_dir = args.output_dir or os.path.join(PROJECT_ROOT, "outputs")
    os.makedirs(output_dir, exist_ok=True)

    # --- Load transactions ---
    logger.info(f"Loading transactions from: {args.input}")
    if not os.path.exists(args.input):
        logger.error(f"Input file not found: {args.input}")
        return 1

    transactions = pd.read_csv(args.input, keep_default_na=False)
    logger.info(f"Loaded {len(transactions):,} transactions.")
    records = transactions.to_dict("records")

    # --- Train ---
    service = AnalyticsService()
    try:
        training = service.initialize(records)
    except AnalyticsError as exc:
        logger.error(f"Could not initialize analytics: {exc}")
        return 1

    # --- Query ---
    anomalies = service.detect_anomalies(records)
    report = {
        "training": to_plain(training),
        "predictions": to_plain(service.predict_expenses(days=args.days)),
        "categories": [
            {
                "description": c.description,
                "predicted_category": c.predicted_category,
                "confidence": c.confidence,
                "method": c.method,
            }
            for c in service.categorize_transactions(records)
        ],
        "anomaly_method": anomalies.method,
        "budgets": to_plain(service.recommend_budgets()),
        "optimization": to_plain(service.optimize_expenses()),
    }
    if args.savings_target is not None:
        try:
            report["savings_plan"] = to_plain(service.generate_savings_plan(args.savings_target))
        except AnalyticsError as exc:
            logger.warning(f"Savings plan skipped: {exc}")

    # --- Output ---
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    report_path = os.path.join(output_dir, f"analytics_{timestamp}.json")
    with open(report_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
    logger.info(f"Analytics report saved to: {report_path}")

    anomalies_path = os.path.join(output_dir, f"anomalies_{timestamp}.csv")
    _anomaly_frame(anomalies).to_csv(anomalies_path, index=False)
    logger.info(f"Anomalies saved to: {anomalies_path}")

    _print_summary(training, anomalies)
    return 0


def _anomaly_frame(report: AnomalyReport) -> pd.DataFrame:
    columns = ["date", "amount", "category", "description", "anomaly_score", "direction"]
    rows = [
        {
            "date": r.record.get("date"),
            "amount": r.record.get("amount"),
            "category": r.record.get("category"),
            "description": r.record.get("description"),
            "anomaly_score": round(r.anomaly_score, 4),
            "direction": r.direction,
        }
        for r in report.anomalies
    ]
    return pd.DataFrame(rows, columns=columns)


def _print_summary(training: TrainingReport, anomalies: AnomalyReport):
    """Prints a clean summary table to the console."""
    print("\n" + "=" * 80)
    print("  SPENDING ANALYTICS SUMMARY")
    print("=" * 80)

    print(f"\n  Transactions analysed: {training.transaction_count:,}")
    print("\n  Model Families:")
    print("  " + "-" * 60)
    for family, result in training.families.items():
        if result.succeeded:
            trained = [name for name, ok in result.models.items() if ok]
            print(f"    {family:16s}  trained: {', '.join(trained) or 'none'}")
        else:
            print(f"    {family:16s}  FAILED: {result.error}")

    flagged = len(anomalies.anomalies)
    total = len(anomalies.results)
    pct = (flagged / total * 100) if total > 0 else 0
    print(f"\n  Anomalies ({anomalies.method}): {flagged:,} of {total:,} ({pct:.1f}%)")
    print("=" * 80 + "\n")


if __name__ == "__main__":
    sys.exit(main())
