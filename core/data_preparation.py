"""
data_preparation.py
--------------------
Normalizes raw transaction records for the downstream models.

Input records can be mappings, objects exposing date/amount/category/
description attributes, Transaction instances, or a pandas DataFrame.
They are validated and copied into Transaction objects; the caller's
records are never modified.
"""

import logging
import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Iterable, Sequence

import numpy as np
import pandas as pd

from core.exceptions import InvalidInputError
from core.models import PreparedDataset, TimeFeatures, Transaction
from core.taxonomy import CategoryTaxonomy

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# RECORD COERCION
# -----------------------------------------------------------------------------

def record_field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


def parse_date(value: Any) -> datetime:
    """
    Parses anything pandas understands as a point in time. Timezone-aware
    values are converted to naive UTC so every date compares with every other.

    Raises:
        InvalidInputError: If the value is missing or unparseable.
    """
    if value is None:
        raise InvalidInputError("Transaction date is missing")
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Unparseable transaction date: {value!r}") from exc
    if pd.isna(ts):
        raise InvalidInputError(f"Unparseable transaction date: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


def _parse_amount(value: Any) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Transaction amount is not numeric: {value!r}") from exc
    if not math.isfinite(amount):
        raise InvalidInputError(f"Transaction amount is not finite: {value!r}")
    return amount


def text_field(value: Any) -> str:
    """Missing and NaN text (as pandas gives for empty CSV cells) become ''."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value)


def to_transaction(record: Any) -> Transaction:
    """
    Validates one record and copies it into a Transaction.

    A Transaction that is already valid comes back as the same object; one
    with a string date or an integer amount is rebuilt with the parsed values.
    """
    if isinstance(record, Transaction):
        normalized = Transaction(
            date=parse_date(record.date),
            amount=_parse_amount(record.amount),
            category=text_field(record.category),
            description=text_field(record.description),
        )
        unchanged = (
            isinstance(record.date, datetime)
            and isinstance(record.amount, float)
            and normalized == record
        )
        return record if unchanged else normalized
    return Transaction(
        date=parse_date(record_field(record, "date")),
        amount=_parse_amount(record_field(record, "amount")),
        category=text_field(record_field(record, "category")),
        description=text_field(record_field(record, "description")),
    )


def as_records(transactions: Any) -> list:
    """
    Turns a list-like of records or a DataFrame into a list of records.
    DataFrame rows become dicts keyed by column.

    Raises:
        InvalidInputError: If transactions is None, a single record or not iterable.
    """
    if transactions is None:
        raise InvalidInputError("No transaction data provided")
    if isinstance(transactions, pd.DataFrame):
        return transactions.to_dict("records")
    if isinstance(transactions, (str, bytes, Mapping)) or not isinstance(transactions, Iterable):
        raise InvalidInputError(
            f"Transactions must be a list of records, got {type(transactions).__name__}"
        )
    return list(transactions)


def coerce_transactions(transactions: Any) -> list[Transaction]:
    """
    Validates and copies a collection of records into Transactions, keeping
    input order. An empty collection yields an empty list.

    Raises:
        InvalidInputError: If the collection is not list-like or a record is malformed.
    """
    return [to_transaction(r) for r in as_records(transactions)]


# -----------------------------------------------------------------------------
# PREPARATION
# -----------------------------------------------------------------------------

def prepare(transactions: Any) -> PreparedDataset:
    """
    Sorts transactions ascending by date (stable: ties keep input order) and
    extracts the parallel amount, date and time-feature arrays.

    Amounts are kept signed, exactly as given.

    Raises:
        InvalidInputError: If transactions is empty, not list-like, or malformed.
    """
    records = coerce_transactions(transactions)
    if not records:
        raise InvalidInputError("No transaction data provided")

    ordered = sorted(records, key=lambda t: t.date)
    amounts = np.array([t.amount for t in ordered], dtype=float)
    dates = [t.date for t in ordered]
    time_features = [
        TimeFeatures(
            amount=t.amount,
            day_of_week=t.date.weekday(),
            month=t.date.month - 1,
            day_of_month=t.date.day,
        )
        for t in ordered
    ]

    logger.debug(f"Prepared {len(ordered):,} transactions ({dates[0]} to {dates[-1]}).")
    return PreparedDataset(
        transactions=ordered,
        amounts=amounts,
        dates=dates,
        time_features=time_features,
    )


def extract_text_features(
    description: str | None, taxonomy: CategoryTaxonomy | None = None
) -> dict[str, int]:
    """
    Flags each category whose keyword list matches the description (1) or
    not (0). An empty description yields an all-zero map.
    """
    if taxonomy is None:
        taxonomy = CategoryTaxonomy()
    counts = taxonomy.match_counts(description)
    return {category: 1 if hits > 0 else 0 for category, hits in counts.items()}


# -----------------------------------------------------------------------------
# SERIES UTILITIES
# -----------------------------------------------------------------------------

def normalize_data(values: Sequence[float]) -> list[float]:
    """Min-max scales values to [0, 1]. A constant series maps to 0.5 everywhere."""
    if len(values) == 0:
        return []
    arr = np.asarray(values, dtype=float)
    low, high = float(arr.min()), float(arr.max())
    if high == low:
        return [0.5] * len(arr)
    return ((arr - low) / (high - low)).tolist()


def create_time_series_data(
    values: Sequence[float], time_steps: int
) -> tuple[list[list[float]], list[float]]:
    """
    Builds sliding-window training pairs: each window of time_steps
    consecutive values is paired with the value that follows it.
    """
    if time_steps <= 0:
        raise InvalidInputError(f"time_steps must be positive, got {time_steps}")
    series = [float(v) for v in values]
    windows = [series[i - time_steps:i] for i in range(time_steps, len(series))]
    targets = [series[i] for i in range(time_steps, len(series))]
    return windows, targets
