"""
Statement row decoder.

Turns one tabular row ``[date, reference, memo, ignored, amount, ...]`` into a
Transaction plus its Month-Year key, or None when the row is not an income
candidate. Skips are silent by contract; the reason is logged at DEBUG and
counted on the optional DecodeStats.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from autofin.core.config import StatementLayout
from autofin.parsers.statement.models import (
    DecodeStats,
    DecodedRow,
    Transaction,
    month_label,
)

logger = logging.getLogger(__name__)

DEFAULT_LAYOUT = StatementLayout()

SKIP_TOO_SHORT = "too_short"
SKIP_BAD_AMOUNT = "bad_amount"
SKIP_NON_POSITIVE = "non_positive_amount"
SKIP_EMPTY_MEMO = "empty_memo"
SKIP_BAD_DATE = "bad_date"


def parse_amount(text) -> Optional[Decimal]:
    """
    Parse an amount cell, stripping thousands separators.

    Returns None when the text is not a finite decimal.
    """
    if text is None:
        return None
    cleaned = str(text).strip().replace(",", "")
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def parse_statement_date(text, date_format: str = "%d/%m/%Y") -> Optional[date]:
    """Parse a date cell with an explicit day/month/year pattern."""
    if text is None:
        return None
    try:
        return datetime.strptime(str(text).strip(), date_format).date()
    except ValueError:
        return None


def _cell(cells: Sequence[str], index: int) -> str:
    value = cells[index] if index < len(cells) else ""
    return "" if value is None else str(value)


def decode_row(
    cells: Sequence[str],
    layout: StatementLayout = DEFAULT_LAYOUT,
    stats: Optional[DecodeStats] = None,
) -> Optional[DecodedRow]:
    """
    Decode one statement row.

    Args:
        cells: Ordered cell texts of the row
        layout: Column positions and date pattern
        stats: Optional counters updated with the skip reason

    Returns:
        DecodedRow, or None when the row is skipped
    """
    if stats is not None:
        stats.rows_read += 1

    def skip(reason: str) -> None:
        logger.debug(f"Skipping row ({reason}): {list(cells)!r}")
        if stats is not None:
            stats.skip(reason)

    if len(cells) < layout.min_row_cells:
        skip(SKIP_TOO_SHORT)
        return None

    amount = parse_amount(_cell(cells, layout.amount_column))
    if amount is None:
        skip(SKIP_BAD_AMOUNT)
        return None
    if amount <= 0:
        skip(SKIP_NON_POSITIVE)
        return None

    memo = _cell(cells, layout.memo_column).strip()
    if not memo:
        skip(SKIP_EMPTY_MEMO)
        return None

    txn_date = parse_statement_date(_cell(cells, layout.date_column), layout.date_format)
    if txn_date is None:
        skip(SKIP_BAD_DATE)
        return None

    transaction = Transaction(
        date=txn_date,
        bill_number=_cell(cells, layout.reference_column).strip(),
        memo=memo,
        amount=amount,
    )
    if stats is not None:
        stats.decoded += 1
    return DecodedRow(transaction=transaction, month=month_label(txn_date))
