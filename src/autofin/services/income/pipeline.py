"""
Statement -> income buckets pipeline.

Decodes every row of a statement sheet, classifies the memos against a
wordlist snapshot and aggregates the classified transactions. Runs in a
single synchronous pass with no shared state.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterator, Optional

from autofin.core.config import FormulaSettings, StatementLayout
from autofin.core.exceptions import InvalidStatementError
from autofin.core.models import IncomeSource
from autofin.parsers.statement.decoder import decode_row
from autofin.parsers.statement.models import DecodeStats, StatementHeader, StatementSheet
from autofin.services.income.aggregator import ClassifiedTransaction, IncomeBuckets, aggregate
from autofin.services.income.wordlist import WordlistSnapshot

logger = logging.getLogger(__name__)

CURRENCY_CODE_LENGTH = 3


def validate_header(header: StatementHeader, statement: str = None) -> None:
    """
    Check the account header cells.

    Raises:
        InvalidStatementError: On empty account number or name, or a
            currency code that is not 3 characters
    """
    if not header.account_number:
        raise InvalidStatementError("account number is missing", statement=statement)
    if not header.account_name:
        raise InvalidStatementError("account display name is missing", statement=statement)
    if len(header.currency) != CURRENCY_CODE_LENGTH:
        raise InvalidStatementError(
            f"currency code must be {CURRENCY_CODE_LENGTH} characters, got {header.currency!r}",
            statement=statement,
        )


def classify_rows(
    sheet: StatementSheet,
    snapshot: WordlistSnapshot,
    layout: Optional[StatementLayout] = None,
    stats: Optional[DecodeStats] = None,
) -> Iterator[ClassifiedTransaction]:
    """Yield the classified income transactions of a sheet, in row order."""
    layout = layout or StatementLayout()
    for cells in sheet.rows:
        decoded = decode_row(cells, layout, stats)
        if decoded is None:
            continue
        result = snapshot.classify(decoded.transaction.memo)
        if not result.matched:
            logger.debug(f"Unclassified memo: {decoded.transaction.memo!r}")
            if stats is not None:
                stats.unclassified += 1
            continue
        if stats is not None:
            stats.classified += 1
        yield ClassifiedTransaction(decoded.transaction, result.category, result.word)


@dataclass
class IncomeExtraction:
    """Buckets of one statement plus the row statistics of the pass."""
    buckets: IncomeBuckets
    stats: DecodeStats


def extract_income(
    sheet: StatementSheet,
    snapshot: WordlistSnapshot,
    interview_salary: Optional[Decimal] = None,
    layout: Optional[StatementLayout] = None,
    settings: Optional[FormulaSettings] = None,
) -> IncomeExtraction:
    """
    Validate the header and build income buckets from a statement sheet.

    Raises:
        InvalidStatementError: Bad header, or no classifiable income rows
    """
    settings = settings or FormulaSettings()
    validate_header(sheet.header, sheet.source or None)

    stats = DecodeStats()
    buckets = aggregate(
        classify_rows(sheet, snapshot, layout, stats),
        interview_salary=interview_salary,
        default_allowance_months=settings.default_allowance_months,
    )
    logger.debug(f"Statement {sheet.source or '<memory>'}: {stats}")
    if buckets.is_empty:
        raise InvalidStatementError(
            "no classifiable income transactions", statement=sheet.source or None
        )
    return IncomeExtraction(buckets=buckets, stats=stats)


def filter_transactions(
    sheet: StatementSheet,
    snapshot: WordlistSnapshot,
    category: IncomeSource,
    month: str,
    layout: Optional[StatementLayout] = None,
):
    """Transactions of one category whose Month-Year label equals month."""
    restricted = snapshot.for_category(category)
    wanted = month.strip().lower()
    return [
        item.transaction
        for item in classify_rows(sheet, restricted, layout)
        if item.month.lower() == wanted
    ]
