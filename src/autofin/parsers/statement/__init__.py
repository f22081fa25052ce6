"""
Statement parser package.

Reads the fixed-layout account statement workbook and decodes its rows
into income candidate transactions.
"""

from autofin.parsers.statement.models import (
    AccountInfo,
    DecodeStats,
    DecodedRow,
    StatementHeader,
    StatementSheet,
    Transaction,
    month_label,
    parse_month_label,
)
from autofin.parsers.statement.decoder import decode_row, parse_amount, parse_statement_date
from autofin.parsers.statement.reader import StatementReader, parse_header

__all__ = [
    "AccountInfo",
    "DecodeStats",
    "DecodedRow",
    "StatementHeader",
    "StatementSheet",
    "Transaction",
    "month_label",
    "parse_month_label",
    "decode_row",
    "parse_amount",
    "parse_statement_date",
    "StatementReader",
    "parse_header",
]
