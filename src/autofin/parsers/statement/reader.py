"""
Statement workbook reader.

Reads the fixed-layout statement export (xlsx): account identity and period
from addressed header cells, then every sheet row as cell text for the
decoder.
"""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd
from openpyxl import load_workbook

from autofin.core.config import StatementLayout
from autofin.core.exceptions import InvalidStatementError
from autofin.parsers.statement.decoder import parse_statement_date
from autofin.parsers.statement.models import StatementHeader, StatementSheet

logger = logging.getLogger(__name__)


def cell_text(value, date_format: str = "%d/%m/%Y") -> str:
    """Render one workbook cell the way it reads on the statement."""
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, (datetime, date, pd.Timestamp)):
        return value.strftime(date_format)
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def trim_row(cells: List[str]) -> List[str]:
    """Drop trailing empty cells so the row length reflects its content."""
    end = len(cells)
    while end > 0 and not cells[end - 1].strip():
        end -= 1
    return cells[:end]


def split_label(raw: str, separator: str = " : ") -> str:
    """
    Extract the value of a "Label : value" header cell.

    Returns "" unless the cell splits into exactly two parts.
    """
    parts = raw.strip().split(separator)
    if len(parts) != 2:
        return ""
    return parts[1].strip()


def split_period(
    raw: str, layout: StatementLayout
) -> Tuple[Optional[date], Optional[date]]:
    """Extract (from, to) dates from the period header cell."""
    value = split_label(raw, layout.label_separator)
    if not value:
        return None, None
    bounds = value.split(layout.period_separator.strip())
    if len(bounds) != 2:
        return None, None
    start = parse_statement_date(bounds[0], layout.date_format)
    end = parse_statement_date(bounds[1], layout.date_format)
    if start is None or end is None:
        return None, None
    return start, end


def parse_header(
    period_raw: str,
    account_number_raw: str,
    account_name_raw: str,
    currency_raw: str,
    layout: StatementLayout = StatementLayout(),
) -> StatementHeader:
    """Build a StatementHeader from the raw text of the header cells."""
    start, end = split_period(period_raw, layout)
    return StatementHeader(
        account_number=split_label(account_number_raw, layout.label_separator),
        account_name=split_label(account_name_raw, layout.label_separator),
        currency=split_label(currency_raw, layout.label_separator),
        period_start=start,
        period_end=end,
    )


class StatementReader:
    """Reader for statement exports in the fixed 'Table 1' layout."""

    def __init__(self, layout: Optional[StatementLayout] = None):
        self.layout = layout or StatementLayout()

    def read(self, file_path: Path) -> StatementSheet:
        """
        Read a statement workbook.

        Args:
            file_path: Path to the xlsx file

        Returns:
            StatementSheet with header and text rows

        Raises:
            InvalidStatementError: If the file or sheet cannot be opened
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise InvalidStatementError("file not found", statement=str(file_path))

        header = self._read_header(file_path)
        rows = self._read_rows(file_path)
        logger.debug(f"Read {len(rows)} rows from {file_path.name}")
        return StatementSheet(header=header, rows=rows, source=file_path.name)

    def _read_header(self, file_path: Path) -> StatementHeader:
        layout = self.layout
        try:
            workbook = load_workbook(file_path, data_only=True)
        except Exception as e:
            raise InvalidStatementError(f"cannot open workbook: {e}", statement=file_path.name)
        try:
            if layout.sheet_name not in workbook.sheetnames:
                raise InvalidStatementError(
                    f"sheet '{layout.sheet_name}' not found", statement=file_path.name
                )
            sheet = workbook[layout.sheet_name]

            def text(coordinate: str) -> str:
                return cell_text(sheet[coordinate].value, layout.date_format)

            return parse_header(
                text(layout.period_cell),
                text(layout.account_number_cell),
                text(layout.account_name_cell),
                text(layout.currency_cell),
                layout,
            )
        finally:
            workbook.close()

    def _read_rows(self, file_path: Path) -> List[List[str]]:
        df = pd.read_excel(
            file_path,
            sheet_name=self.layout.sheet_name,
            header=None,
            dtype=object,
            engine="openpyxl",
        )
        rows = []
        for values in df.itertuples(index=False, name=None):
            cells = [cell_text(v, self.layout.date_format) for v in values]
            rows.append(trim_row(cells))
        return rows
