"""
Shared pytest fixtures for autofin tests.

Provides database connections, wordlists, and statement workbook builders.
"""

import pytest
import sys
from pathlib import Path
from datetime import date
from decimal import Decimal

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from openpyxl import Workbook

from autofin.core.database import DatabaseManager
from autofin.parsers.statement.models import Transaction
from autofin.services.income.wordlist import WordlistSnapshot


PERIOD_SEPARATOR = " ຫາ "
FIRST_DATA_ROW = 14


def write_statement(
    path: Path,
    rows,
    period=("01/01/2024", "01/04/2024"),
    account_number="0101-12-345678",
    account_name="SOMSAK PHOMMA",
    currency="LAK",
    sheet_name="Table 1",
) -> Path:
    """
    Write a statement workbook in the export layout.

    Rows are [date, reference, memo, ignored, amount] lists written from
    row 14 down; header cells are A7 (period) and A9-A11 (account).
    """
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name
    ws["A1"] = "ACCOUNT STATEMENT"
    if period is not None:
        ws["A7"] = f"Period : {period[0]}{PERIOD_SEPARATOR}{period[1]}"
    ws["A9"] = f"Account Number : {account_number}"
    ws["A10"] = f"Account Name : {account_name}"
    ws["A11"] = f"Currency : {currency}"
    for col, title in enumerate(["Date", "Reference", "Description", "Debit", "Credit"], 1):
        ws.cell(row=FIRST_DATA_ROW - 1, column=col, value=title)
    for offset, row in enumerate(rows):
        for col, value in enumerate(row, 1):
            ws.cell(row=FIRST_DATA_ROW + offset, column=col, value=value)
    path = Path(path)
    wb.save(path)
    return path


SAMPLE_ROWS = [
    ["05/01/2024", "FT001", "SALARY JAN | ACME CO", "", "1,000,000"],
    ["20/01/2024", "FT002", "OT | ACME CO", "", "150,000"],
    ["05/02/2024", "FT003", "SALARY FEB | ACME CO", "", "1,200,000"],
    ["10/02/2024", "FT004", "Transfer to savings", "", "500,000"],
    ["15/02/2024", "FT005", "Phone allowance", "", "120,000"],
    ["05/03/2024", "FT006", "SALARY MAR | ACME CO", "", "1,100,000"],
    ["06/03/2024", "FT007", "ATM withdrawal", "", "-200,000"],
    ["07/03/2024", "FT008", "", "", "90,000"],
    ["15/03/2024", "FT009", "Phone allowance", "", "120,000"],
    ["Opening balance", "", "", ""],
]


@pytest.fixture
def db_manager():
    """Provide a fresh DatabaseManager instance for each test."""
    # Reset singleton to ensure clean state
    DatabaseManager.reset_instance()
    manager = DatabaseManager()
    yield manager
    # Cleanup
    manager.close()
    DatabaseManager.reset_instance()


@pytest.fixture
def db_connection(db_manager):
    """Provide an initialized in-memory database connection."""
    conn = db_manager.init(":memory:")
    yield conn
    # Connection is closed by db_manager fixture


@pytest.fixture
def wordlist_snapshot():
    """Wordlist in match order: salary, phone allowance, ot commission."""
    return WordlistSnapshot.from_pairs([
        ("salary", "SALARY"),
        ("phone allowance", "ALLOWANCE"),
        ("ot", "COMMISSION"),
    ])


@pytest.fixture
def statement_path(tmp_path):
    """Statement workbook with three salary months, allowance and commission rows."""
    return write_statement(tmp_path / "statement.xlsx", SAMPLE_ROWS)


@pytest.fixture
def make_statement(tmp_path):
    """Factory for statement workbooks under tmp_path."""
    counter = {"n": 0}

    def _make(rows=SAMPLE_ROWS, **kwargs) -> Path:
        counter["n"] += 1
        return write_statement(tmp_path / f"statement_{counter['n']}.xlsx", rows, **kwargs)

    return _make


@pytest.fixture
def make_txn():
    """Factory for Transactions from an ISO date string."""

    def _txn(day: str, amount, memo: str = "SALARY", bill: str = "") -> Transaction:
        return Transaction(
            date=date.fromisoformat(day),
            bill_number=bill or f"FT{day.replace('-', '')}",
            memo=memo,
            amount=Decimal(str(amount)),
        )

    return _txn
