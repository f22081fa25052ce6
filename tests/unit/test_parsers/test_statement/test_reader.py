"""Tests for the statement workbook reader."""

from datetime import date

import pytest
from openpyxl import Workbook

from autofin.core.exceptions import InvalidStatementError
from autofin.parsers.statement.reader import (
    StatementReader,
    cell_text,
    parse_header,
    split_label,
    trim_row,
)


class TestHeaderParsing:
    """Tests for header cell parsing."""

    def test_split_label(self):
        assert split_label("Account Number : 0101-12-345678") == "0101-12-345678"

    def test_split_label_requires_two_parts(self):
        assert split_label("Account Number 0101") == ""
        assert split_label("a : b : c") == ""

    def test_parse_header(self):
        header = parse_header(
            "Period : 01/01/2024 ຫາ 31/03/2024",
            "Account Number : 0101",
            "Account Name : SOMSAK",
            "Currency : LAK",
        )
        assert header.account_number == "0101"
        assert header.account_name == "SOMSAK"
        assert header.currency == "LAK"
        assert header.period_start == date(2024, 1, 1)
        assert header.period_end == date(2024, 3, 31)
        assert header.account.masked_number == "****0101"

    def test_unparsable_period(self):
        """Test a malformed period leaves both bounds empty."""
        header = parse_header("Period : sometime", "A : 1", "B : x", "C : LAK")
        assert header.period_start is None
        assert header.period_end is None


class TestCellText:
    """Tests for cell rendering."""

    def test_values(self):
        assert cell_text(None) == ""
        assert cell_text(float("nan")) == ""
        assert cell_text(1000000.0) == "1000000"
        assert cell_text(12.5) == "12.5"
        assert cell_text(date(2024, 1, 5)) == "05/01/2024"
        assert cell_text("text") == "text"

    def test_trim_row(self):
        assert trim_row(["a", "", "b", "", " "]) == ["a", "", "b"]
        assert trim_row(["", ""]) == []


class TestStatementReader:
    """Tests for reading statement workbooks."""

    def test_read(self, statement_path):
        sheet = StatementReader().read(statement_path)

        assert sheet.source == "statement.xlsx"
        assert sheet.header.account_number == "0101-12-345678"
        assert sheet.header.account_name == "SOMSAK PHOMMA"
        assert sheet.header.currency == "LAK"
        assert sheet.header.period_start == date(2024, 1, 1)
        assert sheet.header.period_end == date(2024, 4, 1)

        data_rows = [r for r in sheet.rows if r and r[0] == "05/01/2024"]
        assert data_rows == [["05/01/2024", "FT001", "SALARY JAN | ACME CO", "", "1,000,000"]]

    def test_numeric_and_date_cells(self, make_statement):
        """Test native Excel numbers and dates are rendered as statement text."""
        path = make_statement(rows=[[date(2024, 2, 5), 12345, "SALARY", None, 1500000]])
        sheet = StatementReader().read(path)

        row = [r for r in sheet.rows if r and r[0] == "05/02/2024"][0]
        assert row[1] == "12345"
        assert row[4] == "1500000"

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidStatementError):
            StatementReader().read(tmp_path / "nope.xlsx")

    def test_missing_sheet(self, make_statement):
        path = make_statement(sheet_name="Sheet1")
        with pytest.raises(InvalidStatementError) as exc_info:
            StatementReader().read(path)
        assert "Table 1" in str(exc_info.value)

    def test_not_a_workbook(self, tmp_path):
        path = tmp_path / "fake.xlsx"
        path.write_bytes(b"not a zip")
        with pytest.raises(InvalidStatementError):
            StatementReader().read(path)

    def test_empty_header_cells(self, tmp_path):
        """Test blank header cells produce empty header fields."""
        wb = Workbook()
        wb.active.title = "Table 1"
        path = tmp_path / "blank.xlsx"
        wb.save(path)

        sheet = StatementReader().read(path)
        assert sheet.header.account_number == ""
        assert sheet.header.currency == ""
