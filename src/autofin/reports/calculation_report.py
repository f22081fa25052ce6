"""Calculation Report Generator.

Renders a finished income calculation into an Excel workbook: a summary
sheet laid out for the product (SA, or PL/SF), followed by salary,
allowance and commission sheets. Also exports a list of calculations.
Figures are taken from the calculation as stored; nothing is recomputed.
"""

from pathlib import Path
from typing import Iterable, List, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from autofin.parsers.statement.models import Transaction
from autofin.services.income.calculation import Calculation

TITLE_FONT = Font(bold=True, size=14)
SUBHEADER_FONT = Font(bold=True, size=11)
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT_WHITE = Font(bold=True, color="FFFFFF")
BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
MONEY_FORMAT = '#,##0.00'
DATE_FORMAT = "%d/%m/%Y"


def _write_header_row(ws: Worksheet, row: int, headers: Sequence[str]) -> int:
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.font = HEADER_FONT_WHITE
        cell.fill = HEADER_FILL
        cell.border = BORDER
        cell.alignment = Alignment(horizontal="center")
    return row + 1


def _write_row(ws: Worksheet, row: int, values: Sequence, money_columns: Iterable[int] = ()) -> int:
    money_columns = set(money_columns)
    for col, value in enumerate(values, 1):
        cell = ws.cell(row=row, column=col, value=value)
        cell.border = BORDER
        if col in money_columns:
            cell.number_format = MONEY_FORMAT
    return row + 1


def _write_transactions(ws: Worksheet, row: int, key: str, transactions: List[Transaction]) -> int:
    for txn in transactions:
        row = _write_row(
            ws, row,
            [key, txn.date.strftime(DATE_FORMAT), txn.bill_number, txn.memo, txn.amount],
            money_columns=[5],
        )
    return row


def _set_widths(ws: Worksheet, widths: Sequence[int]) -> None:
    for index, width in enumerate(widths):
        ws.column_dimensions[chr(ord("A") + index)].width = width


def _period_text(calc: Calculation) -> str:
    if calc.period_start and calc.period_end:
        return f"{calc.period_start.strftime(DATE_FORMAT)} - {calc.period_end.strftime(DATE_FORMAT)}"
    return ""


class CalculationWorkbook:
    """
    Excel rendering of one calculation.

    Usage:
        CalculationWorkbook(calc).save(Path("BN-1.xlsx"))
    """

    def __init__(self, calculation: Calculation):
        self.calc = calculation

    def build(self) -> Workbook:
        wb = Workbook()
        summary = wb.active
        summary.title = "Summary"
        self._write_summary(summary)
        self._write_salary(wb.create_sheet("Salary"))
        self._write_allowance(wb.create_sheet("Allowance"))
        self._write_commission(wb.create_sheet("Commission"))
        return wb

    def save(self, output_path: Path) -> Path:
        """
        Export the calculation to Excel.

        Args:
            output_path: Output file path (.xlsx)

        Returns:
            Path to generated Excel file
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.build().save(output_path)
        return output_path

    def _summary_lines(self) -> List[tuple]:
        calc = self.calc
        source = calc.source
        lines = [
            ("Basic Salary", source.basic_salary.total, source.basic_salary.monthly_average),
            ("Allowance", source.allowance.total, source.allowance.monthly_average),
            ("Commission", source.commission.total, source.commission.monthly_average),
        ]
        if calc.product.is_loan:
            lines.append(("Other Income", source.other.total, source.other.monthly_average))
        return lines

    def _write_summary(self, ws: Worksheet) -> None:
        calc = self.calc
        row = 1
        ws.cell(row=row, column=1, value=f"Income Calculation {calc.number} ({calc.product.value})")
        ws.cell(row=row, column=1).font = TITLE_FONT
        ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=3)
        row += 2

        details = [
            ("Account Number", calc.account.number),
            ("Account Name", calc.account.display_name),
            ("Currency", calc.account.currency),
            ("Period", _period_text(calc)),
            ("Period (months)", calc.period_in_month),
            ("Exchange Rate", calc.exchange_rate),
            ("Interview Salary", calc.interview_salary if calc.interview_salary is not None else ""),
            ("Status", calc.status.value),
        ]
        for label, value in details:
            ws.cell(row=row, column=1, value=label).font = Font(bold=True)
            ws.cell(row=row, column=2, value=value)
            row += 1
        row += 1

        ws.cell(row=row, column=1, value="Income Sources").font = SUBHEADER_FONT
        row += 1
        row = _write_header_row(ws, row, ["Source", "Total", "Monthly Average"])
        for line in self._summary_lines():
            row = _write_row(ws, row, line, money_columns=[2, 3])
        row += 1

        totals = [
            ("Total Income", calc.total_income),
            ("Total Basic Salary", calc.total_basic_salary),
        ]
        if calc.product.is_loan:
            totals.append(("Total Other Income", calc.total_other_income))
        totals += [
            ("Monthly Average Income", calc.monthly_average_income),
            ("Monthly Net Income", calc.monthly_net_income),
        ]
        for label, value in totals:
            ws.cell(row=row, column=1, value=label).font = Font(bold=True)
            cell = ws.cell(row=row, column=2, value=value)
            cell.number_format = MONEY_FORMAT
            row += 1

        _set_widths(ws, [26, 22, 20])

    def _write_salary(self, ws: Worksheet) -> None:
        salary = self.calc.salary
        row = _write_header_row(ws, 1, ["Month", "Times Received", "Total"])
        for month in salary.monthly_salaries:
            row = _write_row(ws, row, [month.month, month.times_received, month.total], money_columns=[3])
        ws.cell(row=row, column=1, value="TOTAL").font = Font(bold=True)
        cell = ws.cell(row=row, column=3, value=salary.total)
        cell.font = Font(bold=True)
        cell.number_format = MONEY_FORMAT
        row += 2

        row = _write_header_row(ws, row, ["Month", "Date", "Reference", "Memo", "Amount"])
        for month in salary.monthly_salaries:
            row = _write_transactions(ws, row, month.month, month.transactions)
        _set_widths(ws, [18, 14, 18, 48, 18])

    def _write_allowance(self, ws: Worksheet) -> None:
        allowance = self.calc.allowance
        row = _write_header_row(ws, 1, ["Title", "Months", "Total", "Monthly Average"])
        for bucket in allowance.allowances:
            row = _write_row(
                ws, row,
                [bucket.title, bucket.months, bucket.total, bucket.monthly_average],
                money_columns=[3, 4],
            )
        ws.cell(row=row, column=1, value="TOTAL").font = Font(bold=True)
        for col, value in ((3, allowance.total), (4, allowance.monthly_average)):
            cell = ws.cell(row=row, column=col, value=value)
            cell.font = Font(bold=True)
            cell.number_format = MONEY_FORMAT
        row += 2

        row = _write_header_row(ws, row, ["Title", "Date", "Reference", "Memo", "Amount"])
        for bucket in allowance.allowances:
            row = _write_transactions(ws, row, bucket.title, bucket.transactions)
        _set_widths(ws, [24, 14, 18, 48, 18])

    def _write_commission(self, ws: Worksheet) -> None:
        commission = self.calc.commission
        row = _write_header_row(ws, 1, ["Month", "Total"])
        for month in commission.commissions:
            row = _write_row(ws, row, [month.month, month.total], money_columns=[2])
        ws.cell(row=row, column=1, value="TOTAL").font = Font(bold=True)
        cell = ws.cell(row=row, column=2, value=commission.total)
        cell.font = Font(bold=True)
        cell.number_format = MONEY_FORMAT
        row += 1
        ws.cell(row=row, column=1, value="Monthly Average").font = Font(bold=True)
        cell = ws.cell(row=row, column=2, value=commission.monthly_average)
        cell.number_format = MONEY_FORMAT
        row += 2

        row = _write_header_row(ws, row, ["Month", "Date", "Reference", "Memo", "Amount"])
        for month in commission.commissions:
            row = _write_transactions(ws, row, month.month, month.transactions)
        _set_widths(ws, [18, 14, 18, 48, 18])


LIST_HEADERS = [
    "Number", "Product", "Monthly Average Income", "Account Number",
    "Account Name", "Period", "Currency", "Monthly Net Income", "Status",
]


def export_calculation_list(calculations: Iterable[Calculation], output_path: Path) -> Path:
    """Export one row per calculation to an Excel file."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Calculations"
    row = _write_header_row(ws, 1, LIST_HEADERS)
    count = 0
    for calc in calculations:
        row = _write_row(
            ws, row,
            [
                calc.number,
                calc.product.value,
                calc.monthly_average_income,
                calc.account.number,
                calc.account.display_name,
                _period_text(calc),
                calc.account.currency,
                calc.monthly_net_income,
                calc.status.value,
            ],
            money_columns=[3, 8],
        )
        count += 1
    if count == 0:
        ws.cell(row=row, column=1, value="No calculations found.")
    _set_widths(ws, [18, 10, 22, 20, 28, 26, 10, 22, 12])

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    return output_path
