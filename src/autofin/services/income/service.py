"""
Income Service - calculation use cases.

Wires the statement store, wordlist, currency rates and calculation
repository around the income engine:

    statement -> decode -> classify -> aggregate -> formulas -> Calculation

A calculation is rejected as a whole on any fatal condition; nothing is
stored unless the full computation succeeds.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from autofin.core.config import EngineSettings
from autofin.core.exceptions import (
    DatabaseError,
    DuplicateBusinessNumberError,
    InvalidStatementError,
    TransactionNotFoundError,
    ValidationError,
)
from autofin.core.models import IncomeSource, Product
from autofin.parsers.statement.decoder import decode_row
from autofin.parsers.statement.models import DecodeStats, Transaction
from autofin.reports.calculation_report import CalculationWorkbook, export_calculation_list
from autofin.services.currency.rate_provider import CurrencyRateProvider
from autofin.services.income.aggregator import AllowanceBucket, MonthBucket
from autofin.services.income.calculation import UNCHANGED, Calculation, parse_interview_salary
from autofin.services.income.pipeline import extract_income, filter_transactions
from autofin.services.income.repository import CalculationPage, CalculationQuery, CalculationRepository
from autofin.services.income.wordlist import WordlistStore
from autofin.services.statement_store import StatementFileStore

logger = logging.getLogger(__name__)


@dataclass
class RecalculationRequest:
    """Edited buckets for a recalculation."""
    monthly_salaries: List[MonthBucket] = field(default_factory=list)
    allowances: List[AllowanceBucket] = field(default_factory=list)
    commissions: List[MonthBucket] = field(default_factory=list)
    interview_salary: Any = UNCHANGED

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecalculationRequest":
        """
        Parse a request payload.

        The interview salary is only changed when the key is present;
        null clears it.
        """
        if not isinstance(data, dict):
            raise ValidationError("Recalculation payload must be an object")
        try:
            request = cls(
                monthly_salaries=[MonthBucket.from_dict(m) for m in data.get("monthly_salaries") or []],
                allowances=[AllowanceBucket.from_dict(a) for a in data.get("allowances") or []],
                commissions=[MonthBucket.from_dict(c) for c in data.get("commissions") or []],
            )
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise ValidationError(f"Invalid recalculation payload: {e}")
        if "interview_salary" in data:
            request.interview_salary = parse_interview_salary(data["interview_salary"])
        return request


@dataclass
class CalculationRun:
    """A created calculation plus the row statistics of its statement pass."""
    calculation: Calculation
    stats: DecodeStats
    wordlist_version: str = ""


class IncomeService:
    """
    Income calculation use cases.

    Usage:
        service = IncomeService(conn, statement_store, settings=settings)
        run = service.calculate_income("BN-1", file_name, "PL", by="alice")
        service.complete_calculation("BN-1", by="alice")
    """

    def __init__(
        self,
        db_connection: sqlite3.Connection,
        statement_store: StatementFileStore,
        settings: Optional[EngineSettings] = None,
        wordlist: Optional[WordlistStore] = None,
        currencies: Optional[CurrencyRateProvider] = None,
        repository: Optional[CalculationRepository] = None,
    ):
        self.conn = db_connection
        self.settings = settings or EngineSettings()
        self.statements = statement_store
        self.wordlist = wordlist or WordlistStore(db_connection)
        self.currencies = currencies or CurrencyRateProvider(db_connection)
        self.repository = repository or CalculationRepository(db_connection)

    def calculate_income(
        self,
        number: str,
        statement_file_name: str,
        product,
        interview_salary=None,
        by: str = "",
    ) -> CalculationRun:
        """
        Compute and store a new PENDING calculation.

        Raises:
            DuplicateBusinessNumberError: Number already used (checked first)
            InvalidStatementError: Bad header or no classifiable income
            CurrencyNotFoundError: No rate for the account currency
            StatementFileNotFoundError: Unknown statement file
        """
        number = (number or "").strip()
        if not number:
            raise ValidationError("Number must not be empty", field="number")
        product = Product.parse(product)
        interview = parse_interview_salary(interview_salary)

        if self.repository.exists(number):
            raise DuplicateBusinessNumberError(number)

        sheet = self.statements.open(statement_file_name)
        snapshot = self.wordlist.snapshot(self.settings.formula.short_word_length)
        try:
            extraction = extract_income(
                sheet,
                snapshot,
                interview_salary=interview,
                layout=self.settings.statement,
                settings=self.settings.formula,
            )
        except InvalidStatementError as e:
            logger.warning(f"Calculation {number} rejected: {e.message}")
            raise

        header = sheet.header
        rate = self.currencies.get_rate(header.currency)
        calc = Calculation.compute(
            number=number,
            statement_file_name=statement_file_name,
            product=product,
            account=header.account,
            period_start=header.period_start,
            period_end=header.period_end,
            buckets=extraction.buckets,
            exchange_rate=rate,
            by=by,
            settings=self.settings.formula,
        )
        try:
            self.repository.create(calc)
        except DatabaseError as e:
            logger.error(f"Failed to store calculation {number}: {e.message}")
            raise
        logger.info(
            f"Calculation {number} created ({product.value}, {header.account.masked_number}, "
            f"wordlist {snapshot.version}): {extraction.stats}"
        )
        return CalculationRun(calculation=calc, stats=extraction.stats, wordlist_version=snapshot.version)

    def recalculate_income(self, number: str, request: RecalculationRequest, by: str = "") -> Calculation:
        """
        Replace the buckets of a PENDING calculation and re-derive its totals.

        Raises:
            AlreadyCompletedError: Calculation is completed
            CalculationNotFoundError: Unknown number
        """
        formula = self.settings.formula
        return self.repository.update(
            number,
            lambda calc: calc.recalculate(
                request.monthly_salaries,
                request.allowances,
                request.commissions,
                by=by,
                interview_salary=request.interview_salary,
                settings=formula,
            ),
        )

    def complete_calculation(self, number: str, by: str = "") -> Calculation:
        """Complete a calculation; an already completed one is returned unchanged."""
        calc = self.repository.get_by_number(number)
        if calc.is_completed:
            return calc
        return self.repository.update(number, lambda c: c.complete(by))

    def get_calculation(self, number: str) -> Calculation:
        return self.repository.get_by_number(number)

    def list_calculations(self, query: Optional[CalculationQuery] = None) -> CalculationPage:
        return self.repository.list(query)

    def list_income_transactions(self, number: str, category, month: str) -> List[Transaction]:
        """
        Re-read the statement of a calculation and return the transactions of
        one category in one Month-Year.
        """
        source = IncomeSource.parse(category)
        calc = self.repository.get_by_number(number)
        sheet = self.statements.open(calc.statement_file_name)
        snapshot = self.wordlist.snapshot(self.settings.formula.short_word_length)
        return filter_transactions(sheet, snapshot, source, month, self.settings.statement)

    def get_income_transaction(self, number: str, bill_number: str) -> Transaction:
        """
        Find a statement row of a calculation by its reference number.

        Raises:
            TransactionNotFoundError: No income row carries that reference
        """
        calc = self.repository.get_by_number(number)
        sheet = self.statements.open(calc.statement_file_name)
        wanted = (bill_number or "").strip().lower()
        if wanted:
            for cells in sheet.rows:
                decoded = decode_row(cells, self.settings.statement)
                if decoded and decoded.transaction.bill_number.strip().lower() == wanted:
                    return decoded.transaction
        raise TransactionNotFoundError(number, bill_number)

    def export_calculation(self, number: str, output_path: Path) -> Path:
        calc = self.repository.get_by_number(number)
        return CalculationWorkbook(calc).save(output_path)

    def export_calculations(self, query: Optional[CalculationQuery], output_path: Path) -> Path:
        page = self.repository.list(query)
        return export_calculation_list(page.calculations, output_path)
