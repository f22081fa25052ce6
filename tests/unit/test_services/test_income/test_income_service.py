"""End-to-end tests for IncomeService over a real statement workbook."""

import json
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from autofin.core.config import EngineSettings
from autofin.core.exceptions import (
    AlreadyCompletedError,
    CalculationNotFoundError,
    CurrencyNotFoundError,
    DuplicateBusinessNumberError,
    InvalidStatementError,
    StatementFileNotFoundError,
    TransactionNotFoundError,
    ValidationError,
)
from autofin.core.models import CalculationStatus, Product
from autofin.services.currency.rate_provider import CurrencyRateProvider
from autofin.services.income.repository import CalculationQuery
from autofin.services.income.service import IncomeService, RecalculationRequest
from autofin.services.income.wordlist import WordlistStore
from autofin.services.statement_store import StatementFileStore


@pytest.fixture
def service(db_connection, tmp_path):
    """IncomeService with a LAK rate of 1 and the sample wordlist."""
    words = WordlistStore(db_connection)
    words.create("ot", "COMMISSION")
    words.create("phone allowance", "ALLOWANCE")
    words.create("salary", "SALARY")
    CurrencyRateProvider(db_connection).set_rate("LAK", "1")
    store = StatementFileStore(tmp_path / "store", db_connection)
    return IncomeService(db_connection, store, settings=EngineSettings())


@pytest.fixture
def uploaded(service, statement_path):
    return service.statements.upload_path(statement_path, user="alice").file_name


class TestCalculateIncome:
    """Tests for calculate_income."""

    def test_pl(self, service, uploaded):
        run = service.calculate_income("BN-1", uploaded, "pl", by="alice")
        calc = run.calculation

        assert calc.status is CalculationStatus.PENDING
        assert calc.product is Product.PL
        assert calc.period_in_month == Decimal("3")
        assert calc.account.number == "0101-12-345678"
        assert calc.account.currency == "LAK"
        assert calc.monthly_average_income == Decimal("1136000")
        assert calc.monthly_net_income == Decimal("1136000")
        assert run.stats.decoded == 7
        assert run.stats.classified == 6
        assert run.stats.unclassified == 1
        assert run.wordlist_version

    def test_sa(self, service, uploaded):
        calc = service.calculate_income("BN-1", uploaded, Product.SA).calculation
        assert calc.monthly_average_income == Decimal("1170000")

    def test_exchange_rate_applied(self, service, db_connection, uploaded):
        CurrencyRateProvider(db_connection).set_rate("LAK", "0.5")
        calc = service.calculate_income("BN-1", uploaded, "PL").calculation
        assert calc.monthly_net_income == Decimal("568000")

    def test_interview_salary(self, service, uploaded):
        calc = service.calculate_income("BN-1", uploaded, "PL", interview_salary="900000").calculation
        assert calc.monthly_average_income == Decimal("1036000")

    def test_duplicate_checked_first(self, service, uploaded):
        """Test a duplicate number fails before the statement is even opened."""
        service.calculate_income("BN-1", uploaded, "PL")
        with pytest.raises(DuplicateBusinessNumberError):
            service.calculate_income("BN-1", "no-such-file.xlsx", "PL")

    def test_unknown_currency(self, service, make_statement):
        name = service.statements.upload_path(make_statement(currency="USD")).file_name
        with pytest.raises(CurrencyNotFoundError) as exc:
            service.calculate_income("BN-1", name, "PL")
        assert exc.value.currency == "USD"
        assert not service.repository.exists("BN-1")

    def test_bad_currency_code(self, service, make_statement):
        name = service.statements.upload_path(make_statement(currency="KIP1")).file_name
        with pytest.raises(InvalidStatementError):
            service.calculate_income("BN-1", name, "PL")

    def test_no_income(self, service, make_statement):
        rows = [["05/01/2024", "FT001", "Transfer", "", "1,000"]]
        name = service.statements.upload_path(make_statement(rows)).file_name
        with pytest.raises(InvalidStatementError):
            service.calculate_income("BN-1", name, "PL")
        assert not service.repository.exists("BN-1")

    def test_unknown_statement(self, service):
        with pytest.raises(StatementFileNotFoundError):
            service.calculate_income("BN-1", "missing.xlsx", "PL")

    def test_invalid_input(self, service, uploaded):
        with pytest.raises(ValidationError):
            service.calculate_income("  ", uploaded, "PL")
        with pytest.raises(ValidationError):
            service.calculate_income("BN-1", uploaded, "XX")
        with pytest.raises(ValidationError):
            service.calculate_income("BN-1", uploaded, "PL", interview_salary="-5")


class TestLifecycle:
    """Tests for recalculation and completion."""

    def test_recalculate_from_payload(self, service, uploaded):
        calc = service.calculate_income("BN-1", uploaded, "PL").calculation
        payload = json.loads(json.dumps(calc.to_dict()["salary"]))
        request = RecalculationRequest.from_dict({
            "monthly_salaries": payload["monthly_salaries"],
            "allowances": [],
            "commissions": [],
        })

        updated = service.recalculate_income("BN-1", request, by="bob")

        assert updated.allowance.total == Decimal("0")
        assert updated.monthly_average_income == Decimal("1080000")
        assert service.get_calculation("BN-1").updated_by == "bob"

    def test_request_interview_key(self):
        assert RecalculationRequest.from_dict({}).interview_salary is not None
        assert RecalculationRequest.from_dict({"interview_salary": None}).interview_salary is None
        with pytest.raises(ValidationError):
            RecalculationRequest.from_dict({"monthly_salaries": [{"month": "May-2024", "transactions": [{}]}]})

    def test_complete_then_recalculate(self, service, uploaded):
        service.calculate_income("BN-1", uploaded, "PL")
        service.complete_calculation("BN-1", by="carol")

        with pytest.raises(AlreadyCompletedError):
            service.recalculate_income("BN-1", RecalculationRequest())

        calc = service.complete_calculation("BN-1", by="dave")
        assert calc.status is CalculationStatus.COMPLETED
        assert calc.updated_by == "carol"

    def test_unknown_number(self, service):
        with pytest.raises(CalculationNotFoundError):
            service.complete_calculation("missing")


class TestTransactions:
    """Tests for transaction lookups on a stored calculation."""

    def test_list_by_category_and_month(self, service, uploaded):
        service.calculate_income("BN-1", uploaded, "PL")

        salary = service.list_income_transactions("BN-1", "SALARY", "february-2024")
        allowance = service.list_income_transactions("BN-1", "ALLOWANCE", "March-2024")

        assert [t.bill_number for t in salary] == ["FT003"]
        assert [t.bill_number for t in allowance] == ["FT009"]

    def test_get_by_bill_number(self, service, uploaded):
        service.calculate_income("BN-1", uploaded, "PL")

        txn = service.get_income_transaction("BN-1", " ft006 ")

        assert txn.amount == Decimal("1100000")
        with pytest.raises(TransactionNotFoundError):
            service.get_income_transaction("BN-1", "FT999")


class TestExport:
    """Tests for Excel exports through the service."""

    def test_export_one(self, service, uploaded, tmp_path):
        service.calculate_income("BN-1", uploaded, "PL")
        path = service.export_calculation("BN-1", tmp_path / "out" / "BN-1.xlsx")

        wb = load_workbook(path)
        assert wb.sheetnames == ["Summary", "Salary", "Allowance", "Commission"]

    def test_export_list(self, service, uploaded, tmp_path):
        service.calculate_income("BN-1", uploaded, "PL")
        service.calculate_income("BN-2", uploaded, "SA")

        path = service.export_calculations(CalculationQuery(product=Product.SA), tmp_path / "list.xlsx")

        ws = load_workbook(path)["Calculations"]
        assert ws.cell(row=2, column=1).value == "BN-2"
        assert ws.cell(row=3, column=1).value is None
