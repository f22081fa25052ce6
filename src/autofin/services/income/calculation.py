"""
Income calculation aggregate.

A Calculation is created PENDING from a statement, may be recalculated from
edited buckets while PENDING, and becomes immutable once COMPLETED.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from autofin.core.config import FormulaSettings
from autofin.core.exceptions import AlreadyCompletedError, ValidationError
from autofin.core.models import CalculationStatus, Product
from autofin.parsers.statement.models import AccountInfo
from autofin.services.income.aggregator import (
    AllowanceBucket,
    IncomeBuckets,
    MonthBucket,
    rebuild,
)
from autofin.services.income.formulas import (
    IncomeFigures,
    compute_figures,
    count_period_months,
    minimum_salary_transaction,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Marker for "leave the declared interview salary as it is"
UNCHANGED = object()


def _dec(value, default: Decimal = ZERO) -> Decimal:
    if value is None or value == "":
        return default
    return Decimal(str(value))


def _date(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _datetime(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def parse_interview_salary(value) -> Optional[Decimal]:
    """Declared interview salary: None when not declared; must be >= 0."""
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except ArithmeticError:
        raise ValidationError(f"Invalid interview salary: {value!r}", field="interview_salary")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("Interview salary must be 0 or greater", field="interview_salary")
    return amount


@dataclass
class SourceFigure:
    total: Decimal = ZERO
    monthly_average: Decimal = ZERO

    def to_dict(self) -> Dict[str, str]:
        return {"total": str(self.total), "monthly_average": str(self.monthly_average)}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SourceFigure":
        data = data or {}
        return cls(total=_dec(data.get("total")), monthly_average=_dec(data.get("monthly_average")))


@dataclass
class SourceIncome:
    """Total and monthly average per income source."""
    basic_salary: SourceFigure = field(default_factory=SourceFigure)
    allowance: SourceFigure = field(default_factory=SourceFigure)
    commission: SourceFigure = field(default_factory=SourceFigure)
    other: SourceFigure = field(default_factory=SourceFigure)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "basic_salary": self.basic_salary.to_dict(),
            "allowance": self.allowance.to_dict(),
            "commission": self.commission.to_dict(),
            "other": self.other.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SourceIncome":
        data = data or {}
        return cls(
            basic_salary=SourceFigure.from_dict(data.get("basic_salary")),
            allowance=SourceFigure.from_dict(data.get("allowance")),
            commission=SourceFigure.from_dict(data.get("commission")),
            other=SourceFigure.from_dict(data.get("other")),
        )


@dataclass
class SalaryBreakdown:
    """
    Salary months in chronological order.

    basic_salary here is the smallest single salary transaction, shown for
    reference only; the formula basic salary lives in SourceIncome.
    """
    monthly_salaries: List[MonthBucket] = field(default_factory=list)
    basic_salary: Decimal = ZERO
    total: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "monthly_salaries": [m.to_dict() for m in self.monthly_salaries],
            "basic_salary": str(self.basic_salary),
            "total": str(self.total),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SalaryBreakdown":
        data = data or {}
        return cls(
            monthly_salaries=[MonthBucket.from_dict(m) for m in data.get("monthly_salaries", [])],
            basic_salary=_dec(data.get("basic_salary")),
            total=_dec(data.get("total")),
        )


@dataclass
class AllowanceBreakdown:
    allowances: List[AllowanceBucket] = field(default_factory=list)
    total: Decimal = ZERO
    monthly_average: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowances": [a.to_dict() for a in self.allowances],
            "total": str(self.total),
            "monthly_average": str(self.monthly_average),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AllowanceBreakdown":
        data = data or {}
        return cls(
            allowances=[AllowanceBucket.from_dict(a) for a in data.get("allowances", [])],
            total=_dec(data.get("total")),
            monthly_average=_dec(data.get("monthly_average")),
        )


@dataclass
class CommissionBreakdown:
    commissions: List[MonthBucket] = field(default_factory=list)
    total: Decimal = ZERO
    monthly_average: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commissions": [c.to_dict() for c in self.commissions],
            "total": str(self.total),
            "monthly_average": str(self.monthly_average),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CommissionBreakdown":
        data = data or {}
        return cls(
            commissions=[MonthBucket.from_dict(c) for c in data.get("commissions", [])],
            total=_dec(data.get("total")),
            monthly_average=_dec(data.get("monthly_average")),
        )


@dataclass
class Calculation:
    """Income calculation for one business number."""

    number: str
    statement_file_name: str
    product: Product
    account: AccountInfo
    exchange_rate: Decimal = Decimal("1")
    interview_salary: Optional[Decimal] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    period_in_month: Decimal = ZERO
    status: CalculationStatus = CalculationStatus.PENDING

    total_income: Decimal = ZERO
    total_basic_salary: Decimal = ZERO
    total_other_income: Decimal = ZERO
    monthly_average_income: Decimal = ZERO
    monthly_net_income: Decimal = ZERO

    salary: SalaryBreakdown = field(default_factory=SalaryBreakdown)
    allowance: AllowanceBreakdown = field(default_factory=AllowanceBreakdown)
    commission: CommissionBreakdown = field(default_factory=CommissionBreakdown)
    source: SourceIncome = field(default_factory=SourceIncome)

    created_by: str = ""
    updated_by: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None

    @classmethod
    def compute(
        cls,
        number: str,
        statement_file_name: str,
        product: Product,
        account: AccountInfo,
        period_start: Optional[date],
        period_end: Optional[date],
        buckets: IncomeBuckets,
        exchange_rate: Decimal = Decimal("1"),
        by: str = "",
        settings: Optional[FormulaSettings] = None,
    ) -> "Calculation":
        """Create a PENDING calculation from freshly aggregated buckets."""
        now = datetime.now()
        calc = cls(
            number=number,
            statement_file_name=statement_file_name,
            product=product,
            account=account,
            exchange_rate=Decimal(str(exchange_rate)),
            interview_salary=buckets.interview_salary,
            period_start=period_start,
            period_end=period_end,
            period_in_month=Decimal(count_period_months(period_start, period_end)),
            status=CalculationStatus.PENDING,
            created_by=by,
            updated_by=by,
            created_at=now,
            updated_at=now,
        )
        calc._populate(buckets, settings)
        return calc

    @property
    def is_completed(self) -> bool:
        return self.status is CalculationStatus.COMPLETED

    def buckets(self) -> IncomeBuckets:
        """Rebuild aggregation buckets from the stored breakdowns."""
        return rebuild(
            self.salary.monthly_salaries,
            self.allowance.allowances,
            self.commission.commissions,
            interview_salary=self.interview_salary,
        )

    def figures(self, settings: Optional[FormulaSettings] = None) -> IncomeFigures:
        """Re-run the formula set over the stored breakdowns."""
        return compute_figures(
            self.buckets(), self.product, self.period_in_month, self.exchange_rate, settings
        )

    def recalculate(
        self,
        monthly_salaries: Iterable[MonthBucket],
        allowances: Iterable[AllowanceBucket],
        commissions: Iterable[MonthBucket],
        by: str = "",
        interview_salary=UNCHANGED,
        settings: Optional[FormulaSettings] = None,
    ) -> "Calculation":
        """
        Replace the buckets with edited ones and re-derive every total.

        Bucket totals are recomputed from their transactions; empty buckets
        are dropped. Period and exchange rate are kept.

        Raises:
            AlreadyCompletedError: If the calculation is completed
        """
        if self.is_completed:
            raise AlreadyCompletedError(self.number)

        if interview_salary is not UNCHANGED:
            self.interview_salary = parse_interview_salary(interview_salary)

        buckets = rebuild(
            monthly_salaries, allowances, commissions, interview_salary=self.interview_salary
        )
        self._populate(buckets, settings)
        self.updated_by = by
        self.updated_at = datetime.now()
        logger.info(f"Calculation {self.number} recalculated by {by or '-'}")
        return self

    def complete(self, by: str = "") -> "Calculation":
        """Mark COMPLETED. Completing twice leaves the calculation unchanged."""
        if self.is_completed:
            return self
        self.status = CalculationStatus.COMPLETED
        self.updated_by = by
        self.updated_at = datetime.now()
        logger.info(f"Calculation {self.number} completed by {by or '-'}")
        return self

    def _populate(self, buckets: IncomeBuckets, settings: Optional[FormulaSettings]) -> None:
        figures = compute_figures(
            buckets, self.product, self.period_in_month, self.exchange_rate, settings
        )

        self.salary = SalaryBreakdown(
            monthly_salaries=list(buckets.salary),
            basic_salary=minimum_salary_transaction(buckets),
            total=buckets.salary.total,
        )
        self.allowance = AllowanceBreakdown(
            allowances=list(buckets.allowance),
            total=buckets.allowance.total,
            monthly_average=figures.average_allowance,
        )
        self.commission = CommissionBreakdown(
            commissions=list(buckets.commission),
            total=buckets.commission.total,
            monthly_average=figures.average_commission,
        )
        self.source = SourceIncome(
            basic_salary=SourceFigure(figures.total_basic_salary, figures.basic_salary),
            allowance=SourceFigure(buckets.allowance.total, figures.average_allowance),
            commission=SourceFigure(buckets.commission.total, figures.average_commission),
            other=SourceFigure(figures.total_other_income, figures.average_other_income),
        )
        self.total_income = figures.total_income
        self.total_basic_salary = figures.total_basic_salary
        self.total_other_income = figures.total_other_income
        self.monthly_average_income = figures.monthly_average_income
        self.monthly_net_income = figures.monthly_net_income

    def to_dict(self) -> Dict[str, Any]:
        """Persisted representation: decimals as strings, dates as ISO text."""
        return {
            "id": self.id,
            "number": self.number,
            "statement_file_name": self.statement_file_name,
            "product": self.product.value,
            "account": {
                "number": self.account.number,
                "display_name": self.account.display_name,
                "currency": self.account.currency,
            },
            "exchange_rate": str(self.exchange_rate),
            "interview_salary": None if self.interview_salary is None else str(self.interview_salary),
            "period_start": self.period_start.isoformat() if self.period_start else None,
            "period_end": self.period_end.isoformat() if self.period_end else None,
            "period_in_month": str(self.period_in_month),
            "status": self.status.value,
            "total_income": str(self.total_income),
            "total_basic_salary": str(self.total_basic_salary),
            "total_other_income": str(self.total_other_income),
            "monthly_average_income": str(self.monthly_average_income),
            "monthly_net_income": str(self.monthly_net_income),
            "salary": self.salary.to_dict(),
            "allowance": self.allowance.to_dict(),
            "commission": self.commission.to_dict(),
            "source": self.source.to_dict(),
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Calculation":
        account = data.get("account") or {}
        return cls(
            id=data.get("id"),
            number=data["number"],
            statement_file_name=data.get("statement_file_name", ""),
            product=Product.parse(data["product"]),
            account=AccountInfo(
                number=account.get("number", ""),
                display_name=account.get("display_name", ""),
                currency=account.get("currency", ""),
            ),
            exchange_rate=_dec(data.get("exchange_rate"), Decimal("1")),
            interview_salary=parse_interview_salary(data.get("interview_salary")),
            period_start=_date(data.get("period_start")),
            period_end=_date(data.get("period_end")),
            period_in_month=_dec(data.get("period_in_month")),
            status=CalculationStatus(data.get("status", CalculationStatus.PENDING.value)),
            total_income=_dec(data.get("total_income")),
            total_basic_salary=_dec(data.get("total_basic_salary")),
            total_other_income=_dec(data.get("total_other_income")),
            monthly_average_income=_dec(data.get("monthly_average_income")),
            monthly_net_income=_dec(data.get("monthly_net_income")),
            salary=SalaryBreakdown.from_dict(data.get("salary")),
            allowance=AllowanceBreakdown.from_dict(data.get("allowance")),
            commission=CommissionBreakdown.from_dict(data.get("commission")),
            source=SourceIncome.from_dict(data.get("source")),
            created_by=data.get("created_by", ""),
            updated_by=data.get("updated_by", ""),
            created_at=_datetime(data.get("created_at")),
            updated_at=_datetime(data.get("updated_at")),
        )
