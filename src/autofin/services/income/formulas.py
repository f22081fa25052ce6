"""
Product formula sets for monthly income estimation.

All figures are exact Decimals computed from IncomeBuckets. Every
period-divided figure is 0 when the period is 0.

Basic salary has two meanings:
- SA: the sum of each salary month's smallest transaction, divided by period
  (sa_basic_salary)
- PL/SF: the smallest monthly salary total (loan_basic_salary)
They only meet in basic_salary(), which picks one by product.

Other income always uses the loan rule (total salary minus loan total basic
salary), whichever product is active.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from autofin.core.config import FormulaSettings
from autofin.core.models import Product
from autofin.services.income.aggregator import IncomeBuckets

ZERO = Decimal("0")
HAIRCUT_RATE = Decimal("0.8")


def count_period_months(start: Optional[date], end: Optional[date]) -> int:
    """
    Whole calendar months between the statement bounds.

    Computed as year difference * 12 + month difference; days are ignored.
    Missing bounds or an end before the start give 0.
    """
    if start is None or end is None:
        return 0
    months = (end.year - start.year) * 12 + (end.month - start.month)
    return max(months, 0)


def _divide(value: Decimal, period: Decimal) -> Decimal:
    if period == 0:
        return ZERO
    return value / period


def total_income(buckets: IncomeBuckets, product: Product) -> Decimal:
    """
    SA: sum of the minimum single salary transaction of each month.
    PL/SF: sum of every salary transaction.
    """
    if product is Product.SA:
        return sum((b.minimum_amount for b in buckets.salary), ZERO)
    return buckets.salary.total


def sa_basic_salary(buckets: IncomeBuckets, period: Decimal) -> Decimal:
    return _divide(total_income(buckets, Product.SA), period)


def loan_basic_salary(buckets: IncomeBuckets) -> Decimal:
    """Smallest monthly salary total; 0 without salary months."""
    totals = [b.total for b in buckets.salary]
    if not totals:
        return ZERO
    return min(totals)


def basic_salary(buckets: IncomeBuckets, product: Product, period: Decimal) -> Decimal:
    if product is Product.SA:
        return sa_basic_salary(buckets, period)
    return loan_basic_salary(buckets)


def total_basic_salary(buckets: IncomeBuckets, product: Product, period: Decimal) -> Decimal:
    if period == 0:
        return ZERO
    if product is Product.SA:
        return sa_basic_salary(buckets, period)
    return loan_basic_salary(buckets) * period


def total_other_income(buckets: IncomeBuckets, period: Decimal) -> Decimal:
    """max(0, loan total income - loan total basic salary)."""
    if period == 0:
        return ZERO
    other = total_income(buckets, Product.PL) - total_basic_salary(buckets, Product.PL, period)
    return max(other, ZERO)


def average_other_income(buckets: IncomeBuckets, period: Decimal) -> Decimal:
    return _divide(total_other_income(buckets, period), period)


def average_allowance(buckets: IncomeBuckets) -> Decimal:
    """Sum over allowance titles of title total / title months."""
    return sum((b.monthly_average for b in buckets.allowance), ZERO)


def average_commission(buckets: IncomeBuckets, period: Decimal) -> Decimal:
    return _divide(buckets.commission.total, period)


def haircut_average(
    buckets: IncomeBuckets, period: Decimal, rate: Decimal = HAIRCUT_RATE
) -> Decimal:
    """(average other + average commission + average allowance) * rate."""
    volatile = (
        average_other_income(buckets, period)
        + average_commission(buckets, period)
        + average_allowance(buckets)
    )
    return volatile * rate


def interview_applies(interview: Optional[Decimal], basic: Decimal) -> bool:
    """The declared interview salary replaces basic salary only when 0 < interview < basic."""
    return interview is not None and ZERO < interview < basic


def monthly_average_income(
    buckets: IncomeBuckets,
    product: Product,
    period: Decimal,
    rate: Decimal = HAIRCUT_RATE,
) -> Decimal:
    basic = basic_salary(buckets, product, period)
    if interview_applies(buckets.interview_salary, basic):
        basic = buckets.interview_salary

    if product is Product.SA:
        return basic + average_allowance(buckets) + average_commission(buckets, period)
    return basic + haircut_average(buckets, period, rate)


def monthly_net_income(
    buckets: IncomeBuckets,
    product: Product,
    period: Decimal,
    exchange_rate: Decimal,
    rate: Decimal = HAIRCUT_RATE,
) -> Decimal:
    if period == 0:
        return ZERO
    return monthly_average_income(buckets, product, period, rate) * exchange_rate


def minimum_salary_transaction(buckets: IncomeBuckets) -> Decimal:
    """Smallest single salary transaction across all months (0 when none)."""
    amounts = [t.amount for b in buckets.salary for t in b.transactions]
    if not amounts:
        return ZERO
    return min(amounts)


@dataclass(frozen=True)
class IncomeFigures:
    """Every derived figure of one formula pass."""
    product: Product
    period: Decimal
    exchange_rate: Decimal
    total_income: Decimal
    basic_salary: Decimal
    total_basic_salary: Decimal
    total_other_income: Decimal
    average_other_income: Decimal
    average_allowance: Decimal
    average_commission: Decimal
    haircut_average: Decimal
    monthly_average_income: Decimal
    monthly_net_income: Decimal
    interview_applied: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            key: (value.value if isinstance(value, Product) else
                  value if isinstance(value, bool) else str(value))
            for key, value in self.__dict__.items()
        }


def compute_figures(
    buckets: IncomeBuckets,
    product: Product,
    period,
    exchange_rate,
    settings: Optional[FormulaSettings] = None,
) -> IncomeFigures:
    """
    Run the formula set for a product.

    Args:
        buckets: Aggregated income
        product: SA, SF or PL
        period: Period length in whole months
        exchange_rate: Rate to the reporting currency
        settings: Formula constants (haircut rate)

    Returns:
        IncomeFigures
    """
    settings = settings or FormulaSettings()
    rate = settings.haircut_rate
    period = Decimal(period)
    exchange_rate = Decimal(str(exchange_rate))
    basic = basic_salary(buckets, product, period)
    return IncomeFigures(
        product=product,
        period=period,
        exchange_rate=exchange_rate,
        total_income=total_income(buckets, product),
        basic_salary=basic,
        total_basic_salary=total_basic_salary(buckets, product, period),
        total_other_income=total_other_income(buckets, period),
        average_other_income=average_other_income(buckets, period),
        average_allowance=average_allowance(buckets),
        average_commission=average_commission(buckets, period),
        haircut_average=haircut_average(buckets, period, rate),
        monthly_average_income=monthly_average_income(buckets, product, period, rate),
        monthly_net_income=monthly_net_income(buckets, product, period, exchange_rate, rate),
        interview_applied=interview_applies(buckets.interview_salary, basic),
    )
