"""
Monthly aggregation of classified income transactions.

Salary and commission transactions are grouped by Month-Year label;
allowance transactions are grouped by the matched wordlist title, each title
carrying its own months divisor (default 12).

Buckets are held in a KeyedBuckets container that always iterates in a
deterministic order: chronological for month keys, alphabetical for titles.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

from autofin.core.exceptions import ValidationError
from autofin.core.models import IncomeSource
from autofin.parsers.statement.models import Transaction, parse_month_label

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
DEFAULT_ALLOWANCE_MONTHS = Decimal("12")


def sum_amounts(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions), ZERO)


def chronological_key(label: str) -> Tuple[int, date, str]:
    """Sort key for Month-Year labels; unparsable labels sort last, by text."""
    parsed = parse_month_label(label)
    if parsed is None:
        return (1, date.max, label)
    return (0, parsed, label)


def title_key(title: str) -> Tuple[str, str]:
    return (title.lower(), title)


def _decimal(value, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except ArithmeticError:
        raise ValidationError(f"Invalid decimal for {name}: {value!r}", field=name)


@dataclass
class MonthBucket:
    """Transactions of one calendar month, keyed by "January-2024" style label."""
    month: str
    transactions: List[Transaction] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.month

    @property
    def total(self) -> Decimal:
        return sum_amounts(self.transactions)

    @property
    def times_received(self) -> int:
        return len(self.transactions)

    def merge(self, other: "MonthBucket") -> None:
        self.transactions.extend(other.transactions)

    @property
    def minimum_amount(self) -> Decimal:
        """Smallest single transaction in the bucket (0 when empty)."""
        if not self.transactions:
            return ZERO
        return min(t.amount for t in self.transactions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "times_received": self.times_received,
            "transactions": [t.to_dict() for t in self.transactions],
            "total": str(self.total),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonthBucket":
        return cls(
            month=str(data["month"]),
            transactions=[Transaction.from_dict(t) for t in data.get("transactions", [])],
        )


@dataclass
class AllowanceBucket:
    """Transactions of one allowance title, averaged over its own months divisor."""
    title: str
    transactions: List[Transaction] = field(default_factory=list)
    months: Decimal = DEFAULT_ALLOWANCE_MONTHS

    def __post_init__(self):
        if not isinstance(self.months, Decimal):
            self.months = _decimal(self.months, "months")
        if self.months <= 0:
            raise ValidationError(
                f"Allowance months must be greater than 0 for {self.title!r}",
                field="months",
            )

    @property
    def key(self) -> str:
        return self.title

    @property
    def total(self) -> Decimal:
        return sum_amounts(self.transactions)

    def merge(self, other: "AllowanceBucket") -> None:
        """Add the other bucket's transactions; its months divisor replaces ours."""
        self.transactions.extend(other.transactions)
        self.months = other.months

    @property
    def monthly_average(self) -> Decimal:
        return self.total / self.months

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "months": str(self.months),
            "monthly_average": str(self.monthly_average),
            "transactions": [t.to_dict() for t in self.transactions],
            "total": str(self.total),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AllowanceBucket":
        months = data.get("months")
        return cls(
            title=str(data["title"]),
            transactions=[Transaction.from_dict(t) for t in data.get("transactions", [])],
            months=DEFAULT_ALLOWANCE_MONTHS if months in (None, "") else _decimal(months, "months"),
        )


B = TypeVar("B", MonthBucket, AllowanceBucket)


class KeyedBuckets(Generic[B]):
    """
    Buckets keyed by label, iterated in sort-key order.

    Usage:
        salary = KeyedBuckets(MonthBucket, chronological_key)
        salary.add("January-2024", txn)
        for bucket in salary: ...
    """

    def __init__(self, factory: Callable[[str], B], sort_key: Callable[[str], Any] = chronological_key):
        self._factory = factory
        self._sort_key = sort_key
        self._buckets: Dict[str, B] = {}

    def add(self, key: str, transaction: Transaction) -> B:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = self._factory(key)
            self._buckets[key] = bucket
        bucket.transactions.append(transaction)
        return bucket

    def put(self, bucket: B) -> None:
        """Insert a prebuilt bucket, merging it into an existing one with the same key."""
        existing = self._buckets.get(bucket.key)
        if existing is None:
            self._buckets[bucket.key] = bucket
        else:
            existing.merge(bucket)

    def get(self, key: str) -> Optional[B]:
        return self._buckets.get(key)

    def keys(self) -> List[str]:
        return sorted(self._buckets, key=self._sort_key)

    def __iter__(self) -> Iterator[B]:
        for key in self.keys():
            yield self._buckets[key]

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: str) -> bool:
        return key in self._buckets

    def __bool__(self) -> bool:
        return bool(self._buckets)

    @property
    def total(self) -> Decimal:
        return sum((b.total for b in self._buckets.values()), ZERO)

    @property
    def transaction_count(self) -> int:
        return sum(len(b.transactions) for b in self._buckets.values())


def month_buckets() -> KeyedBuckets[MonthBucket]:
    return KeyedBuckets(lambda key: MonthBucket(month=key), chronological_key)


def allowance_buckets(default_months: Decimal = DEFAULT_ALLOWANCE_MONTHS) -> KeyedBuckets[AllowanceBucket]:
    return KeyedBuckets(lambda key: AllowanceBucket(title=key, months=default_months), title_key)


@dataclass(frozen=True)
class ClassifiedTransaction:
    """A decoded transaction with its income category and matched word."""
    transaction: Transaction
    category: IncomeSource
    word: str = ""

    @property
    def month(self) -> str:
        return self.transaction.month


@dataclass
class IncomeBuckets:
    """Aggregated statement income: the three bucket sets plus the declared interview salary."""
    salary: KeyedBuckets = field(default_factory=month_buckets)
    allowance: KeyedBuckets = field(default_factory=allowance_buckets)
    commission: KeyedBuckets = field(default_factory=month_buckets)
    interview_salary: Optional[Decimal] = None

    @property
    def transaction_count(self) -> int:
        return (
            self.salary.transaction_count
            + self.allowance.transaction_count
            + self.commission.transaction_count
        )

    @property
    def is_empty(self) -> bool:
        return self.transaction_count == 0


def aggregate(
    classified: Iterable[ClassifiedTransaction],
    interview_salary: Optional[Decimal] = None,
    default_allowance_months: Decimal = DEFAULT_ALLOWANCE_MONTHS,
) -> IncomeBuckets:
    """
    Bin classified transactions into salary, allowance and commission buckets.

    Unclassified transactions are dropped.

    Args:
        classified: Transactions with their categories
        interview_salary: Declared basic salary from the customer interview
        default_allowance_months: Divisor given to each new allowance title

    Returns:
        IncomeBuckets
    """
    buckets = IncomeBuckets(
        allowance=allowance_buckets(default_allowance_months),
        interview_salary=interview_salary,
    )
    for item in classified:
        if item.category is IncomeSource.SALARY:
            buckets.salary.add(item.month, item.transaction)
        elif item.category is IncomeSource.COMMISSION:
            buckets.commission.add(item.month, item.transaction)
        elif item.category is IncomeSource.ALLOWANCE:
            buckets.allowance.add(item.word, item.transaction)
    logger.debug(
        f"Aggregated {buckets.transaction_count} transactions: "
        f"{len(buckets.salary)} salary months, {len(buckets.allowance)} allowance titles, "
        f"{len(buckets.commission)} commission months"
    )
    return buckets


def rebuild(
    salary: Iterable[MonthBucket],
    allowance: Iterable[AllowanceBucket],
    commission: Iterable[MonthBucket],
    interview_salary: Optional[Decimal] = None,
) -> IncomeBuckets:
    """
    Build IncomeBuckets from caller-edited buckets.

    Buckets without transactions are ignored; buckets sharing a key are merged,
    and for allowance titles the last months divisor wins.
    """
    buckets = IncomeBuckets(interview_salary=interview_salary)
    for target, source in (
        (buckets.salary, salary),
        (buckets.allowance, allowance),
        (buckets.commission, commission),
    ):
        for bucket in source:
            if not bucket.transactions:
                continue
            target.put(replace(bucket, transactions=list(bucket.transactions)))
    return buckets
