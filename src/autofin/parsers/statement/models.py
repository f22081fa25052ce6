"""
Statement transaction and account data models.

Dataclasses for representing decoded statement rows.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# Persisted transaction dates, e.g. "05-01-2024"
TRANSACTION_DATE_FORMAT = "%d-%m-%Y"


def month_label(value: date) -> str:
    """Return the Month-Year aggregation key for a date, e.g. "January-2024"."""
    return f"{MONTH_NAMES[value.month - 1]}-{value.year}"


def parse_month_label(label: str) -> Optional[date]:
    """
    Parse a Month-Year label back to the first day of that month.

    Returns None for labels that do not parse; callers sort those last.
    """
    try:
        name, year = label.strip().rsplit("-", 1)
        month = [m.lower() for m in MONTH_NAMES].index(name.strip().lower()) + 1
        return date(int(year), month, 1)
    except (ValueError, AttributeError):
        return None


@dataclass(frozen=True)
class Transaction:
    """A single income candidate read from a statement row."""

    date: date
    bill_number: str
    memo: str
    amount: Decimal

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))

    @property
    def month(self) -> str:
        return month_label(self.date)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON storage."""
        return {
            "date": self.date.strftime(TRANSACTION_DATE_FORMAT),
            "bill_number": self.bill_number,
            "memo": self.memo,
            "amount": str(self.amount),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        """Create Transaction from a stored or caller-supplied dictionary."""
        raw_date = data["date"]
        if isinstance(raw_date, date):
            txn_date = raw_date
        else:
            txn_date = datetime.strptime(str(raw_date), TRANSACTION_DATE_FORMAT).date()
        return cls(
            date=txn_date,
            bill_number=str(data.get("bill_number", "")),
            memo=str(data.get("memo", "")),
            amount=Decimal(str(data["amount"])),
        )


@dataclass(frozen=True)
class DecodedRow:
    """A successfully decoded row plus its aggregation key."""

    transaction: Transaction
    month: str


@dataclass(frozen=True)
class AccountInfo:
    """Account identity taken from the statement header."""

    number: str
    display_name: str
    currency: str

    @property
    def masked_number(self) -> str:
        """Return masked account number: ****1234"""
        if len(self.number) < 4:
            return "*" * len(self.number)
        return f"****{self.number[-4:]}"


@dataclass
class StatementHeader:
    """Header cells of a statement: account identity and period bounds."""

    account_number: str = ""
    account_name: str = ""
    currency: str = ""
    period_start: Optional[date] = None
    period_end: Optional[date] = None

    @property
    def account(self) -> AccountInfo:
        return AccountInfo(
            number=self.account_number,
            display_name=self.account_name,
            currency=self.currency,
        )


@dataclass
class DecodeStats:
    """Row counts for one pass over a statement."""

    rows_read: int = 0
    decoded: int = 0
    classified: int = 0
    unclassified: int = 0
    skipped: Counter = field(default_factory=Counter)

    def skip(self, reason: str) -> None:
        self.skipped[reason] += 1

    @property
    def skipped_total(self) -> int:
        return sum(self.skipped.values())

    def __str__(self) -> str:
        return (
            f"{self.rows_read} rows read, {self.decoded} decoded, "
            f"{self.classified} classified, {self.unclassified} unclassified, "
            f"{self.skipped_total} skipped"
        )


@dataclass
class StatementSheet:
    """
    Header plus raw text rows of one statement sheet.

    Rows are lists of cell text with trailing empty cells removed.
    """

    header: StatementHeader
    rows: List[List[str]] = field(default_factory=list)
    source: str = ""
