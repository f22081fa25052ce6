"""Exchange rate provider backed by the currency table.

Each currency code maps to one exchange rate into the reporting currency.
The income engine asks for the rate of the statement's account currency;
an unknown code raises CurrencyNotFoundError.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from autofin.core.database import transaction
from autofin.core.exceptions import CurrencyNotFoundError, ValidationError

logger = logging.getLogger(__name__)

CODE_LENGTH = 3


@dataclass
class Currency:
    """Currency record."""

    code: str
    exchange_rate: Decimal
    id: Optional[int] = None
    created_by: str = ""
    updated_by: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def normalize_code(code: str) -> str:
    """Upper-case and validate a 3-letter currency code."""
    value = (code or "").strip().upper()
    if len(value) != CODE_LENGTH or not value.isalpha():
        raise ValidationError(f"Currency code must be {CODE_LENGTH} letters: {code!r}", field="code")
    return value


def parse_rate(rate) -> Decimal:
    try:
        value = Decimal(str(rate))
    except InvalidOperation:
        raise ValidationError(f"Invalid exchange rate: {rate!r}", field="exchange_rate")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Exchange rate must be greater than 0", field="exchange_rate")
    return value


class CurrencyRateProvider:
    """
    Provides exchange rates for statement currencies.

    Usage:
        provider = CurrencyRateProvider(conn)
        provider.set_rate("USD", Decimal("21500"))
        rate = provider.get_rate("usd")
    """

    def __init__(self, db_connection: sqlite3.Connection):
        """
        Initialize rate provider.

        Args:
            db_connection: Database connection
        """
        self.conn = db_connection

    def get_rate(self, code: str) -> Decimal:
        """
        Get the exchange rate for a currency code.

        Raises:
            CurrencyNotFoundError: If the code is unknown
        """
        return self.get(code).exchange_rate

    def get(self, code: str) -> Currency:
        key = (code or "").strip().upper()
        row = self.conn.execute(
            "SELECT * FROM currency WHERE code = ?", (key,)
        ).fetchone()
        if row is None:
            raise CurrencyNotFoundError(key or str(code))
        return self._row_to_currency(row)

    def create(self, code: str, exchange_rate, user: str = "") -> Currency:
        """
        Add a currency.

        Raises:
            ValidationError: If the code exists or the values are invalid
        """
        code = normalize_code(code)
        rate = parse_rate(exchange_rate)
        now = datetime.now().isoformat()
        with transaction(self.conn) as conn:
            try:
                conn.execute(
                    """INSERT INTO currency
                    (code, exchange_rate, created_by, updated_by, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)""",
                    (code, str(rate), user, user, now, now),
                )
            except sqlite3.IntegrityError as e:
                raise ValidationError(f"Currency already exists: {code}", field="code") from e
        logger.info(f"Currency {code} added at rate {rate}")
        return self.get(code)

    def update_rate(self, code: str, exchange_rate, user: str = "") -> Currency:
        code = normalize_code(code)
        rate = parse_rate(exchange_rate)
        with transaction(self.conn) as conn:
            cursor = conn.execute(
                """UPDATE currency SET exchange_rate = ?, updated_by = ?, updated_at = ?
                WHERE code = ?""",
                (str(rate), user, datetime.now().isoformat(), code),
            )
            if cursor.rowcount == 0:
                raise CurrencyNotFoundError(code)
        logger.info(f"Currency {code} rate updated to {rate}")
        return self.get(code)

    def set_rate(self, code: str, exchange_rate, user: str = "") -> Currency:
        """Create the currency or update its rate."""
        code = normalize_code(code)
        try:
            self.get(code)
        except CurrencyNotFoundError:
            return self.create(code, exchange_rate, user)
        return self.update_rate(code, exchange_rate, user)

    def list(self, code: Optional[str] = None) -> List[Currency]:
        sql = "SELECT * FROM currency"
        params: list = []
        if code:
            sql += " WHERE code LIKE ?"
            params.append(f"%{code.strip().upper()}%")
        sql += " ORDER BY code"
        return [self._row_to_currency(row) for row in self.conn.execute(sql, params)]

    @staticmethod
    def _row_to_currency(row) -> Currency:
        return Currency(
            id=row["id"],
            code=row["code"],
            exchange_rate=Decimal(row["exchange_rate"]),
            created_by=row["created_by"],
            updated_by=row["updated_by"],
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
            updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        )
