"""
Calculation persistence.

One row per business number in statement_file_analysis. Breakdowns are
stored as JSON with decimals written as strings so reloading is exact.
Writes for a number run inside BEGIN IMMEDIATE, which serializes concurrent
requests for the same number.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from autofin.core.database import transaction
from autofin.core.exceptions import (
    CalculationNotFoundError,
    DuplicateBusinessNumberError,
    ValidationError,
)
from autofin.core.models import Product
from autofin.services.income.calculation import Calculation

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500

COLUMNS = (
    "number", "statement_file_name", "product",
    "account_number", "account_display_name", "account_currency",
    "exchange_rate", "declared_interview_salary",
    "total_income", "total_basic_salary", "total_other_income",
    "monthly_average_income", "monthly_net_income", "period_in_month",
    "started_at", "ended_at", "status",
    "source_income", "monthly_salary", "allowance", "commission",
    "created_by", "updated_by", "created_at", "updated_at",
)


@dataclass
class CalculationQuery:
    """Filters for listing calculations, newest first."""
    product: Optional[Product] = None
    number: Optional[str] = None
    display_name: Optional[str] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    page_size: int = DEFAULT_PAGE_SIZE
    page_token: Optional[str] = None


@dataclass
class CalculationPage:
    calculations: List[Calculation] = field(default_factory=list)
    next_page_token: str = ""


def _parse_page_token(token: str) -> int:
    try:
        return int(str(token).strip())
    except ValueError:
        raise ValidationError(f"Invalid page token: {token!r}", field="page_token")


def _row_values(calc: Calculation) -> tuple:
    data = calc.to_dict()
    return (
        calc.number,
        calc.statement_file_name,
        calc.product.value,
        calc.account.number,
        calc.account.display_name,
        calc.account.currency,
        data["exchange_rate"],
        data["interview_salary"],
        data["total_income"],
        data["total_basic_salary"],
        data["total_other_income"],
        data["monthly_average_income"],
        data["monthly_net_income"],
        data["period_in_month"],
        data["period_start"],
        data["period_end"],
        calc.status.value,
        json.dumps(data["source"]),
        json.dumps(data["salary"]),
        json.dumps(data["allowance"]),
        json.dumps(data["commission"]),
        calc.created_by,
        calc.updated_by,
        data["created_at"],
        data["updated_at"],
    )


def _row_to_calculation(row: sqlite3.Row) -> Calculation:
    return Calculation.from_dict({
        "id": row["id"],
        "number": row["number"],
        "statement_file_name": row["statement_file_name"],
        "product": row["product"],
        "account": {
            "number": row["account_number"],
            "display_name": row["account_display_name"],
            "currency": row["account_currency"],
        },
        "exchange_rate": row["exchange_rate"],
        "interview_salary": row["declared_interview_salary"],
        "period_start": row["started_at"],
        "period_end": row["ended_at"],
        "period_in_month": row["period_in_month"],
        "status": row["status"],
        "total_income": row["total_income"],
        "total_basic_salary": row["total_basic_salary"],
        "total_other_income": row["total_other_income"],
        "monthly_average_income": row["monthly_average_income"],
        "monthly_net_income": row["monthly_net_income"],
        "salary": json.loads(row["monthly_salary"] or "{}"),
        "allowance": json.loads(row["allowance"] or "{}"),
        "commission": json.loads(row["commission"] or "{}"),
        "source": json.loads(row["source_income"] or "{}"),
        "created_by": row["created_by"],
        "updated_by": row["updated_by"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    })


class CalculationRepository:
    """
    Upsert-by-number store for calculations.

    Usage:
        repo = CalculationRepository(conn)
        repo.create(calc)
        repo.update("BN-1", lambda c: c.complete("alice"))
    """

    def __init__(self, db_connection: sqlite3.Connection):
        self.conn = db_connection

    def exists(self, number: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM statement_file_analysis WHERE number = ?", (number,)
        ).fetchone()
        return row is not None

    def create(self, calc: Calculation) -> Calculation:
        """
        Insert a new calculation.

        Raises:
            DuplicateBusinessNumberError: If the number already exists
        """
        with transaction(self.conn) as conn:
            try:
                cursor = conn.execute(
                    f"INSERT INTO statement_file_analysis ({', '.join(COLUMNS)}) "
                    f"VALUES ({', '.join('?' for _ in COLUMNS)})",
                    _row_values(calc),
                )
            except sqlite3.IntegrityError as e:
                if "UNIQUE" in str(e).upper():
                    raise DuplicateBusinessNumberError(calc.number) from e
                raise
            calc.id = cursor.lastrowid
        logger.debug(f"Stored calculation {calc.number} (id={calc.id})")
        return calc

    def save(self, calc: Calculation) -> Calculation:
        """Insert or replace the calculation stored under calc.number."""
        with transaction(self.conn) as conn:
            self._upsert(conn, calc)
        return calc

    def update(self, number: str, mutate: Callable[[Calculation], Calculation]) -> Calculation:
        """
        Load, mutate and store one calculation inside a single transaction.

        Exceptions raised by mutate roll the transaction back.
        """
        with transaction(self.conn) as conn:
            calc = self._fetch(conn, number)
            if calc is None:
                raise CalculationNotFoundError(number)
            calc = mutate(calc) or calc
            self._upsert(conn, calc)
        return calc

    def get_by_number(self, number: str) -> Calculation:
        calc = self._fetch(self.conn, number)
        if calc is None:
            raise CalculationNotFoundError(number)
        return calc

    def list(self, query: Optional[CalculationQuery] = None) -> CalculationPage:
        """List calculations newest first; the page token is the last row id seen."""
        query = query or CalculationQuery()
        page_size = min(max(int(query.page_size or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

        sql = "SELECT * FROM statement_file_analysis WHERE 1=1"
        params: list = []
        if query.product is not None:
            sql += " AND product = ?"
            params.append(Product.parse(query.product).value)
        if query.number:
            sql += " AND number LIKE ?"
            params.append(f"%{query.number.strip()}%")
        if query.display_name:
            sql += " AND lower(account_display_name) LIKE ?"
            params.append(f"%{query.display_name.strip().lower()}%")
        if query.created_after is not None:
            sql += " AND created_at >= ?"
            params.append(query.created_after.isoformat())
        if query.created_before is not None:
            sql += " AND created_at <= ?"
            params.append(query.created_before.isoformat())
        if query.page_token:
            sql += " AND id < ?"
            params.append(_parse_page_token(query.page_token))
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(page_size + 1)

        rows = self.conn.execute(sql, params).fetchall()
        calculations = [_row_to_calculation(r) for r in rows[:page_size]]
        next_token = str(calculations[-1].id) if len(rows) > page_size else ""
        return CalculationPage(calculations=calculations, next_page_token=next_token)

    @staticmethod
    def _fetch(conn: sqlite3.Connection, number: str) -> Optional[Calculation]:
        row = conn.execute(
            "SELECT * FROM statement_file_analysis WHERE number = ?", (number,)
        ).fetchone()
        return _row_to_calculation(row) if row is not None else None

    @staticmethod
    def _upsert(conn: sqlite3.Connection, calc: Calculation) -> None:
        updates = ", ".join(
            f"{col} = excluded.{col}" for col in COLUMNS
            if col not in ("number", "created_by", "created_at")
        )
        cursor = conn.execute(
            f"INSERT INTO statement_file_analysis ({', '.join(COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in COLUMNS)}) "
            f"ON CONFLICT(number) DO UPDATE SET {updates}",
            _row_values(calc),
        )
        if calc.id is None:
            calc.id = cursor.lastrowid
