"""
Core module - Foundation components for autofin.

Provides:
- DatabaseManager: SQLite database management and transactions
- EngineSettings: statement layout and formula constants
- Shared enums: Product, IncomeSource, CalculationStatus
- Exception hierarchy rooted at AutofinError
"""

from autofin.core.database import DatabaseManager, transaction
from autofin.core.config import EngineSettings, StatementLayout, FormulaSettings
from autofin.core.models import Product, IncomeSource, CalculationStatus
from autofin.core.exceptions import (
    AutofinError,
    DatabaseError,
    ValidationError,
    InvalidStatementError,
    AlreadyCompletedError,
    DuplicateBusinessNumberError,
    CalculationNotFoundError,
    CurrencyNotFoundError,
    WordlistNotFoundError,
    StatementFileNotFoundError,
    UnsupportedFileTypeError,
    TransactionNotFoundError,
)

__all__ = [
    "DatabaseManager",
    "transaction",
    "EngineSettings",
    "StatementLayout",
    "FormulaSettings",
    "Product",
    "IncomeSource",
    "CalculationStatus",
    "AutofinError",
    "DatabaseError",
    "ValidationError",
    "InvalidStatementError",
    "AlreadyCompletedError",
    "DuplicateBusinessNumberError",
    "CalculationNotFoundError",
    "CurrencyNotFoundError",
    "WordlistNotFoundError",
    "StatementFileNotFoundError",
    "UnsupportedFileTypeError",
    "TransactionNotFoundError",
]
