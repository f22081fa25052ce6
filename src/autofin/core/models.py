"""
Core enums shared across autofin.

- Product: loan/savings product whose formula set applies to a calculation
- IncomeSource: wordlist category a memo can classify into
- CalculationStatus: lifecycle state of a calculation

Values are the strings persisted in the database and used in JSON.
"""

from enum import Enum

from autofin.core.exceptions import ValidationError


class Product(Enum):
    """Declared product type of a calculation."""
    SA = "SA"  # Savings account
    SF = "SF"
    PL = "PL"  # Personal loan

    @classmethod
    def parse(cls, value) -> "Product":
        """Parse a product code, case-insensitive."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValidationError(f"Invalid product: {value}", field="product")

    @property
    def is_loan(self) -> bool:
        return self in (Product.PL, Product.SF)


class IncomeSource(Enum):
    """Income categories a transaction memo can be classified into."""
    SALARY = "SALARY"
    ALLOWANCE = "ALLOWANCE"
    COMMISSION = "COMMISSION"
    UNCLASSIFIED = "UNCLASSIFIED"

    @classmethod
    def parse(cls, value) -> "IncomeSource":
        """Parse a wordlist category. UNCLASSIFIED is not a valid wordlist category."""
        if isinstance(value, cls):
            source = value
        else:
            try:
                source = cls(str(value).strip().upper())
            except ValueError:
                raise ValidationError(f"Invalid category: {value}", field="category")
        if source is cls.UNCLASSIFIED:
            raise ValidationError("Category must not be empty", field="category")
        return source


class CalculationStatus(Enum):
    """Calculation lifecycle status."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
