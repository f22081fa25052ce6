"""
Custom exceptions for autofin.

All autofin-specific exceptions inherit from AutofinError for easy catching.
"""


class AutofinError(Exception):
    """Base exception for all autofin errors."""

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        self.code = code


class DatabaseError(AutofinError):
    """Database operation errors."""

    def __init__(self, message: str, code: str = "DB_ERROR"):
        super().__init__(message, code)


class ValidationError(AutofinError):
    """Data validation errors."""

    def __init__(self, message: str, field: str = None, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code)
        self.field = field


class InvalidStatementError(AutofinError):
    """
    Raised when a statement cannot produce a calculation.

    This includes:
    - Missing or malformed account header cells
    - Currency code that is not exactly 3 characters
    - No classifiable income transactions after a full pass
    """

    def __init__(self, reason: str, statement: str = None, code: str = "INVALID_STATEMENT"):
        message = f"Invalid statement: {reason}"
        if statement:
            message = f"Invalid statement {statement}: {reason}"
        super().__init__(message, code)
        self.reason = reason
        self.statement = statement


class AlreadyCompletedError(AutofinError):
    """Raised when a completed calculation is asked to change."""

    def __init__(self, number: str, code: str = "ALREADY_COMPLETED"):
        super().__init__(
            f"Calculation {number} is already completed and cannot be recalculated",
            code,
        )
        self.number = number


class DuplicateBusinessNumberError(AutofinError):
    """Raised when a calculation already exists for a business number."""

    def __init__(self, number: str, code: str = "DUPLICATE_NUMBER"):
        super().__init__(f"Calculation with number {number} already exists", code)
        self.number = number


class CalculationNotFoundError(AutofinError):
    """Raised when a calculation is not found."""

    def __init__(self, number: str, code: str = "CALCULATION_NOT_FOUND"):
        super().__init__(f"Calculation not found: {number}", code)
        self.number = number


class CurrencyNotFoundError(AutofinError):
    """Raised when no exchange rate is known for a currency code."""

    def __init__(self, currency: str, code: str = "CURRENCY_NOT_FOUND"):
        super().__init__(f"Currency unknown: {currency}", code)
        self.currency = currency


class WordlistNotFoundError(AutofinError):
    """Raised when a wordlist entry is not found."""

    def __init__(self, entry_id: int, code: str = "WORDLIST_NOT_FOUND"):
        super().__init__(f"Wordlist entry not found: {entry_id}", code)
        self.entry_id = entry_id


class StatementFileNotFoundError(AutofinError):
    """Raised when a statement file reference cannot be resolved."""

    def __init__(self, name: str, code: str = "STATEMENT_NOT_FOUND"):
        super().__init__(f"Statement file not found: {name}", code)
        self.name = name


class UnsupportedFileTypeError(AutofinError):
    """Raised when an uploaded statement is not an xlsx workbook."""

    def __init__(self, name: str, code: str = "UNSUPPORTED_FILE_TYPE"):
        super().__init__(f"Unsupported file type: {name}", code)
        self.name = name


class TransactionNotFoundError(AutofinError):
    """Raised when a bill number does not match any income row."""

    def __init__(self, number: str, bill_number: str, code: str = "TRANSACTION_NOT_FOUND"):
        super().__init__(
            f"Transaction {bill_number} not found in calculation {number}", code
        )
        self.number = number
        self.bill_number = bill_number
