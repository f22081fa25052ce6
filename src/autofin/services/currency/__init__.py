"""Currency services module.

Provides exchange rates from account currencies to the reporting currency.
"""

from .rate_provider import CurrencyRateProvider, Currency

__all__ = [
    "CurrencyRateProvider",
    "Currency",
]
