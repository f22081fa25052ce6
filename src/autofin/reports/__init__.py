"""Reports module for generating calculation workbooks.

Provides:
- CalculationWorkbook: one calculation (summary, salary, allowance, commission)
- export_calculation_list: one row per calculation
"""

from .calculation_report import CalculationWorkbook, export_calculation_list

__all__ = [
    "CalculationWorkbook",
    "export_calculation_list",
]
