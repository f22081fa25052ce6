"""
Income engine.

Classifies statement memos against an ordered wordlist, bins income by
month (salary, commission) or title (allowance), and applies the product
formula set to estimate monthly net income.

The service and repository modules are imported directly
(autofin.services.income.service) since they depend on reports.
"""

from autofin.services.income.wordlist import (
    Classification,
    WordlistEntry,
    WordlistSnapshot,
    WordlistStore,
    classify,
)
from autofin.services.income.aggregator import (
    AllowanceBucket,
    ClassifiedTransaction,
    IncomeBuckets,
    KeyedBuckets,
    MonthBucket,
    aggregate,
)
from autofin.services.income.formulas import IncomeFigures, compute_figures, count_period_months
from autofin.services.income.calculation import Calculation

__all__ = [
    "Classification",
    "WordlistEntry",
    "WordlistSnapshot",
    "WordlistStore",
    "classify",
    "AllowanceBucket",
    "ClassifiedTransaction",
    "IncomeBuckets",
    "KeyedBuckets",
    "MonthBucket",
    "aggregate",
    "IncomeFigures",
    "compute_figures",
    "count_period_months",
    "Calculation",
]
