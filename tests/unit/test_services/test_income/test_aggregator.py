"""Tests for monthly aggregation of classified transactions."""

from decimal import Decimal

import pytest

from autofin.core.exceptions import ValidationError
from autofin.core.models import IncomeSource
from autofin.services.income.aggregator import (
    AllowanceBucket,
    ClassifiedTransaction,
    MonthBucket,
    aggregate,
    month_buckets,
    rebuild,
)


class TestMonthBuckets:
    """Tests for MonthBucket and keyed containers."""

    def test_month_bucket_figures(self, make_txn):
        bucket = MonthBucket("January-2024", [
            make_txn("2024-01-05", 1000000),
            make_txn("2024-01-20", 150000),
        ])

        assert bucket.total == Decimal("1150000")
        assert bucket.times_received == 2
        assert bucket.minimum_amount == Decimal("150000")

    def test_empty_bucket_minimum(self):
        assert MonthBucket("January-2024").minimum_amount == Decimal("0")

    def test_chronological_order(self, make_txn):
        """Test months iterate by calendar, not by label text."""
        buckets = month_buckets()
        buckets.add("March-2024", make_txn("2024-03-05", 1))
        buckets.add("January-2025", make_txn("2025-01-05", 1))
        buckets.add("February-2024", make_txn("2024-02-05", 1))
        buckets.add("not a month", make_txn("2024-02-06", 1))

        assert buckets.keys() == ["February-2024", "March-2024", "January-2025", "not a month"]

    def test_put_merges(self, make_txn):
        buckets = month_buckets()
        buckets.put(MonthBucket("May-2024", [make_txn("2024-05-01", 10)]))
        buckets.put(MonthBucket("May-2024", [make_txn("2024-05-02", 5)]))

        assert len(buckets) == 1
        assert buckets.get("May-2024").total == Decimal("15")
        assert buckets.transaction_count == 2


class TestAllowanceBucket:
    """Tests for per-title allowance averaging."""

    def test_default_divisor(self, make_txn):
        bucket = AllowanceBucket("phone allowance", [
            make_txn("2024-02-15", 120000),
            make_txn("2024-03-15", 120000),
        ])
        assert bucket.months == Decimal("12")
        assert bucket.monthly_average == Decimal("20000")

    def test_own_divisor(self, make_txn):
        bucket = AllowanceBucket("fuel", [make_txn("2024-02-15", 90000)], months=3)
        assert bucket.monthly_average == Decimal("30000")

    @pytest.mark.parametrize("months", [0, -1])
    def test_non_positive_months_rejected(self, months):
        with pytest.raises(ValidationError):
            AllowanceBucket("fuel", months=months)

    def test_from_dict_defaults_months(self):
        bucket = AllowanceBucket.from_dict({"title": "fuel", "transactions": []})
        assert bucket.months == Decimal("12")


class TestAggregate:
    """Tests for aggregate()."""

    def test_bins_by_category(self, make_txn):
        classified = [
            ClassifiedTransaction(make_txn("2024-01-05", 1000000), IncomeSource.SALARY, "salary"),
            ClassifiedTransaction(make_txn("2024-01-20", 150000), IncomeSource.COMMISSION, "ot"),
            ClassifiedTransaction(make_txn("2024-02-05", 1200000), IncomeSource.SALARY, "salary"),
            ClassifiedTransaction(make_txn("2024-02-15", 120000), IncomeSource.ALLOWANCE, "phone allowance"),
            ClassifiedTransaction(make_txn("2024-03-15", 120000), IncomeSource.ALLOWANCE, "phone allowance"),
            ClassifiedTransaction(make_txn("2024-03-16", 999), IncomeSource.UNCLASSIFIED),
        ]

        buckets = aggregate(classified, interview_salary=Decimal("900000"))

        assert buckets.salary.keys() == ["January-2024", "February-2024"]
        assert buckets.commission.keys() == ["January-2024"]
        assert buckets.allowance.keys() == ["phone allowance"]
        assert buckets.allowance.get("phone allowance").total == Decimal("240000")
        assert buckets.transaction_count == 5
        assert buckets.interview_salary == Decimal("900000")

    def test_allowance_titles_keep_own_months(self, make_txn):
        """Test one title's months never leak into the next title."""
        classified = [
            ClassifiedTransaction(make_txn("2024-01-01", 120), IncomeSource.ALLOWANCE, "phone"),
            ClassifiedTransaction(make_txn("2024-01-02", 240), IncomeSource.ALLOWANCE, "fuel"),
        ]

        buckets = aggregate(classified, default_allowance_months=Decimal("6"))

        assert [b.months for b in buckets.allowance] == [Decimal("6"), Decimal("6")]
        assert [b.title for b in buckets.allowance] == ["fuel", "phone"]

    def test_empty(self):
        assert aggregate([]).is_empty


class TestRebuild:
    """Tests for rebuilding buckets from edited input."""

    def test_drops_empty_buckets(self, make_txn):
        buckets = rebuild(
            [MonthBucket("January-2024", [make_txn("2024-01-05", 100)]), MonthBucket("February-2024")],
            [AllowanceBucket("phone")],
            [],
        )
        assert buckets.salary.keys() == ["January-2024"]
        assert len(buckets.allowance) == 0

    def test_does_not_mutate_input(self, make_txn):
        first = MonthBucket("January-2024", [make_txn("2024-01-05", 100)])
        second = MonthBucket("January-2024", [make_txn("2024-01-06", 50)])

        buckets = rebuild([first, second], [], [])

        assert buckets.salary.get("January-2024").total == Decimal("150")
        assert first.total == Decimal("100")
        assert len(first.transactions) == 1

    def test_shared_title_keeps_last_months(self, make_txn):
        """Test merged allowance buckets take the divisor of the last one."""
        first = AllowanceBucket("phone", [make_txn("2024-01-05", 60)], months=12)
        second = AllowanceBucket("phone", [make_txn("2024-02-05", 60)], months=6)

        buckets = rebuild([], [first, second], [])

        merged = buckets.allowance.get("phone")
        assert merged.months == Decimal("6")
        assert merged.monthly_average == Decimal("20")
        assert first.months == Decimal("12")
        assert len(first.transactions) == 1
