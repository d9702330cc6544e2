"""
Tests for MaintenanceService: display-name backfill, legacy category
normalization and duplicate merging, with and without dry run.
"""

import asyncio
from decimal import Decimal

import pytest

from ledger_kernel.domain.categories import ExpenseCategory
from ledger_kernel.domain.records import DerivedExpense, SourceTag
from ledger_services.maintenance import (
    MaintenanceReport,
    MaintenanceService,
    display_name_from_description,
    expense_identity,
    find_duplicate_groups,
)


@pytest.fixture
def make_expense(period):
    def _make(record_id, amount, *, description="", display_name="",
              category=ExpenseCategory.TEAM_LEADER, project="CODCOM",
              source=SourceTag.AUTOMATIC, category_label="", sales=()):
        return DerivedExpense(
            record_id=record_id,
            natural_key=None,
            project=project,
            category=category,
            amount=Decimal(amount),
            period=period,
            description=description,
            source=source,
            display_name=display_name,
            associated_sale_ids=frozenset(sales),
            category_label=category_label,
        )

    return _make


class TestIdentity:
    def test_display_name_from_description(self):
        assert display_name_from_description("Ana Ionescu - Octombrie 2025") == "Ana Ionescu"

    def test_leader_prefixes_stripped(self, make_expense):
        old = make_expense("a", "1", description="TM Setters: George Coapsi (3 vanzari)")
        new = make_expense("b", "1", description="Teamleader Setter: George Coapsi (4 vanzari)")
        assert expense_identity(old) == expense_identity(new) == "george coapsi"


class TestFindDuplicateGroups:
    def test_keeps_largest(self, make_expense):
        groups = find_duplicate_groups([
            make_expense("a", "100", display_name="George Coapsi", sales={"s1"}),
            make_expense("b", "250", display_name="George Coapsi", sales={"s2"}),
            make_expense("c", "75", display_name="George Coapsi", project="Artok Academy"),
        ])
        (group,) = groups
        assert group.keep.record_id == "b"
        assert [e.record_id for e in group.remove] == ["a"]
        assert group.total_amount == Decimal("350")
        assert group.sale_ids == {"s1", "s2"}

    def test_manual_never_grouped(self, make_expense):
        groups = find_duplicate_groups([
            make_expense("a", "100", display_name="George Coapsi"),
            make_expense("b", "250", display_name="George Coapsi", source=SourceTag.MANUAL),
        ])
        assert groups == []


class TestMaintenanceService:
    def _seed(self, store, make_expense):
        store.add_expense(make_expense(
            "blank", "10", description="Mihai Pop - Octombrie 2025",
            category=ExpenseCategory.REPRESENTATIVES,
        ))
        store.add_expense(make_expense(
            "legacy", "20", display_name="Ana Ionescu",
            category=ExpenseCategory.REPRESENTATIVES, category_label="Reprezentanti",
        ))
        store.add_expense(make_expense("dup-1", "100", display_name="George Coapsi", sales={"s1"}))
        store.add_expense(make_expense("dup-2", "50", display_name="George Coapsi", sales={"s2"}))

    def test_run_all(self, store, make_expense):
        self._seed(store, make_expense)
        report = asyncio.run(MaintenanceService(store).run_all())

        assert report == MaintenanceReport(
            dry_run=False,
            display_names_backfilled=1,
            categories_normalized=1,
            duplicate_groups=1,
            duplicates_deleted=1,
        )
        assert report.total_changes == 3
        assert store.expenses["blank"].display_name == "Mihai Pop"
        assert store.expenses["legacy"].category_label == "Reprezentanți"
        assert "dup-2" not in store.expenses
        kept = store.expenses["dup-1"]
        assert kept.amount == Decimal("150")
        assert kept.associated_sale_ids == {"s1", "s2"}

    def test_dry_run_writes_nothing(self, store, make_expense):
        self._seed(store, make_expense)
        report = asyncio.run(MaintenanceService(store, dry_run=True).run_all())

        assert report.dry_run
        assert report.total_changes == 3
        assert store.write_log == []
        assert "dup-2" in store.expenses

    def test_second_run_is_a_no_op(self, store, make_expense):
        self._seed(store, make_expense)
        asyncio.run(MaintenanceService(store).run_all())
        report = asyncio.run(MaintenanceService(store).run_all())
        assert report.total_changes == 0
