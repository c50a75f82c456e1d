"""
Budget reconciliation tests
"""
from datetime import datetime

import pytest

from sitepulse.budget.reconciler import (
    default_budget,
    expense_totals_by_category,
    needs_legacy_repair,
    primary_allocation_target,
    reconcile_budget,
)
from sitepulse.budget.schemas import BudgetCategory, BudgetLog, ProjectBudget, SpendTotals

EARLIER = datetime(2025, 1, 1, 8, 0)
NOW = datetime(2025, 3, 1, 12, 0)
LATER = datetime(2025, 3, 2, 12, 0)


def _category(id, allocated, spent=0, primary=True, name=None):
    return BudgetCategory(
        id=id,
        name=name or id.title(),
        allocated_amount=allocated,
        spent_amount=spent,
        last_updated=EARLIER,
        is_primary=primary,
    )


def _budget(categories, total_budget=250000, total_spent=None):
    if total_spent is None:
        total_spent = sum(c.spent_amount for c in categories)
    return ProjectBudget(
        total_budget=total_budget,
        total_spent=total_spent,
        categories=categories,
        contingency_percentage=10,
        last_updated=EARLIER,
    )


def _log(category, amount, type="expense"):
    return BudgetLog(id=f"{category}-{amount}", category=category, amount=amount, type=type)


# ===================== DEFAULTS =====================


def test_default_budget_when_none_exists():
    budget = reconcile_budget(None, SpendTotals(materials_spent=100, equipment_spent=500), now=NOW)

    assert budget.total_budget == 250000
    assert budget.contingency_percentage == 10
    assert [c.id for c in budget.categories] == ["equipment", "materials"]
    assert all(c.is_primary for c in budget.categories)
    assert all(c.allocated_amount == 50000 for c in budget.categories)
    assert budget.category("materials").spent_amount == 100
    assert budget.category("equipment").spent_amount == 500
    assert budget.total_spent == 600


def test_default_budget_is_stable_under_reconcile():
    budget = default_budget(SpendTotals(), total_budget=400000, now=NOW)
    assert reconcile_budget(budget, SpendTotals(), now=LATER) is budget


# ===================== PRIMARY SPEND =====================


def test_primary_spend_is_overwritten():
    budget = _budget([_category("equipment", 60000, spent=10), _category("materials", 70000, spent=20)])

    result = reconcile_budget(budget, SpendTotals(materials_spent=100, equipment_spent=500), now=NOW)

    assert result.category("equipment").spent_amount == 500
    assert result.category("materials").spent_amount == 100
    assert result.category("equipment").last_updated == NOW
    assert result.total_spent == 600
    assert result.last_updated == NOW


def test_total_spent_matches_category_sum():
    budget = _budget(
        [
            _category("equipment", 60000),
            _category("materials", 70000),
            _category("category-1", 5000, spent=1234.56, primary=False, name="Permits"),
        ],
        total_spent=999999,
    )

    result = reconcile_budget(budget, SpendTotals(materials_spent=0.1, equipment_spent=0.2), now=NOW)

    assert result.total_spent == sum(c.spent_amount for c in result.categories)


# ===================== LEGACY REPAIR =====================


def test_legacy_allocation_is_repaired():
    budget = _budget([_category("equipment", 50000), _category("materials", 150000)])

    result = reconcile_budget(budget, SpendTotals(), now=NOW)

    assert result.category("materials").allocated_amount == 50000
    assert result.category("materials").last_updated == NOW


def test_legacy_value_already_on_target_is_untouched():
    budget = _budget([_category("equipment", 50000), _category("materials", 50000)])

    result = reconcile_budget(budget, SpendTotals(), now=NOW)

    assert result is budget
    assert result.category("equipment").allocated_amount == 50000
    assert result.category("equipment").last_updated == EARLIER


def test_legacy_value_repaired_against_other_totals():
    budget = _budget([_category("equipment", 50000), _category("materials", 150000)], total_budget=1000000)

    result = reconcile_budget(budget, SpendTotals(), now=NOW)

    assert result.category("equipment").allocated_amount == 200000
    assert result.category("materials").allocated_amount == 200000


def test_allocation_above_total_is_repaired():
    budget = _budget([_category("equipment", 90000), _category("materials", 50000)], total_budget=80000)

    result = reconcile_budget(budget, SpendTotals(), now=NOW)

    assert result.category("equipment").allocated_amount == 16000


@pytest.mark.parametrize("total_budget", [100000, 250000, 1000000])
def test_user_chosen_allocation_is_preserved(total_budget):
    target = round(total_budget * 0.2)
    budget = _budget(
        [_category("equipment", target), _category("materials", 73500)],
        total_budget=total_budget,
    )

    result = reconcile_budget(budget, SpendTotals(), now=NOW)

    assert result.category("materials").allocated_amount == 73500


def test_non_primary_allocation_never_repaired():
    budget = _budget([
        _category("equipment", 50000),
        _category("materials", 50000),
        _category("category-1", 150000, spent=10, primary=False, name="Labor"),
    ])

    result = reconcile_budget(budget, SpendTotals(), now=NOW)

    assert result.category("category-1").allocated_amount == 150000


def test_needs_legacy_repair():
    assert needs_legacy_repair(150000, 250000)
    assert not needs_legacy_repair(50000, 250000)
    assert needs_legacy_repair(300000, 250000)
    assert not needs_legacy_repair(73500, 250000)


# ===================== IDEMPOTENCE =====================


def test_reconcile_twice_is_stable():
    budget = _budget([
        _category("equipment", 50000, spent=1),
        _category("materials", 150000, spent=2),
        _category("category-1", 10000, spent=0, primary=False, name="Permits"),
    ])
    spend = SpendTotals(materials_spent=100, equipment_spent=500)
    logs = [_log("permits", 250)]

    first = reconcile_budget(budget, spend, logs, now=NOW)
    second = reconcile_budget(first, spend, logs, now=LATER)

    assert second is first
    assert second.model_dump() == first.model_dump()


def test_untouched_categories_keep_timestamp():
    budget = _budget([
        _category("equipment", 50000, spent=500),
        _category("materials", 50000, spent=0),
    ])

    result = reconcile_budget(budget, SpendTotals(materials_spent=42, equipment_spent=500), now=NOW)

    assert result.category("equipment").last_updated == EARLIER
    assert result.category("materials").last_updated == NOW


# ===================== USER CATEGORIES & LOGS =====================


def test_user_category_spend_from_expense_logs():
    budget = _budget([
        _category("equipment", 50000),
        _category("materials", 50000),
        _category("category-1", 20000, spent=0, primary=False, name="Labor"),
    ])
    logs = [
        _log("LABOR", 1000),
        _log("labor", 500),
        _log("Labor", 700, type="income"),
        _log("Labor costs", 9999),
    ]

    result = reconcile_budget(budget, SpendTotals(), logs, now=NOW)

    assert result.category("category-1").spent_amount == 1500
    assert result.total_spent == 1500


def test_log_for_unknown_category_changes_nothing():
    budget = _budget([
        _category("equipment", 50000),
        _category("materials", 50000),
        _category("category-1", 20000, spent=300, primary=False, name="Labor"),
    ])

    result = reconcile_budget(budget, SpendTotals(), [_log("Catering", 800)], now=NOW)

    assert result is budget
    assert [c.spent_amount for c in result.categories] == [0, 0, 300]


def test_user_category_without_logs_keeps_manual_spend():
    budget = _budget([
        _category("equipment", 50000),
        _category("materials", 50000),
        _category("category-1", 20000, spent=4200, primary=False, name="Permits"),
    ])

    result = reconcile_budget(budget, SpendTotals(), [], now=NOW)

    assert result.category("category-1").spent_amount == 4200


def test_expense_totals_ignore_malformed_logs():
    logs = [
        {"category": "Labor", "amount": "abc", "type": "expense"},
        {"category": None, "amount": 10, "type": "expense"},
        {"category": "Labor", "amount": 25, "type": "expense"},
    ]
    assert expense_totals_by_category(logs) == {"labor": 25}


# ===================== STRUCTURE REPAIR =====================


def test_missing_primary_category_is_restored():
    budget = _budget([_category("equipment", 50000)])

    result = reconcile_budget(budget, SpendTotals(materials_spent=75), now=NOW)

    materials = result.category("materials")
    assert materials is not None
    assert materials.is_primary
    assert materials.spent_amount == 75
    assert materials.allocated_amount == 50000


def test_duplicate_category_ids_are_dropped():
    budget = _budget([
        _category("equipment", 50000),
        _category("materials", 50000),
        _category("category-1", 100, spent=10, primary=False, name="Permits"),
        _category("category-1", 999, spent=99, primary=False, name="Permits copy"),
    ])

    result = reconcile_budget(budget, SpendTotals(), now=NOW)

    assert [c.id for c in result.categories] == ["equipment", "materials", "category-1"]
    assert result.category("category-1").allocated_amount == 100
    assert result.total_spent == 10


def test_allocation_target_rounds_halves_up():
    assert primary_allocation_target(250000) == 50000
    assert primary_allocation_target(250002.5) == 50001
    assert primary_allocation_target(12.5) == 3
