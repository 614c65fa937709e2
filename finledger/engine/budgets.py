"""
Category Budgets

Monthly spending per expense category, measured against the category's
monthly_budget.

The month is always supplied by the caller as any date inside it; only
its year and month matter. Spending counts EXPENSE transactions only,
so income or transfers that happen to carry the category id are ignored.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from finledger.models.records import (
    BudgetSummary,
    Category,
    CategoryBudget,
    Transaction,
    TransactionType,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def month_start(month: date) -> date:
    return month.replace(day=1)


def _in_month(day: date, month: date) -> bool:
    return day.year == month.year and day.month == month.month


def category_spending(
    category_id: str,
    transactions: Iterable[Transaction],
    month: date,
) -> Decimal:
    """Total EXPENSE amount booked to the category within month."""
    return sum(
        (
            t.amount for t in transactions
            if t.type == TransactionType.EXPENSE
            and t.category_id == category_id
            and _in_month(t.date, month)
        ),
        ZERO,
    )


def budget_progress(budget: Optional[Decimal], spent: Decimal) -> Optional[Decimal]:
    """
    Percent of the budget spent, capped at 100.

    None when there is no budget (unset or zero).
    """
    if not budget:
        return None
    return max(ZERO, min(spent / budget * 100, HUNDRED))


def is_over_budget(budget: Optional[Decimal], spent: Decimal) -> bool:
    """Strictly more than budgeted; spending exactly the budget is not over."""
    return bool(budget) and spent > budget


def has_budget(category: Category) -> bool:
    return category.type == TransactionType.EXPENSE and bool(category.monthly_budget)


def category_budget(
    category: Category,
    transactions: Iterable[Transaction],
    month: date,
) -> Optional[CategoryBudget]:
    """The category's budget line for month, or None if it has no budget."""
    if not has_budget(category):
        return None
    spent = category_spending(category.id, transactions, month)
    return CategoryBudget(
        category_id=category.id,
        month=month_start(month),
        budget=category.monthly_budget,
        spent=spent,
        progress=budget_progress(category.monthly_budget, spent),
        is_over_budget=is_over_budget(category.monthly_budget, spent),
    )


def budget_summary(
    categories: Iterable[Category],
    transactions: Iterable[Transaction],
    month: date,
) -> BudgetSummary:
    """
    Budget lines for every EXPENSE category with a positive budget.

    Categories without a budget contribute to neither total, so
    total_spent only counts spending the user has budgeted for.
    """
    transactions = list(transactions)
    lines = [
        line for line in (category_budget(c, transactions, month) for c in categories)
        if line is not None
    ]
    return BudgetSummary(
        month=month_start(month),
        categories=lines,
        total_budgeted=sum((line.budget for line in lines), ZERO),
        total_spent=sum((line.spent for line in lines), ZERO),
    )
