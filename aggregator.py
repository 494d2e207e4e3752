from __future__ import annotations

from typing import Iterable, Mapping, Optional

from categorizer import DEFAULT_CATEGORY_TABLE, CategoryTable, Classification
from models import CATEGORY_ORDER, EXPENSE_CATEGORIES, Category
from schemas import CategoryAmount, FinanceSummary


def summary_from_buckets(
    buckets: Mapping[Category, float], *, net_profit: Optional[float] = None
) -> FinanceSummary:
    """
    Build a summary whose totals are derived from the six buckets.

    ``net_profit`` overrides the derived income minus expenses for sources
    that report their own payout figure.
    """
    sales = float(buckets.get(Category.sales, 0.0))
    expenses = {c: abs(float(buckets.get(c, 0.0))) for c in EXPENSE_CATEGORIES}
    total_expenses = sum(expenses.values())
    return FinanceSummary(
        sales=sales,
        commissions=expenses[Category.commissions],
        delivery=expenses[Category.delivery],
        returns=expenses[Category.returns],
        ads=expenses[Category.ads],
        services=expenses[Category.services],
        total_income=sales,
        total_expenses=total_expenses,
        net_profit=sales - total_expenses if net_profit is None else net_profit,
    )


class Aggregator:
    def __init__(self, table: CategoryTable = DEFAULT_CATEGORY_TABLE) -> None:
        self.table = table

    def aggregate(
        self, classified: Iterable[Classification]
    ) -> tuple[FinanceSummary, list[CategoryAmount]]:
        buckets = {c: 0.0 for c in CATEGORY_ORDER}
        for item in classified:
            if item.category == Category.sales:
                buckets[item.category] += item.amount
            else:
                buckets[item.category] += abs(item.amount)
        summary = summary_from_buckets(buckets)
        return summary, self.build_categories(summary)

    def build_categories(self, summary: FinanceSummary) -> list[CategoryAmount]:
        # Net sales at or below zero are left out even when sales rows exist:
        # a category is shown by its net contribution. Negative income does
        # not shrink the denominator, so shares stay within 0..100.
        total = max(summary.total_income, 0.0) + summary.total_expenses
        categories = []
        for category in self.table.order:
            amount = summary.bucket(category)
            if amount <= 0:
                continue
            categories.append(
                CategoryAmount(
                    category=self.table.label(category),
                    key=category,
                    amount=amount,
                    percentage=(amount / total * 100) if total > 0 else 0,
                    color=self.table.color(category),
                )
            )
        categories.sort(key=lambda c: (-c.amount, self.table.rank(c.key)))
        return categories
