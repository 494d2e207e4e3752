"""Single-record classification into one of the six finance categories."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from models import CATEGORY_ORDER, Category
from schemas import RawRecord


@dataclass(frozen=True)
class KeywordRule:
    keywords: tuple[str, ...]
    # categories whose keywords veto this rule when they also appear
    excluded_by: tuple[Category, ...] = ()


@dataclass(frozen=True)
class CategoryTable:
    labels: Mapping[Category, str]
    colors: Mapping[Category, str]
    rules: Mapping[Category, KeywordRule]
    order: tuple[Category, ...] = field(default=CATEGORY_ORDER)

    def label(self, category: Category) -> str:
        return self.labels.get(category, category.value)

    def color(self, category: Category) -> str:
        return self.colors.get(category, "#9ca3af")

    def rank(self, category: Category) -> int:
        return self.order.index(category)

    def matches(self, category: Category, text: str) -> bool:
        rule = self.rules.get(category)
        if rule is None:
            return False
        return any(keyword in text for keyword in rule.keywords)


DEFAULT_CATEGORY_TABLE = CategoryTable(
    labels=MappingProxyType(
        {
            Category.sales: "Продажи",
            Category.commissions: "Комиссии",
            Category.delivery: "Доставка",
            Category.returns: "Возвраты",
            Category.ads: "Реклама",
            Category.services: "Услуги",
        }
    ),
    colors=MappingProxyType(
        {
            Category.sales: "#10b981",
            Category.commissions: "#ef4444",
            Category.delivery: "#f59e0b",
            Category.returns: "#8b5cf6",
            Category.ads: "#06b6d4",
            Category.services: "#84cc16",
        }
    ),
    rules=MappingProxyType(
        {
            Category.sales: KeywordRule(("продаж", "sale", "оплат", "payment")),
            Category.commissions: KeywordRule(("комисс", "commission", "сбор", "fee")),
            Category.delivery: KeywordRule(
                ("доставк", "delivery", "логистик", "shipping")
            ),
            Category.returns: KeywordRule(("возврат", "return", "отмен", "cancel")),
            Category.ads: KeywordRule(("реклам", "ads", "продвиж", "promotion")),
            Category.services: KeywordRule(
                ("услуг", "service", "обслуж", "processing"),
                excluded_by=(Category.delivery,),
            ),
        }
    ),
)


@dataclass(frozen=True)
class Classification:
    category: Category
    amount: float


class Categorizer:
    def __init__(self, table: CategoryTable = DEFAULT_CATEGORY_TABLE) -> None:
        self.table = table

    def classify(self, record: RawRecord) -> Classification:
        """
        Classify a record into exactly one category.

        Structured charge fields win over the operation text; the text is
        checked category by category in table order; anything left with a
        positive amount lands in services. A record that matches nothing and
        has no positive amount is returned as services with amount 0.
        """
        structured = self._from_structured_fields(record)
        if structured is not None:
            return structured

        text = (record.operation_type_name or "").lower()
        category = self.match_text(text)
        if category is not None:
            return Classification(category, abs(record.amount))

        if record.amount > 0:
            return Classification(Category.services, abs(record.amount))
        return Classification(Category.services, 0.0)

    def match_text(self, text: str) -> Optional[Category]:
        for category in self.table.order:
            if not self.table.matches(category, text):
                continue
            rule = self.table.rules[category]
            if any(self.table.matches(veto, text) for veto in rule.excluded_by):
                continue
            return category
        return None

    @staticmethod
    def _from_structured_fields(record: RawRecord) -> Optional[Classification]:
        if record.accruals_for_sale > 0:
            return Classification(Category.sales, record.accruals_for_sale)
        if abs(record.sale_commission) > 0:
            return Classification(Category.commissions, abs(record.sale_commission))
        if abs(record.delivery_charge) > 0:
            return Classification(Category.delivery, abs(record.delivery_charge))
        if abs(record.return_delivery_charge) > 0:
            return Classification(Category.returns, abs(record.return_delivery_charge))
        return None
