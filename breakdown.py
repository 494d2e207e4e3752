from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from categorizer import DEFAULT_CATEGORY_TABLE, CategoryTable
from config import get_settings
from models import Category
from normalize import today_in
from schemas import BreakdownRow, RawRecord

DEFAULT_BREAKDOWN_LIMIT = 100


class BreakdownProjector:
    """
    Projects raw records into detail-table rows.

    Contributions are read straight off the structured fields instead of
    going through the categorizer, so a row can carry several non-zero
    columns at once. Ads are not present in the transaction source.
    """

    def __init__(
        self,
        table: CategoryTable = DEFAULT_CATEGORY_TABLE,
        timezone: Optional[str] = None,
    ) -> None:
        self.table = table
        self.timezone = timezone or get_settings().timezone

    def project(
        self,
        records: Iterable[RawRecord],
        limit: int = DEFAULT_BREAKDOWN_LIMIT,
        *,
        today: Optional[date] = None,
    ) -> list[BreakdownRow]:
        fallback_day = (today or today_in(self.timezone)).isoformat()
        ordered = sorted(
            records, key=lambda r: r.operation_date_msk or "", reverse=True
        )
        return [self._row(record, fallback_day) for record in ordered[: max(limit, 0)]]

    def _row(self, record: RawRecord, fallback_day: str) -> BreakdownRow:
        delivery = abs(record.delivery_charge)
        text = (record.operation_type_name or "").lower()
        delivery_tagged = delivery > 0 or self.table.matches(Category.delivery, text)
        return BreakdownRow(
            date_msk=record.operation_date_msk or fallback_day,
            posting_number=record.posting_number or "N/A",
            sales=record.accruals_for_sale,
            commissions=abs(record.sale_commission),
            delivery=delivery,
            returns=abs(record.return_delivery_charge),
            ads=0.0,
            services=0.0 if delivery_tagged else abs(record.amount),
            net_profit=record.amount,
            operation_type=record.operation_type_name,
        )
