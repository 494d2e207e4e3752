from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from models import FINANCE_SUMMARY_PROCEDURE, dashboard_summary, transaction_details
from normalize import day_string
from schemas import (
    AggregateRow,
    DateRange,
    FinanceFilters,
    RawRecord,
    RpcSummaryRow,
    normalize_record,
)

logger = logging.getLogger(__name__)


class FinanceBackendError(RuntimeError):
    pass


class RecoverableBackendError(FinanceBackendError):
    """A source is missing or misconfigured; the next source may still work."""


class BackendUnavailable(RecoverableBackendError):
    pass


class RpcUnavailable(RecoverableBackendError):
    pass


class BackendQueryError(FinanceBackendError):
    pass


class BackendGateway:
    def __init__(self, session: Session, timezone: Optional[str] = None) -> None:
        self.session = session
        self.timezone = timezone or get_settings().timezone

    def _bounds(self, date_range: DateRange) -> tuple[str, str]:
        return (
            day_string(date_range.date_from, self.timezone),
            day_string(date_range.date_to, self.timezone),
        )

    def _reset(self) -> None:
        # A failed statement leaves the transaction aborted on PostgreSQL.
        self.session.rollback()

    def fetch_summary_rows(self, date_range: DateRange) -> list[AggregateRow]:
        start, end = self._bounds(date_range)
        stmt = select(
            dashboard_summary.c.total_revenue,
            dashboard_summary.c.total_commission,
            dashboard_summary.c.total_service_costs,
            dashboard_summary.c.total_payout,
        ).where(dashboard_summary.c.date_field.between(start, end))
        try:
            rows = self.session.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            self._reset()
            raise BackendUnavailable(
                f"{dashboard_summary.name} is not available"
            ) from exc
        return [AggregateRow.model_validate(dict(row)) for row in rows]

    def call_finance_summary(
        self, date_range: DateRange, filters: FinanceFilters
    ) -> RpcSummaryRow:
        start, end = self._bounds(date_range)
        stmt = text(
            f"SELECT * FROM {FINANCE_SUMMARY_PROCEDURE}"
            "(:start_date, :end_date, :date_type, :sku_filter, :region_filter)"
        )
        params = {
            "start_date": start,
            "end_date": end,
            "date_type": filters.date_type.value,
            "sku_filter": filters.sku,
            "region_filter": filters.region,
        }
        try:
            row = self.session.execute(stmt, params).mappings().first()
        except SQLAlchemyError as exc:
            self._reset()
            raise RpcUnavailable(
                f"{FINANCE_SUMMARY_PROCEDURE} is not available"
            ) from exc
        if row is None:
            return RpcSummaryRow()
        return RpcSummaryRow.model_validate(dict(row))

    def fetch_transactions(
        self,
        date_range: DateRange,
        filters: FinanceFilters,
        *,
        limit: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[RawRecord]:
        start, end = self._bounds(date_range)
        stmt = select(transaction_details).where(
            transaction_details.c.operation_date_msk.between(start, end)
        )
        if filters.sku is not None:
            stmt = stmt.where(transaction_details.c.item_sku == filters.sku)
        if newest_first:
            stmt = stmt.order_by(transaction_details.c.operation_date_msk.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            rows = self.session.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            self._reset()
            logger.error(
                f"finance_transactions_failed: start={start} end={end} error={exc}"
            )
            raise BackendQueryError(
                f"Failed to read {transaction_details.name}"
            ) from exc
        return [normalize_record(row) for row in rows]
