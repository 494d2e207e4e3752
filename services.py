from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from aggregator import Aggregator, summary_from_buckets
from breakdown import BreakdownProjector
from categorizer import DEFAULT_CATEGORY_TABLE, Categorizer, CategoryTable
from config import get_settings
from gateway import BackendGateway, RecoverableBackendError
from models import TIER_ORDER, Category, SummaryTier
from schemas import (
    BreakdownRow,
    DateRange,
    FinanceFilters,
    FinanceResult,
    FinanceSummary,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TierSuccess:
    tier: SummaryTier
    result: FinanceResult


@dataclass(frozen=True)
class TierRecoverable:
    tier: SummaryTier
    error: RecoverableBackendError


Attempt = Union[TierSuccess, TierRecoverable]
TierHandler = Callable[[DateRange, FinanceFilters], FinanceResult]


def profit_margin(net_profit: float, total_income: float) -> float:
    return (net_profit / total_income * 100) if total_income > 0 else 0.0


class FinanceService:
    def __init__(
        self,
        gateway: BackendGateway,
        *,
        table: CategoryTable = DEFAULT_CATEGORY_TABLE,
        delivery_share: Optional[float] = None,
    ) -> None:
        self.gateway = gateway
        self.categorizer = Categorizer(table)
        self.aggregator = Aggregator(table)
        if delivery_share is None:
            delivery_share = get_settings().delivery_share
        self.delivery_share = delivery_share

    def summary(
        self, date_range: DateRange, filters: Optional[FinanceFilters] = None
    ) -> Optional[FinanceResult]:
        """
        Income/expense summary for the range, from the first source that
        answers.

        Returns ``None`` without touching the backend when either bound of the
        range is missing. Sources are tried in ``TIER_ORDER``; a recoverable
        failure moves on to the next one, and a failure of the transaction
        source propagates.
        """
        if not date_range.is_complete:
            logger.info("finance_summary: skipped reason=incomplete_range")
            return None
        filters = filters or FinanceFilters()

        handlers: dict[SummaryTier, TierHandler] = {
            SummaryTier.aggregate_view: self._from_aggregate_view,
            SummaryTier.rpc: self._from_rpc,
            SummaryTier.transactions: self._from_transactions,
        }
        for tier in TIER_ORDER:
            attempt = self._attempt(tier, handlers[tier], date_range, filters)
            if isinstance(attempt, TierSuccess):
                logger.info(
                    f"finance_summary: tier={tier.value} "
                    f"start={date_range.date_from} end={date_range.date_to} "
                    f"empty={attempt.result.is_empty}"
                )
                return attempt.result
            logger.warning(
                f"finance_tier_failed: tier={tier.value} error={attempt.error}"
            )
        raise RuntimeError("No finance source produced a result")

    @staticmethod
    def _attempt(
        tier: SummaryTier,
        handler: TierHandler,
        date_range: DateRange,
        filters: FinanceFilters,
    ) -> Attempt:
        try:
            return TierSuccess(tier, handler(date_range, filters))
        except RecoverableBackendError as exc:
            return TierRecoverable(tier, exc)

    def _result(
        self, tier: SummaryTier, summary: FinanceSummary, *, estimated: bool = False
    ) -> FinanceResult:
        return FinanceResult(
            summary=summary,
            categories=self.aggregator.build_categories(summary),
            tier=tier,
            estimated=estimated,
            is_empty=summary.is_empty,
            profit_margin=profit_margin(summary.net_profit, summary.total_income),
        )

    def _from_aggregate_view(
        self, date_range: DateRange, filters: FinanceFilters
    ) -> FinanceResult:
        # The view is keyed by date only; sku/region filters do not apply here.
        rows = self.gateway.fetch_summary_rows(date_range)
        revenue = sum(row.total_revenue for row in rows)
        commission = sum(row.total_commission for row in rows)
        service_costs = sum(row.total_service_costs for row in rows)
        payout = sum(row.total_payout for row in rows)

        # The view has no delivery/services split; it is approximated.
        summary = summary_from_buckets(
            {
                Category.sales: revenue,
                Category.commissions: commission,
                Category.delivery: service_costs * self.delivery_share,
                Category.services: service_costs * (1 - self.delivery_share),
            },
            net_profit=payout,
        )
        return self._result(SummaryTier.aggregate_view, summary, estimated=True)

    def _from_rpc(
        self, date_range: DateRange, filters: FinanceFilters
    ) -> FinanceResult:
        row = self.gateway.call_finance_summary(date_range, filters)
        summary = summary_from_buckets(
            {
                Category.sales: row.total_sales,
                Category.commissions: row.total_commissions,
                Category.delivery: row.total_delivery,
                Category.returns: row.total_returns,
                Category.ads: row.total_ads,
                Category.services: row.total_services,
            },
            net_profit=row.net_profit,
        )
        return self._result(SummaryTier.rpc, summary)

    def _from_transactions(
        self, date_range: DateRange, filters: FinanceFilters
    ) -> FinanceResult:
        records = self.gateway.fetch_transactions(date_range, filters)
        summary, categories = self.aggregator.aggregate(
            self.categorizer.classify(record) for record in records
        )
        return FinanceResult(
            summary=summary,
            categories=categories,
            tier=SummaryTier.transactions,
            is_empty=summary.is_empty,
            profit_margin=profit_margin(summary.net_profit, summary.total_income),
        )


class BreakdownService:
    def __init__(
        self,
        gateway: BackendGateway,
        *,
        projector: Optional[BreakdownProjector] = None,
        limit: Optional[int] = None,
    ) -> None:
        self.gateway = gateway
        self.projector = projector or BreakdownProjector()
        self.limit = get_settings().breakdown_limit if limit is None else limit

    def rows(
        self, date_range: DateRange, filters: Optional[FinanceFilters] = None
    ) -> Optional[list[BreakdownRow]]:
        """Most recent rows for the range; no pagination beyond ``limit``."""
        if not date_range.is_complete:
            return None
        records = self.gateway.fetch_transactions(
            date_range,
            filters or FinanceFilters(),
            limit=self.limit,
            newest_first=True,
        )
        return self.projector.project(records, self.limit)
