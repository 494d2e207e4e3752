from datetime import date

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.orm import Session

from gateway import (
    BackendGateway,
    BackendQueryError,
    BackendUnavailable,
    RpcUnavailable,
)
from models import SummaryTier, dashboard_summary, transaction_details
from schemas import DateRange, FinanceFilters
from services import FinanceService

JANUARY = DateRange(date_from=date(2025, 1, 1), date_to=date(2025, 1, 31))


def _engine(*tables):
    engine = create_engine("sqlite:///:memory:")
    for table in tables:
        table.create(engine)
    return engine


def _rows(table, *values: dict) -> list[dict]:
    # executemany needs the same keys in every parameter set
    return [{c.name: v.get(c.name) for c in table.columns} for v in values]


def _seed_transactions(session: Session) -> None:
    session.execute(
        insert(transaction_details),
        _rows(
            transaction_details,
            {
                "operation_id": 1,
                "operation_date_msk": "2024-12-31",
                "operation_type_name": "Продажа",
                "accruals_for_sale": 999,
                "amount": 999,
                "item_sku": 7,
            },
            {
                "operation_id": 2,
                "operation_date_msk": "2025-01-10",
                "operation_type_name": "Доставка покупателю",
                "posting_number": "0001-1",
                "accruals_for_sale": 1000,
                "sale_commission": -150,
                "delivery_charge": -80,
                "amount": 770,
                "item_sku": 7,
            },
            {
                "operation_id": 3,
                "operation_date_msk": "2025-01-20",
                "operation_type_name": "Продвижение товара",
                "amount": -120,
                "item_sku": 8,
            },
            {
                "operation_id": 4,
                "operation_date_msk": "2025-01-31",
                "operation_type_name": "Услуги хранения",
                "amount": -30,
                "item_sku": 7,
            },
        ),
    )
    session.commit()


def test_fetch_summary_rows_filters_by_date_field() -> None:
    engine = _engine(dashboard_summary)

    with Session(engine) as session:
        session.execute(
            insert(dashboard_summary),
            _rows(
                dashboard_summary,
                {"date_field": "2025-01-01", "total_revenue": 100, "total_payout": 80},
                {"date_field": "2025-01-31", "total_revenue": 50, "total_payout": 40},
                {"date_field": "2025-02-01", "total_revenue": 999, "total_payout": 1},
            ),
        )
        session.commit()

        rows = BackendGateway(session, "Europe/Moscow").fetch_summary_rows(JANUARY)

        assert sorted(r.total_revenue for r in rows) == [50, 100]
        assert all(r.total_commission == 0 for r in rows)


def test_missing_view_is_recoverable_and_session_stays_usable() -> None:
    engine = _engine(transaction_details)

    with Session(engine) as session:
        _seed_transactions(session)
        gateway = BackendGateway(session, "Europe/Moscow")

        with pytest.raises(BackendUnavailable):
            gateway.fetch_summary_rows(JANUARY)
        with pytest.raises(RpcUnavailable):
            gateway.call_finance_summary(JANUARY, FinanceFilters())

        records = gateway.fetch_transactions(JANUARY, FinanceFilters())
        assert len(records) == 3


def test_fetch_transactions_applies_sku_order_and_limit() -> None:
    engine = _engine(transaction_details)

    with Session(engine) as session:
        _seed_transactions(session)
        gateway = BackendGateway(session, "Europe/Moscow")

        records = gateway.fetch_transactions(
            JANUARY, FinanceFilters(sku=7), limit=1, newest_first=True
        )

        assert len(records) == 1
        assert records[0].operation_date_msk == "2025-01-31"
        assert records[0].item_sku == 7


def test_missing_transaction_source_is_fatal() -> None:
    engine = _engine()

    with Session(engine) as session:
        with pytest.raises(BackendQueryError):
            BackendGateway(session, "Europe/Moscow").fetch_transactions(
                JANUARY, FinanceFilters()
            )


def test_summary_falls_back_to_transactions_on_sqlite() -> None:
    engine = _engine(transaction_details)

    with Session(engine) as session:
        _seed_transactions(session)
        result = FinanceService(
            BackendGateway(session, "Europe/Moscow"), delivery_share=0.3
        ).summary(JANUARY)

    assert result.tier == SummaryTier.transactions
    # one category per record: the accrual wins over its commission and delivery
    assert result.summary.sales == 1000
    assert result.summary.commissions == 0
    assert result.summary.delivery == 0
    assert result.summary.ads == 120
    assert result.summary.services == 30
    assert result.summary.total_expenses == 150
    assert result.summary.net_profit == 850


def test_summary_prefers_aggregate_view_when_present() -> None:
    engine = _engine(dashboard_summary, transaction_details)

    with Session(engine) as session:
        _seed_transactions(session)
        session.execute(
            insert(dashboard_summary),
            [
                {
                    "date_field": "2025-01-15",
                    "total_revenue": 2000,
                    "total_commission": 300,
                    "total_service_costs": 100,
                    "total_payout": 1500,
                }
            ],
        )
        session.commit()
        result = FinanceService(
            BackendGateway(session, "Europe/Moscow"), delivery_share=0.3
        ).summary(JANUARY)

    assert result.tier == SummaryTier.aggregate_view
    assert result.summary.sales == 2000
    assert result.summary.net_profit == 1500
