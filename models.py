"""Enums and table descriptions of the backend finance sources.

The core only reads these sources. In production ``dashboard_summary`` and
``vw_transaction_details`` are views owned by the data pipeline; they are
declared here as plain ``Table`` objects so queries can be built against them
and so tests can materialize them in SQLite.
"""

from enum import Enum

from sqlalchemy import BigInteger, Column, Numeric, String, Table, Text

from database import Base


class Category(str, Enum):
    sales = "sales"
    commissions = "commissions"
    delivery = "delivery"
    returns = "returns"
    ads = "ads"
    services = "services"


# Display order; also the tie-break order for equal amounts.
CATEGORY_ORDER: tuple[Category, ...] = tuple(Category)

EXPENSE_CATEGORIES: tuple[Category, ...] = tuple(
    c for c in CATEGORY_ORDER if c != Category.sales
)


class DateType(str, Enum):
    ship_date = "ship_date"
    delivery_date = "delivery_date"
    order_date = "order_date"


class SummaryTier(str, Enum):
    aggregate_view = "aggregate_view"
    rpc = "rpc"
    transactions = "transactions"


TIER_ORDER: tuple[SummaryTier, ...] = tuple(SummaryTier)


def _money(name: str) -> Column:
    return Column(name, Numeric(14, 2, asdecimal=False))


dashboard_summary = Table(
    "dashboard_summary",
    Base.metadata,
    Column("date_field", String(10), nullable=False, index=True),
    _money("total_revenue"),
    _money("total_commission"),
    _money("total_service_costs"),
    _money("total_payout"),
)


transaction_details = Table(
    "vw_transaction_details",
    Base.metadata,
    Column("operation_id", BigInteger),
    Column("operation_date_msk", String(10), index=True),
    Column("operation_type_name", Text),
    Column("posting_number", String(64)),
    Column("item_sku", BigInteger, index=True),
    _money("amount"),
    _money("accruals_for_sale"),
    _money("sale_commission"),
    _money("delivery_charge"),
    _money("return_delivery_charge"),
)

FINANCE_SUMMARY_PROCEDURE = "get_finance_summary"
