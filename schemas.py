from collections.abc import Mapping
from datetime import date
from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from config import get_settings
from models import CATEGORY_ORDER, Category, DateType, SummaryTier
from normalize import local_day, to_number

# Backend numbers arrive as numerics, strings or nulls; all collapse to float.
Money = Annotated[float, BeforeValidator(to_number)]


class DateRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def _to_local_day(cls, value: object) -> Optional[date]:
        return local_day(value, get_settings().timezone)

    @model_validator(mode="after")
    def _check_bounds(self) -> "DateRange":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("Start date must be before end date")
        return self

    @property
    def is_complete(self) -> bool:
        return self.date_from is not None and self.date_to is not None


class FinanceFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    date_type: DateType = DateType.order_date
    sku: Optional[int] = None
    region: Optional[str] = Field(default=None, max_length=100)

    @field_validator("region", mode="before")
    @classmethod
    def _blank_region(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value


class RawRecord(BaseModel):
    """One row of the transaction-detail source. Every field is optional."""

    model_config = ConfigDict(extra="ignore")

    operation_date_msk: Optional[str] = None
    operation_type_name: Optional[str] = None
    posting_number: Optional[str] = None
    item_sku: Optional[int] = None
    amount: Money = 0.0
    accruals_for_sale: Money = 0.0
    sale_commission: Money = 0.0
    delivery_charge: Money = 0.0
    return_delivery_charge: Money = 0.0

    @field_validator("operation_date_msk", mode="before")
    @classmethod
    def _day_string(cls, value: object) -> Optional[str]:
        try:
            day = local_day(value, get_settings().timezone)
        except ValueError:
            return None
        return day.isoformat() if day else None

    @field_validator("posting_number", "operation_type_name", mode="before")
    @classmethod
    def _text(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        return str(value)

    @field_validator("item_sku", mode="before")
    @classmethod
    def _sku(cls, value: object) -> Optional[int]:
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


def normalize_record(row: Mapping[str, object]) -> RawRecord:
    return RawRecord.model_validate(dict(row))


class AggregateRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total_revenue: Money = 0.0
    total_commission: Money = 0.0
    total_service_costs: Money = 0.0
    total_payout: Money = 0.0


class RpcSummaryRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total_sales: Money = 0.0
    total_commissions: Money = 0.0
    total_delivery: Money = 0.0
    total_returns: Money = 0.0
    total_ads: Money = 0.0
    total_services: Money = 0.0
    total_income: Money = 0.0
    total_expenses: Money = 0.0
    net_profit: Money = 0.0


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FinanceSummary(_CamelModel):
    sales: float = 0.0
    commissions: float = 0.0
    delivery: float = 0.0
    returns: float = 0.0
    ads: float = 0.0
    services: float = 0.0
    total_income: float = 0.0
    total_expenses: float = 0.0
    net_profit: float = 0.0

    def bucket(self, category: Category) -> float:
        return getattr(self, category.value)

    def buckets(self) -> dict[Category, float]:
        return {c: self.bucket(c) for c in CATEGORY_ORDER}

    @property
    def is_empty(self) -> bool:
        return all(value == 0 for value in self.buckets().values())


class CategoryAmount(_CamelModel):
    category: str
    key: Category
    amount: float = Field(..., ge=0)
    percentage: float = Field(..., ge=0, le=100)
    color: str


class FinanceResult(_CamelModel):
    summary: FinanceSummary
    categories: list[CategoryAmount] = Field(default_factory=list)
    tier: SummaryTier
    estimated: bool = False
    is_empty: bool = False
    profit_margin: float = 0.0


class BreakdownRow(BaseModel):
    date_msk: str
    posting_number: str
    sales: float = 0.0
    commissions: float = 0.0
    delivery: float = 0.0
    returns: float = 0.0
    ads: float = 0.0
    services: float = 0.0
    net_profit: float = 0.0
    operation_type: Optional[str] = None
