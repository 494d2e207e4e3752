import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, insert
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import main
from main import app, clear_finance_cache, get_db
from models import SummaryTier, transaction_details
from schemas import DateRange, FinanceFilters, FinanceResult, FinanceSummary

JANUARY = {"period": "custom", "start": "2025-01-01", "end": "2025-01-31"}


def _make_client(*tables) -> TestClient:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    for table in tables:
        table.create(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    with TestingSession() as session:
        if transaction_details in tables:
            session.execute(
                insert(transaction_details),
                [
                    {
                        "operation_date_msk": "2025-01-10",
                        "operation_type_name": "Продажа",
                        "posting_number": "0001-1",
                        "accruals_for_sale": 1000,
                        "sale_commission": None,
                        "amount": 1000,
                    },
                    {
                        "operation_date_msk": "2025-01-12",
                        "operation_type_name": "Комиссия за продажу",
                        "posting_number": "0001-1",
                        "accruals_for_sale": None,
                        "sale_commission": -150,
                        "amount": -150,
                    },
                ],
            )
            session.commit()

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture(autouse=True)
def _reset_app():
    clear_finance_cache()
    yield
    app.dependency_overrides.clear()
    clear_finance_cache()


def test_summary_without_end_date_is_not_runnable() -> None:
    client = _make_client(transaction_details)
    response = client.get(
        "/api/finance/summary", params={"period": "custom", "start": "2025-01-01"}
    )
    assert response.status_code == 204


def test_summary_uses_camel_case_keys() -> None:
    client = _make_client(transaction_details)
    response = client.get("/api/finance/summary", params=JANUARY)
    assert response.status_code == 200

    body = response.json()
    assert body["tier"] == "transactions"
    assert body["isEmpty"] is False
    assert body["estimated"] is False
    assert body["summary"]["totalIncome"] == 1000
    assert body["summary"]["totalExpenses"] == 150
    assert body["summary"]["netProfit"] == 850
    assert body["profitMargin"] == 85
    assert [c["key"] for c in body["categories"]] == ["sales", "commissions"]


def test_summary_rejects_reversed_range() -> None:
    client = _make_client(transaction_details)
    response = client.get(
        "/api/finance/summary",
        params={"period": "custom", "start": "2025-02-01", "end": "2025-01-01"},
    )
    assert response.status_code == 400


def test_summary_reports_unavailable_when_no_source_answers() -> None:
    client = _make_client()
    response = client.get("/api/finance/summary", params=JANUARY)
    assert response.status_code == 503
    assert response.json()["detail"] == "Finance data is temporarily unavailable"


def test_breakdown_lists_newest_rows_first() -> None:
    client = _make_client(transaction_details)
    response = client.get("/api/finance/breakdown", params=JANUARY)
    assert response.status_code == 200

    rows = response.json()
    assert [r["date_msk"] for r in rows] == ["2025-01-12", "2025-01-10"]
    assert rows[0]["commissions"] == 150
    assert rows[0]["services"] == 150
    assert rows[1]["sales"] == 1000


def test_breakdown_csv_export() -> None:
    client = _make_client(transaction_details)
    response = client.get("/api/finance/breakdown.csv", params=JANUARY)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("Date,Posting")
    assert len(lines) == 3


def test_summary_rejects_overlong_region() -> None:
    client = _make_client(transaction_details)
    response = client.get(
        "/api/finance/summary", params={**JANUARY, "region": "x" * 101}
    )
    assert response.status_code == 400


def test_breakdown_rejects_non_numeric_sku() -> None:
    client = _make_client(transaction_details)
    response = client.get("/api/finance/breakdown", params={**JANUARY, "sku": "abc"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid sku: abc"


def test_cache_set_sweeps_expired_entries(monkeypatch) -> None:
    monkeypatch.setattr(main.settings, "cache_ttl_secs", -1)
    january = DateRange(date_from="2025-01-01", date_to="2025-01-31")
    payload = FinanceResult(summary=FinanceSummary(), tier=SummaryTier.transactions)

    main._cache_set((january, FinanceFilters(region="a")), payload)
    main._cache_set((january, FinanceFilters(region="b")), payload)

    assert list(main._summary_cache) == [(january, FinanceFilters(region="b"))]
