import logging
import time
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from config import get_settings
from csv_utils import export_breakdown
from database import SessionLocal
from gateway import BackendGateway, BackendQueryError
from models import DateType
from normalize import today_in
from periods import resolve_period
from schemas import BreakdownRow, DateRange, FinanceFilters, FinanceResult
from services import BreakdownService, FinanceService

settings = get_settings()
logging.basicConfig(level=settings.log_level)


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()

app = FastAPI(title="Seller Finance", version=APP_VERSION)

_CacheKey = tuple[DateRange, FinanceFilters]
_summary_cache: dict[_CacheKey, tuple[float, FinanceResult]] = {}


def clear_finance_cache() -> None:
    _summary_cache.clear()


def _cache_get(key: _CacheKey) -> Optional[FinanceResult]:
    entry = _summary_cache.get(key)
    if not entry:
        return None
    ts, payload = entry
    if time.monotonic() - ts > settings.cache_ttl_secs:
        _summary_cache.pop(key, None)
        return None
    return payload


def _cache_set(key: _CacheKey, payload: FinanceResult) -> None:
    now = time.monotonic()
    expired = [
        k
        for k, (ts, _) in _summary_cache.items()
        if now - ts > settings.cache_ttl_secs
    ]
    for k in expired:
        _summary_cache.pop(k, None)
    _summary_cache[key] = (now, payload)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def range_from_request(request: Request) -> DateRange:
    try:
        return resolve_period(
            request.query_params.get("period"),
            request.query_params.get("start"),
            request.query_params.get("end"),
            today=today_in(settings.timezone),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def filters_from_request(request: Request) -> FinanceFilters:
    date_type = DateType.order_date
    date_type_param = request.query_params.get("date_type")
    if date_type_param:
        try:
            date_type = DateType(date_type_param)
        except ValueError:
            date_type = DateType.order_date
    sku = None
    sku_param = request.query_params.get("sku")
    if sku_param:
        try:
            sku = int(sku_param)
        except ValueError as exc:
            raise HTTPException(
                status_code=400, detail=f"Invalid sku: {sku_param}"
            ) from exc
    try:
        return FinanceFilters(
            date_type=date_type, sku=sku, region=request.query_params.get("region")
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _unavailable() -> HTTPException:
    logging.exception("Finance data could not be loaded")
    return HTTPException(
        status_code=503, detail="Finance data is temporarily unavailable"
    )


@app.get("/api/finance/summary", response_model=FinanceResult)
def finance_summary(request: Request, db: Session = Depends(get_db)):
    date_range = range_from_request(request)
    if not date_range.is_complete:
        return Response(status_code=204)
    filters = filters_from_request(request)
    key = (date_range, filters)
    cached = _cache_get(key)
    if cached is not None:
        return cached
    try:
        result = FinanceService(BackendGateway(db)).summary(date_range, filters)
    except BackendQueryError as exc:
        raise _unavailable() from exc
    _cache_set(key, result)
    return result


def _breakdown_rows(request: Request, db: Session) -> Optional[list[BreakdownRow]]:
    date_range = range_from_request(request)
    filters = filters_from_request(request)
    try:
        return BreakdownService(BackendGateway(db)).rows(date_range, filters)
    except BackendQueryError as exc:
        raise _unavailable() from exc


@app.get("/api/finance/breakdown", response_model=list[BreakdownRow])
def finance_breakdown(request: Request, db: Session = Depends(get_db)):
    rows = _breakdown_rows(request, db)
    if rows is None:
        return Response(status_code=204)
    return rows


@app.get("/api/finance/breakdown.csv")
def finance_breakdown_csv(request: Request, db: Session = Depends(get_db)):
    rows = _breakdown_rows(request, db)
    if rows is None:
        return Response(status_code=204)
    logging.info(f"finance_breakdown_export: rows={len(rows)}")
    return Response(
        content=export_breakdown(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="finance_breakdown.csv"'},
    )
