from __future__ import annotations

import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from analysis.recommendations import RecommendationService
from ingestion.errors import Unauthorized
from ingestion.models.domain import StockFilter
from ingestion.services.sync import SyncCoordinator
from ingestion.settings import Settings

from .models import (
    FiltersEnvelope,
    HealthResponse,
    HealthStatus,
    PaginatedStocks,
    PingResponse,
    RecommendationsResponse,
    StockListResponse,
    StockResponse,
    SyncResponse,
)
from .stock_service import StockService

SERVICE_NAME = "stock-ratings-api"

system_router = APIRouter(tags=["system"])
router = APIRouter(prefix="/api/v1")

_basic = HTTPBasic(auto_error=False, realm="Authorization Required")


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_stock_service(request: Request) -> StockService:
    return request.app.state.stock_service


def get_recommendation_service(request: Request) -> RecommendationService:
    return request.app.state.recommendation_service


def get_sync_coordinator(request: Request) -> SyncCoordinator:
    return request.app.state.sync_coordinator


StockServiceDep = Annotated[StockService, Depends(get_stock_service)]
RecommendationServiceDep = Annotated[RecommendationService, Depends(get_recommendation_service)]
SyncCoordinatorDep = Annotated[SyncCoordinator, Depends(get_sync_coordinator)]


def _optional_int(value: str | None) -> int | None:
    # unparseable numbers fall back to the service defaults instead of a 422
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def require_basic_auth(
    credentials: Annotated[HTTPBasicCredentials | None, Depends(_basic)],
    settings: Annotated[Settings, Depends(get_settings_dep)],
) -> str:
    if credentials is None:
        raise Unauthorized()
    user_ok = secrets.compare_digest(
        credentials.username.encode("utf-8"), settings.basic_auth_user.encode("utf-8")
    )
    password_ok = secrets.compare_digest(
        credentials.password.encode("utf-8"),
        settings.basic_auth_password.get_secret_value().encode("utf-8"),
    )
    if not (user_ok and password_ok):
        raise Unauthorized()
    return credentials.username


@system_router.get("/ping", response_model=PingResponse)
async def ping() -> PingResponse:
    return PingResponse(data="pong", message="Service is running")


@system_router.get("/health", response_model=HealthResponse)
async def health(coordinator: SyncCoordinatorDep) -> HealthResponse:
    last_sync = coordinator.last_sync
    return HealthResponse(
        data=HealthStatus(
            status="healthy",
            service=SERVICE_NAME,
            last_sync=last_sync.isoformat() if last_sync else None,
            sync_running=coordinator.running,
        )
    )


@router.get("/stocks", response_model=PaginatedStocks, tags=["stocks"])
async def list_stocks_route(
    service: StockServiceDep,
    ticker: str | None = Query(default=None),
    company: str | None = Query(default=None),
    brokerage: str | None = Query(default=None),
    rating: str | None = Query(default=None),
    action: str | None = Query(default=None),
    sort_by: str | None = Query(default=None),
    sort_order: str | None = Query(default=None),
    page: str | None = Query(default=None),
    page_size: str | None = Query(default=None),
) -> PaginatedStocks:
    filter_model = StockFilter(
        ticker=ticker,
        company=company,
        brokerage=brokerage,
        rating=rating,
        action=action,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
    )
    return service.get_stocks(filter_model)


@router.get("/stocks/search", response_model=StockListResponse, tags=["stocks"])
async def search_stocks_route(
    service: StockServiceDep,
    q: str | None = Query(default=None),
    limit: str | None = Query(default=None),
) -> StockListResponse:
    return StockListResponse(data=service.search_stocks(q, _optional_int(limit)))


@router.get("/stocks/filters", response_model=FiltersEnvelope, tags=["stocks"])
async def get_filters_route(service: StockServiceDep) -> FiltersEnvelope:
    return FiltersEnvelope(data=service.get_filters())


@router.get("/stocks/{rating_id}", response_model=StockResponse, tags=["stocks"])
async def get_stock_route(rating_id: str, service: StockServiceDep) -> StockResponse:
    return StockResponse(data=service.get_stock(rating_id))


@router.get("/recommendations", response_model=RecommendationsResponse, tags=["recommendations"])
async def get_recommendations_route(
    service: RecommendationServiceDep,
    limit: str | None = Query(default=None),
) -> RecommendationsResponse:
    return RecommendationsResponse(data=service.get_top_recommendations(_optional_int(limit)))


# Plain ``def``: runs in the threadpool so concurrent requests contend for the sync guard.
@router.post("/sync", response_model=SyncResponse, tags=["sync"])
def sync_stocks_route(
    _user: Annotated[str, Depends(require_basic_auth)],
    coordinator: SyncCoordinatorDep,
):
    summary = coordinator.sync()
    body = SyncResponse.from_summary(summary)
    if summary.status == "error":
        return JSONResponse(status_code=502, content=body.model_dump())
    return body
