from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

# 프로젝트 루트의 .env 파일 명시적 로딩
project_root = Path(__file__).parent.parent
env_path = project_root / ".env"

if env_path.exists():
    load_dotenv(env_path)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from analysis.recommendations import RecommendationService
from ingestion.db.session import get_sessionmaker, init_db
from ingestion.errors import StockRatingsError, Unauthorized
from ingestion.repositories.ratings import RatingRepository, SqlRatingRepository
from ingestion.services.sync import RatingsFeed, SyncCoordinator, SyncGuard
from ingestion.settings import Settings, get_settings
from ingestion.utils.logging import configure_logging, get_logger

from .models import ErrorResponse
from .routes import router, system_router
from .stock_service import StockService

logger = get_logger(__name__)

ERROR_STATUS = {
    "not_found": 404,
    "sync_in_progress": 409,
    "external_feed_failure": 502,
    "storage_failure": 500,
    "validation_failure": 400,
    "unauthorized": 401,
}


async def _handle_domain_error(request: Request, exc: StockRatingsError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.kind, 500)
    if status_code >= 500:
        logger.error("api.request_failed", extra={"path": request.url.path, "kind": exc.kind, "error": exc.message})
    headers = None
    if isinstance(exc, Unauthorized):
        headers = {"WWW-Authenticate": 'Basic realm="Authorization Required"'}
    body = ErrorResponse(error=exc.kind, message=exc.message)
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def create_app(
    settings: Settings | None = None,
    *,
    repository: RatingRepository | None = None,
    connector: RatingsFeed | None = None,
    guard: SyncGuard | None = None,
) -> FastAPI:
    """Build the web app; collaborators can be injected for tests."""
    config = settings or get_settings()
    configure_logging(config.log_level, json_enabled=config.log_json)

    if repository is None:
        init_db(config)
        repository = SqlRatingRepository(get_sessionmaker(config))

    app = FastAPI(title="Stock Ratings API", version="0.1.0")
    app.state.settings = config
    app.state.stock_service = StockService(repository)
    app.state.recommendation_service = RecommendationService(repository)
    app.state.sync_coordinator = SyncCoordinator.from_settings(
        config, repository=repository, connector=connector, guard=guard
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        allow_credentials=True,
    )
    app.add_exception_handler(StockRatingsError, _handle_domain_error)  # type: ignore[arg-type]

    app.include_router(system_router)
    app.include_router(router)
    return app


app = create_app()
