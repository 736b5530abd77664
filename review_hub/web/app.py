"""
FastAPI application - App Review Hub API
========================================

Serves the dashboard: app management, manual and scheduled scraping,
aggregates, stats and CSV downloads.

Run:
    uvicorn review_hub.web.app:create_app --factory
    python -m review_hub.web.app
"""

import json
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import unquote

import uvicorn
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from review_hub.database.db_manager import DatabaseManager
from review_hub.exceptions import AppNotFoundError, InvalidAppConfig
from review_hub.ingestion.pipeline import IngestionPipeline
from review_hub.ingestion.scheduler import IngestionScheduler
from review_hub.models.app import App
from review_hub.models.review import Review
from review_hub.registry.app_registry import AppRegistry
from review_hub.storage.csv_export import export_filename, reviews_to_csv
from review_hub.utils.logger import get_logger
from review_hub.web.schemas import AppConfigIn, AppConfigUpdate, ScrapeRequest

logger = get_logger("web")


@dataclass
class Services:
    db: DatabaseManager
    pipeline: IngestionPipeline
    registry: AppRegistry
    scheduler: IngestionScheduler


def services(request: Request) -> Services:
    return request.app.state.services


def csv_response(reviews: List[Review], filename: str) -> Response:
    return Response(
        content=reviews_to_csv(reviews),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


router = APIRouter()


# ── Scraping ───────────────────────────────────────────────────────

@router.post("/scrape")
async def scrape(request: Request, body: Optional[ScrapeRequest] = None):
    """Full scrape of an app configuration; nothing is stored."""
    if body is None or not body.appConfig:
        raise HTTPException(status_code=400, detail="App configuration is required")

    app = App.from_dict(body.appConfig)
    reviews = await services(request).pipeline.scrape_config(app, full_scrape=True)
    return {
        "success": True,
        "reviewsCount": len(reviews),
        "message": f"Successfully scraped {len(reviews)} reviews",
    }


@router.post("/schedule")
async def run_schedule(request: Request):
    """Run every scrape that is due; meant to be called by an external timer."""
    result = await services(request).scheduler.run_due_tasks()
    return {
        "success": True,
        "message": "Scheduled tasks completed successfully",
        **result.to_dict(),
    }


# ── Apps ───────────────────────────────────────────────────────────

@router.get("/apps")
async def list_apps(request: Request):
    apps = await services(request).registry.list_apps()
    return [app.to_dict() for app in apps]


@router.post("/apps", status_code=201)
async def create_app_record(request: Request, body: AppConfigIn):
    app = await services(request).registry.create_app(body.model_dump())
    return app.to_dict()


@router.get("/apps/{app_id}")
async def get_app(request: Request, app_id: str):
    app = await services(request).registry.get_app(app_id)
    return app.to_dict()


@router.put("/apps/{app_id}")
async def update_app(request: Request, app_id: str, body: AppConfigUpdate):
    app = await services(request).registry.update_app(
        app_id, body.model_dump(exclude_unset=True)
    )
    return app.to_dict()


@router.delete("/apps/{app_id}")
async def delete_app(request: Request, app_id: str):
    await services(request).registry.delete_app(app_id)
    return {"success": True}


@router.post("/apps/{app_id}/scrape")
async def scrape_app(request: Request, app_id: str, full: bool = False):
    """Ingest one stored app now, regardless of its frequency."""
    result = await services(request).pipeline.ingest(app_id, full_scrape=full)
    return {"success": True, **result.to_dict()}


@router.delete("/apps/{app_id}/reviews")
async def clear_app_reviews(request: Request, app_id: str):
    app = await services(request).pipeline.clear_reviews(app_id)
    return {"success": True, "app": app.to_dict()}


@router.get("/apps/{app_id}/reviews")
async def get_app_reviews(request: Request, app_id: str):
    svc = services(request)
    await svc.registry.get_app(app_id)
    return [review.to_dict() for review in await svc.db.get_reviews(app_id)]


@router.get("/apps/{app_id}/rating-history")
async def get_rating_history(request: Request, app_id: str):
    svc = services(request)
    await svc.registry.get_app(app_id)
    return [entry.to_dict() for entry in await svc.db.get_rating_history(app_id)]


@router.get("/apps/{app_id}/region-distribution")
async def get_region_distribution(request: Request, app_id: str):
    svc = services(request)
    await svc.registry.get_app(app_id)
    return [region.to_dict() for region in await svc.db.get_region_distribution(app_id)]


# ── Dashboard ──────────────────────────────────────────────────────

@router.get("/stats")
async def get_stats(request: Request):
    stats = await services(request).db.get_stats()
    return stats.to_dict()


@router.get("/reviews/recent")
async def get_recent_reviews(request: Request, limit: int = 10):
    reviews = await services(request).db.get_recent_reviews(limit=limit)
    return [review.to_dict() for review in reviews]


# ── Export ─────────────────────────────────────────────────────────

@router.get("/export/{app_id}")
async def export_app_reviews(request: Request, app_id: str):
    svc = services(request)
    app = await svc.registry.get_app(app_id)
    reviews = await svc.db.get_reviews(app_id)
    return csv_response(reviews, export_filename(app.name))


@router.get("/export-reviews")
async def export_reviews(reviews: Optional[str] = None):
    """Export a client-side selection passed as JSON in the query string."""
    if not reviews:
        raise HTTPException(status_code=400, detail="No reviews provided")

    try:
        try:
            records = json.loads(reviews)
        except ValueError:
            # Clients may encode the JSON once more before the query encoding
            records = json.loads(unquote(reviews))
        selected = [Review.from_dict(record) for record in records]
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid reviews payload: {e}")

    return csv_response(selected, "filtered_reviews.csv")


# ── Application ────────────────────────────────────────────────────

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    db: Optional[DatabaseManager] = None,
    pipeline: Optional[IngestionPipeline] = None,
    scheduler: Optional[IngestionScheduler] = None,
) -> FastAPI:
    """
    Build the API with its services.

    Collaborators not passed in are created from the environment; the
    database is closed on shutdown only when created here.
    """
    owns_db = db is None
    db = db or DatabaseManager()
    pipeline = pipeline or IngestionPipeline(db)
    scheduler = scheduler or IngestionScheduler(db, pipeline=pipeline)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Review store ready")
        yield
        if owns_db:
            await db.close()

    app = FastAPI(
        title="App Review Hub",
        description="App Store and Google Play review collection",
        lifespan=lifespan,
    )
    app.state.services = Services(
        db=db,
        pipeline=pipeline,
        registry=AppRegistry(db, pipeline),
        scheduler=scheduler,
    )
    app.include_router(router)

    @app.exception_handler(AppNotFoundError)
    async def not_found_handler(request: Request, exc: AppNotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(InvalidAppConfig)
    async def invalid_config_handler(request: Request, exc: InvalidAppConfig):
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return _error(400, f"Invalid request: {problems}")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception):
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=True)
        return _error(500, str(exc))

    return app


def main():
    uvicorn.run("review_hub.web.app:create_app", factory=True, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
