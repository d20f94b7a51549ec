"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime

from fastapi import FastAPI, HTTPException, Path, Query, Request, Response, status
from fastapi.responses import JSONResponse

from elevation_loom.api.week_models import (
    DayLogPayload,
    SyncStatusResponse,
    SyncTriggerResponse,
    TargetPayload,
    WeekPayload,
    WeekResponse,
)
from elevation_loom.app_logging import configure_logging
from elevation_loom.containers import AppContainer
from elevation_loom.domain.errors import ErrorInfo, ErrorKind
from elevation_loom.domain.result import Err
from elevation_loom.domain.weeks import (
    ISO_WEEK_MAX,
    ISO_WEEK_MIN,
    ISO_YEAR_MAX,
    ISO_YEAR_MIN,
    DailyLog,
)

_UNPROCESSABLE = 422
_STATUS_BY_KIND = {
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION: _UNPROCESSABLE,
    ErrorKind.AUTHENTICATION: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.QUOTA: status.HTTP_507_INSUFFICIENT_STORAGE,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        restored = await app.state.container.storage_service.restore_pending()
        if isinstance(restored, Err):
            logger.warning("Could not restore pending writes: %s", restored.error)
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/weeks/{iso_year}/{iso_week}")
    async def get_week(
        request: Request,
        iso_year: int = Path(ge=ISO_YEAR_MIN, le=ISO_YEAR_MAX),
        iso_week: int = Path(ge=ISO_WEEK_MIN, le=ISO_WEEK_MAX),
        refresh: bool = Query(default=False),
    ) -> WeekResponse:
        """Return a week, served from the cache while fresh."""
        state_container: AppContainer = request.app.state.container
        loaded = await state_container.storage_service.load(
            iso_year, iso_week, refresh=refresh
        )
        if isinstance(loaded, Err):
            raise _http_error(loaded.error)
        return WeekResponse.from_loaded(loaded.value)

    @app.put("/weeks/{iso_year}/{iso_week}", response_model=None)
    async def put_week(
        payload: WeekPayload,
        request: Request,
        iso_year: int = Path(ge=ISO_YEAR_MIN, le=ISO_YEAR_MAX),
        iso_week: int = Path(ge=ISO_WEEK_MIN, le=ISO_WEEK_MAX),
    ) -> Response:
        """Replace a week document."""
        state_container: AppContainer = request.app.state.container
        try:
            record = payload.to_record(iso_year, iso_week, now=datetime.now(tz=UTC))
        except ValueError as exc:
            raise HTTPException(status_code=_UNPROCESSABLE, detail=str(exc)) from exc
        saved = await state_container.storage_service.save(
            record, expected_last_modified=payload.expected_last_modified
        )
        if isinstance(saved, Err):
            logger.warning("Saving week %s failed: %s", record.key, saved.error)
            return _error_response(saved.error)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.put("/weeks/{iso_year}/{iso_week}/target", response_model=None)
    async def put_target(
        payload: TargetPayload,
        request: Request,
        iso_year: int = Path(ge=ISO_YEAR_MIN, le=ISO_YEAR_MAX),
        iso_week: int = Path(ge=ISO_WEEK_MIN, le=ISO_WEEK_MAX),
    ) -> Response:
        """Update the target of a week."""
        state_container: AppContainer = request.app.state.container
        saved = await state_container.storage_service.save_week_target(
            iso_year, iso_week, payload.value
        )
        if isinstance(saved, Err):
            return _error_response(saved.error)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.put("/days/{day}", response_model=None)
    async def put_day(day: date, payload: DayLogPayload, request: Request) -> Response:
        """Record the log of a single day."""
        state_container: AppContainer = request.app.state.container
        year = day.isocalendar().year
        if not ISO_YEAR_MIN <= year <= ISO_YEAR_MAX:
            raise HTTPException(
                status_code=_UNPROCESSABLE,
                detail=f"ISO year out of range: {year}",
            )
        entry = DailyLog(
            date=day.isoformat(),
            value=payload.value,
            memo=payload.memo,
            part1=payload.part1,
            part2=payload.part2,
        )
        saved = await state_container.storage_service.save_day_log(entry)
        if isinstance(saved, Err):
            return _error_response(saved.error)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/sync/status")
    async def sync_status(request: Request) -> SyncStatusResponse:
        """Return pending write count and last sync time."""
        boundary = request.app.state.container.sync_boundary
        return SyncStatusResponse(
            pending_count=boundary.get_pending_count(),
            last_sync_time=boundary.last_sync_time,
        )

    @app.post("/sync/trigger")
    async def sync_trigger(request: Request) -> SyncTriggerResponse:
        """Push pending writes to the remote store."""
        boundary = request.app.state.container.sync_boundary
        outcome = await boundary.trigger()
        if not outcome.success:
            logger.warning("Manual sync failed: %s", outcome.message)
        return SyncTriggerResponse(success=outcome.success, message=outcome.message)

    @app.delete("/sync/pending", status_code=status.HTTP_204_NO_CONTENT)
    async def sync_clear(request: Request) -> None:
        """Discard pending write accounting without delivering."""
        await request.app.state.container.sync_boundary.clear()

    return app


def _http_error(error: ErrorInfo) -> HTTPException:
    return HTTPException(
        status_code=_status_for(error),
        detail={"kind": str(error.kind), "message": error.message},
    )


def _error_response(error: ErrorInfo) -> JSONResponse:
    content: dict[str, object] = {"kind": str(error.kind), "message": error.message}
    if error.remote is not None:
        content["remote"] = WeekResponse.from_record(
            error.remote, source="remote"
        ).model_dump(mode="json")
    return JSONResponse(
        status_code=_status_for(error),
        content=content,
    )


def _status_for(error: ErrorInfo) -> int:
    return _STATUS_BY_KIND.get(error.kind, status.HTTP_503_SERVICE_UNAVAILABLE)
