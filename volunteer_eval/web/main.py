from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from volunteer_eval.infrastructure.config import get_settings
from volunteer_eval.infrastructure.exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    VolunteerEvaluationError,
)
from volunteer_eval.infrastructure.logging import clear_context, get_logger, set_context
from volunteer_eval.web.routes import alerts, criteria, evaluations, health, reports, volunteers
from volunteer_eval.web.schemas import ErrorResponse

logger = get_logger("web")


def _error_response(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    body = ErrorResponse(code=code, message=message, details=jsonable_encoder(details or {}))
    return JSONResponse(status_code=status_code, content=body.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    """Map the application error hierarchy onto HTTP responses."""

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(status.HTTP_404_NOT_FOUND, "NOT_FOUND", exc.message, exc.details)

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, exc.code, exc.message, exc.details)

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error_response(
            status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", exc.user_message, exc.details
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            "VALIDATION_ERROR",
            "Request payload failed validation",
            {"errors": exc.errors()},
        )

    @app.exception_handler(UnauthorizedError)
    async def unauthorized_handler(request: Request, exc: UnauthorizedError) -> JSONResponse:
        return _error_response(status.HTTP_403_FORBIDDEN, "FORBIDDEN", exc.user_message, exc.details)

    @app.exception_handler(VolunteerEvaluationError)
    async def application_error_handler(
        request: Request, exc: VolunteerEvaluationError
    ) -> JSONResponse:
        logger.error("Unhandled application error: %s", exc.message, extra={"details": exc.details})
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", exc.user_message
        )


def create_application() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app.title,
        version=settings.app.version,
        debug=settings.app.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_log_context(request: Request, call_next):
        # set here so the context is inherited by the worker threads of sync routes
        set_context(
            user_id=request.headers.get("x-user-id"),
            user_role=request.headers.get("x-user-role"),
        )
        try:
            return await call_next(request)
        finally:
            clear_context()

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(volunteers.router)
    app.include_router(criteria.router)
    app.include_router(evaluations.router)
    app.include_router(alerts.router)
    app.include_router(reports.router)

    return app


app = create_application()
