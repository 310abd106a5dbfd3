import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.database_init import init_database_schema
from app.core.db import get_engine
from app.core.dependencies import get_otp_service
from app.core.logging import configure_logging
from app.core.middleware import RequestContextMiddleware
from app.routers import get_api_router
from app.services.exceptions import ServiceError, ValidationError


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()

    logger = logging.getLogger("app.validation")

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if settings.OTP_STORE_BACKEND == "sql":
            init_database_schema(get_engine())
        yield
        if get_otp_service.cache_info().currsize:
            get_otp_service().cascade.close()

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(
            "Validation error on %s %s detail=%s",
            request.method,
            request.url.path,
            exc.errors(),
        )
        error = ValidationError("Request body is malformed")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        logging.getLogger("app.errors").error("Unhandled service error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    api_router = get_api_router()
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return app


app = create_app()
