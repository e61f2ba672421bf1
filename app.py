from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import shutil
from typing import Optional

import uvicorn

from docconvert import __version__
from docconvert.config import ServiceConfig, get_config
from docconvert.router import router as convert_router
from docconvert.utils.error_handling import (
    ConversionError,
    ErrorCode,
    conversion_error_response,
    create_error_response,
)
from docconvert.utils.logging_config import get_logger
from docconvert.utils.temp_file_manager import ensure_directory

# Set up logging
logger = get_logger()

# Sent with every response; converted documents must never be cached
SECURITY_HEADERS = {
    "Cache-Control": "no-store, max-age=0, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Content-Type-Options": "nosniff",
}

HTTP_STATUS_CODES = {
    400: ErrorCode.INVALID_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    404: ErrorCode.NOT_FOUND,
    406: ErrorCode.NOT_ACCEPTABLE,
    413: ErrorCode.FILE_TOO_LARGE,
    415: ErrorCode.UNSUPPORTED_MEDIA_TYPE,
}


async def check_binary_health(binary: str) -> tuple[bool, int]:
    """
    Check that an external converter binary can be found.

    Returns:
        tuple: (is_healthy: bool, status_code: int)
    """
    if shutil.which(binary):
        return True, 200
    return False, 503


async def check_library_health(module_name: str) -> tuple[bool, int]:
    """
    Check that an in-process converter library imports.

    Returns:
        tuple: (is_healthy: bool, status_code: int)
    """
    try:
        __import__(module_name)
        return True, 200
    except ImportError:
        return False, 503


def create_app(config: Optional[ServiceConfig] = None) -> FastAPI:
    """Build the service application for the given (or environment) config."""
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ensure_directory(config.temp_dir)
        logger.info(f"docconvert {__version__} using temp directory {config.temp_dir}")
        yield

    app = FastAPI(title="docconvert", version=__version__, lifespan=lifespan)
    app.state.config = config

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.cors_origins),
            allow_methods=["GET", "POST"],
            allow_headers=["Authorization", "Content-Type", "Accept"],
        )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        return response

    @app.exception_handler(ConversionError)
    async def handle_conversion_error(request: Request, exc: ConversionError):
        return conversion_error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        error_code = HTTP_STATUS_CODES.get(exc.status_code, f"HTTP_{exc.status_code}")
        return create_error_response(error_code, details=str(exc.detail), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return create_error_response(ErrorCode.INVALID_REQUEST, details=str(exc.errors()))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return create_error_response(ErrorCode.INTERNAL_ERROR, details="Internal server error")

    @app.get("/admin/healthcheck", response_class=PlainTextResponse)
    async def healthcheck():
        """Liveness probe."""
        return "ok"

    @app.get("/ping")
    async def ping():
        """Availability of each converter."""
        checks = {
            "pdftohtml": await check_binary_health(config.poppler_binary("pdftohtml")),
            "pdftotext": await check_binary_health(config.poppler_binary("pdftotext")),
            "pandoc": await check_binary_health(config.pandoc_binary),
            "antiword": await check_binary_health(config.antiword_binary),
            "mammoth": await check_library_health("mammoth"),
            "python-docx": await check_library_health("docx"),
            "beautifulsoup": await check_library_health("bs4"),
        }
        return {
            "success": True,
            "data": "PONG!",
            "version": __version__,
            "services": {
                name: {
                    "status": "healthy" if healthy else "unhealthy",
                    "response_code": status
                }
                for name, (healthy, status) in checks.items()
            },
        }

    # Include the conversion router
    app.include_router(convert_router)

    return app


app = create_app()


if __name__ == "__main__":
    settings = app.state.config
    uvicorn.run("app:app", host=settings.host, port=settings.port)
