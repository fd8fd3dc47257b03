"""FastAPI entrypoint for the proctored quiz attempt engine."""

import logging
import sys

from fastapi import FastAPI, Request, status
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from quiz_engine.config import get_settings
from quiz_engine.database import create_db_and_tables
from quiz_engine.errors import ExamError
from quiz_engine.routers import auth as auth_router_module
from quiz_engine.routers import exam as exam_router_module
from quiz_engine.routers import staff as staff_router_module

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)


@app.exception_handler(ExamError)
async def exam_error_handler(request: Request, exc: ExamError):
    """Map the service error taxonomy onto status codes."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": ExamError.default_message},
        )
    logger.warning(
        f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}"
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or incomplete request bodies are a 400, checked before any DB access."""
    errors_dict = {}
    for error in exc.errors():
        field_path = error.get("loc", [])
        # Drop the leading "body"/"path" marker
        field_name = ".".join(str(p) for p in field_path[1:]) or "request"
        if error.get("type") == "missing":
            errors_dict[field_name] = f"{field_name} is required."
        else:
            errors_dict[field_name] = error.get("msg", "Invalid input")

    logger.warning(f"{request.method} {request.url.path} invalid payload: {errors_dict}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": errors_dict},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Storage errors are logged here and never echoed to the caller
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": ExamError.default_message},
    )


# Session middleware for cookie-based authentication
app.add_middleware(SessionMiddleware, secret_key=settings.SESSION_SECRET)

# Routers
app.include_router(auth_router_module.router, prefix="/auth", tags=["auth"])
app.include_router(exam_router_module.router, prefix="/online-exam", tags=["exam"])
app.include_router(
    staff_router_module.router, prefix="/online-exam/admin", tags=["staff"]
)


@app.get("/")
def home():
    return {"message": f"Welcome to {settings.APP_NAME}"}


@app.on_event("startup")
def on_startup():
    """Initialize database schema."""
    create_db_and_tables()
    logger.info("Database schema ready")
