# main.py
import logging
import os
from contextlib import asynccontextmanager

if os.getenv("DEBUGPY", "0") == "1":
    import debugpy
    debugpy.listen(("0.0.0.0", 5678))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from config.logging_config import configure_logging
from middleware.rate_limit import limiter
from middleware.request_logging import RequestLoggingMiddleware
from routers.analysis_routes import router as analysis_router
from routers.auth_routes import router as auth_router
from routers.pocket_routes import router as pocket_router
from routers.portfolio_routes import router as portfolio_router
from routers.transaction_routes import router as transaction_router
from routers.user_routes import router as user_router
from schemas.general import ErrorDetail, ErrorResponse
from services.errors import AppError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


# ========================
# Error envelope
# ========================

def error_response(status_code: int, errors: list) -> JSONResponse:
    body = ErrorResponse(errors=[ErrorDetail(**e) for e in errors])
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _http_code(status_code: int) -> str:
    if status_code == 401 or status_code == 403:
        return "AUTH-401"
    if status_code == 404:
        return "NOT-404"
    if status_code == 409:
        return "CONFLICT-409"
    if status_code == 429:
        return "RATE-429"
    if status_code >= 500:
        return "INT-500"
    return "VAL-400"


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("app_error code=%s path=%s: %s", exc.code, request.url.path, exc.message)
    return error_response(exc.status_code, [exc.to_detail()])


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = err.get("msg", "Invalid value")
        errors.append({"code": "VAL-400", "message": f"{loc}: {msg}" if loc else msg})
    return error_response(400, errors or [{"code": "VAL-400", "message": "Invalid request"}])


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, [{"code": _http_code(exc.status_code), "message": str(exc.detail)}])


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    # sync: SlowAPIMiddleware calls it directly without awaiting
    return error_response(429, [{"code": "RATE-429", "message": f"Rate limit exceeded: {exc.detail}"}])


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("unhandled_database_error path=%s", request.url.path)
    return error_response(500, [{"code": "DB-500", "message": "Database error"}])


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_exception path=%s", request.url.path)
    return error_response(500, [{"code": "INT-500", "message": "Internal Server Error"}])


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


# ========================
# App
# ========================

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    # db startup
    from database import Base, SessionLocal, engine
    import models  # this triggers models/__init__.py which imports all tables
    from services.reference_data import seed_reference_data

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_reference_data(db)
    finally:
        db.close()

    logger.info("startup_complete")
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="Pocket Ledger API", lifespan=lifespan)
    app.state.limiter = limiter

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # Include routers
    app.include_router(auth_router, prefix=f"{API_PREFIX}/auth", tags=["auth"])
    app.include_router(user_router, prefix=API_PREFIX, tags=["settings"])
    app.include_router(transaction_router, prefix=f"{API_PREFIX}/transactions", tags=["transactions"])
    app.include_router(pocket_router, prefix=f"{API_PREFIX}/pockets", tags=["pockets"])
    app.include_router(portfolio_router, prefix=f"{API_PREFIX}/portfolio", tags=["portfolio"])
    app.include_router(analysis_router, prefix=f"{API_PREFIX}/analysis", tags=["analysis"])

    @app.get("/")
    def health():
        return {"success": True, "data": {"status": "ok"}, "message": "Pocket Ledger API is running"}

    return app


app = create_app()
