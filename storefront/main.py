import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import get_settings
from .core.db import Base, engine
from .core.errors import StorefrontError
from .core.responses import ErrorCodes, error_response
from . import models  # noqa: F401  (registers tables on Base.metadata)
from .routes import (
    admin_products_router,
    appointments_router,
    client_auth_router,
    orders_router,
    staff_auth_router,
    staff_router,
    store_router,
)


settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ────────────────────────────────────────────────────────────────
# Error handlers
# ────────────────────────────────────────────────────────────────

@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.details),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_response(
            ErrorCodes.VALIDATION_ERROR,
            "Request data failed validation.",
            {"errors": errors},
        ),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=error_response(ErrorCodes.INTERNAL_ERROR, "Internal server error"),
    )


# ────────────────────────────────────────────────────────────────
# Routers
# ────────────────────────────────────────────────────────────────

app.include_router(client_auth_router)
app.include_router(staff_auth_router)
app.include_router(store_router)
app.include_router(orders_router)
app.include_router(admin_products_router)
app.include_router(staff_router)
app.include_router(appointments_router)


@app.on_event("startup")
async def on_startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@app.get("/health")
async def health():
    return {"ok": True}
