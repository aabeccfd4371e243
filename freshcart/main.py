# freshcart/main.py
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import auth
from .config import CORS_ORIGINS, LOG_LEVEL, check_production_settings
from .database import Base, engine
from .errors import FreshCartError, InternalError, ValidationError
from .schemas import form_errors

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    check_production_settings()
    # Создаём таблицы (в development). В production используйте миграции (alembic).
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("FreshCart API started")
    yield
    await engine.dispose()


app = FastAPI(
    title="FreshCart",
    description="Storefront authentication API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)


@app.exception_handler(FreshCartError)
async def freshcart_error_handler(request: Request, exc: FreshCartError):
    body = {"message": exc.message}
    if isinstance(exc, ValidationError) and exc.errors:
        body["errors"] = exc.errors
    if isinstance(exc, InternalError):
        # наружу только общая формулировка, детали остаются в логах
        body["error"] = exc.public_error
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request", "errors": form_errors(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("freshcart.main:app", host="0.0.0.0", port=5000, reload=True)
