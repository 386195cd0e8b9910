# marketplace/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace.config.settings import SETTINGS
from marketplace.database import Base, engine
from marketplace.errors import MarketError
from marketplace.pg.client import build_gateway
from marketplace.routers import auctions, orders, payments

logger = logging.getLogger("marketplace")

APP_VERSION = "1.0.0"


# Lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=SETTINGS.log_level.upper(),
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
    )

    # ✅ DB 테이블 생성은 import 시점이 아니라 startup 시점에서 (운영은 alembic upgrade head)
    Base.metadata.create_all(bind=engine)

    # ✅ 게이트웨이는 프로세스당 한 번만 만든다 (테스트는 미리 주입 가능)
    if getattr(app.state, "gateway", None) is None:
        app.state.gateway = build_gateway(SETTINGS)

    logger.info("marketplace started (pg_mode=%s)", SETTINGS.paypal_mode)
    yield
    logger.info("marketplace stopped")


app = FastAPI(title="Marketplace Auctions API", version=APP_VERSION, lifespan=lifespan)


# 예외 핸들러
@app.exception_handler(MarketError)
async def market_exc_handler(request: Request, exc: MarketError):
    if exc.http_status >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "error": exc.code},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exc_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exc_handler(request: Request, exc: RequestValidationError):
    # 원본 입력(input/ctx)은 NaN/Infinity 일 수 있어 응답에서 뺀다
    errors = [{k: v for k, v in err.items() if k not in ("input", "ctx")} for err in exc.errors()]
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})


@app.exception_handler(Exception)
async def unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception("unhandled error at %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal error"})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --------------------------------------------------
# Auction → Bid → Payment
# --------------------------------------------------
app.include_router(auctions.router)
app.include_router(orders.router)
app.include_router(payments.router)


# Health/Version
@app.get("/health")
def health():
    return {"ok": True}


@app.get("/version")
def version():
    return {"version": APP_VERSION}
