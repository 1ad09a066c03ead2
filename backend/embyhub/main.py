import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import redis

from embyhub.core.config import settings
from embyhub.api.v1.router import api_router
from embyhub.core.db import AsyncSessionLocal, create_tables, engine
from embyhub.core.errors import PanelError, PersistenceError
from embyhub.services.bootstrap import run_bootstrap

logging.basicConfig(
    level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        await create_tables()
    async with AsyncSessionLocal() as db:
        await run_bootstrap(db)
    yield
    await engine.dispose()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

if settings.cors_origins_list:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(PanelError)
async def panel_error_handler(request: Request, exc: PanelError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, str(exc.detail)[:220])
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(SQLAlchemyError)
async def db_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database error on %s %s: %s", request.method, request.url.path, str(exc)[:220])
    err = PersistenceError()
    return JSONResponse(status_code=err.status_code, content={"detail": err.detail})


app.include_router(api_router, prefix="/api/v1")


@app.get("/api/docs", include_in_schema=False)
async def docs_alias():
    return RedirectResponse(url="/docs")


@app.get("/api/openapi.json", include_in_schema=False)
async def openapi_alias():
    return JSONResponse(app.openapi())


@app.get("/health")
async def health():
    db_ok = False
    redis_ok = False
    try:
        async with AsyncSessionLocal() as s:
            await s.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.warning("health db check failed: %s", str(e)[:220])
    try:
        rds = redis.Redis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
        redis_ok = bool(rds.ping())
    except redis.RedisError:
        redis_ok = False
    # redis is only needed by the celery sweep
    return {"status": "ok" if db_ok else "degraded", "db_ok": db_ok, "redis_ok": redis_ok}
