# backend/advisor/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from advisor.core.settings import settings
from advisor.api.deps import close_clients
from advisor.api.routes_import import router as import_router
from advisor.api.routes_portfolios import router as portfolios_router
from advisor.api.routes_proxy import router as proxy_router

@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    await close_clients()

app = FastAPI(title="Portfolio Advisor API", version="0.1.0", lifespan=lifespan)

# CORS for local dev frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(import_router, prefix="/import", tags=["import"])
app.include_router(portfolios_router, tags=["portfolios"])
app.include_router(proxy_router, prefix="/api", tags=["proxy"])

@app.get("/healthz")
def healthz():
    return {"ok": True}

@app.get("/health")
def health():
    logger.info("Health check ok")
    return {"status": "ok", "env": settings.env}
