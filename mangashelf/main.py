"""
Main FastAPI application for the manga platform entitlement and ledger engine.
Serves health, wallet, subscriptions, purchases, manga access, admin and metrics.
"""
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from mangashelf.core.config import settings
from mangashelf.core.logging import configure_logging
from mangashelf.api.errors import register_exception_handlers
from mangashelf.api.routes import admin, health, manga, purchases, subscriptions, wallet
from mangashelf.utils.metrics import request_duration_seconds, router as metrics_router


configure_logging()

app = FastAPI(
    title="Mangashelf Entitlements API",
    description="Wallets, subscriptions, purchases and chapter access for the manga platform",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def observe_request_duration(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    route = request.scope.get("route")
    path = getattr(route, "path", "unmatched")
    request_duration_seconds.labels(method=request.method, path=path).observe(time.perf_counter() - started)
    return response


register_exception_handlers(app)

# Routers
app.include_router(health.router, tags=["health"])
app.include_router(wallet.router)
app.include_router(subscriptions.router)
app.include_router(purchases.router)
app.include_router(manga.router)
app.include_router(admin.router)
app.include_router(metrics_router)
