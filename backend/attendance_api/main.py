from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from attendance_api.core.logging import RequestLoggingMiddleware, configure_logging
from attendance_api.core.observability import PrometheusMiddleware, metrics_endpoint
from attendance_api.core.settings import settings
from attendance_api.db.session import SessionLocal, get_db
from attendance_api.modules.router_registry import include_all_routers
from attendance_api.services.time_settings import TimeSettingsReconciler

configure_logging(level=settings.log_level)
logger = logging.getLogger("attendance")

app = FastAPI(title=settings.project_name, version=settings.project_version)

# Always allow localhost during development.
allow_origin_regex = None
if not settings.is_production:
    allow_origin_regex = r"^http://(localhost|127\.0\.0\.1)(:\d+)?$"
else:
    if any(origin.strip() == "*" for origin in settings.allow_origins):
        raise RuntimeError("ALLOW_ORIGINS cannot include '*' in production")
    if settings.jwt_secret.startswith("change_me"):
        raise RuntimeError("JWT_SECRET must be set in production")
    if "change_me" in settings.database_url:
        raise RuntimeError("DATABASE_URL password must be set in production")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-Id", "Accept"],
)

# Observability middleware
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestLoggingMiddleware)

app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["observability"], include_in_schema=False)

include_all_routers(app)

reconciler = TimeSettingsReconciler(SessionLocal)


@app.get("/healthz", tags=["health"])
def healthcheck(db: Session = Depends(get_db)) -> dict[str, str]:
    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - runtime health check
        logger.error("Healthcheck failed: %s", exc, exc_info=True)
        raise HTTPException(status_code=503, detail="Service unavailable") from exc
    return {"status": "ok", "database": "ok"}


@app.get("/version", tags=["health"])
def version() -> dict[str, str]:
    return {
        "version": settings.project_version,
        "environment": settings.environment,
    }


@app.on_event("startup")
def startup_event() -> None:
    if settings.time_settings_sync_enabled:
        reconciler.start()


@app.on_event("shutdown")
def shutdown_event() -> None:
    reconciler.stop()
