"""Central router registry for module-oriented composition."""
from __future__ import annotations

from fastapi import FastAPI

from attendance_api.routers.admin import router as admin_router
from attendance_api.routers.auth import router as auth_router
from attendance_api.routers.checkins import router as checkin_router
from attendance_api.routers.sessions import router as sessions_router
from attendance_api.routers.sessions import stats_router

DEVICE_ROUTERS = [auth_router, checkin_router, sessions_router, stats_router]
ADMIN_ROUTERS = [admin_router]

ALL_ROUTERS = DEVICE_ROUTERS + ADMIN_ROUTERS


def include_all_routers(app: FastAPI) -> None:
    for router in ALL_ROUTERS:
        app.include_router(router)
