from fastapi import FastAPI

from . import admin, audit, auth, dashboard, health, requests


def register_routes(app: FastAPI) -> None:
    """Attach all API routers to the FastAPI application."""
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(requests.router)
    app.include_router(dashboard.router)
    app.include_router(admin.router)
    app.include_router(audit.router)
