# audience_hub/core/router.py
"""
Module for registering routes in the FastAPI application.
"""

from fastapi import FastAPI

from audience_hub.audiences.router import audience_router, cohort_router, connection_router, object_router
from audience_hub.logging.router import router as query_log_router


def register_routes(app: FastAPI) -> None:
    """
    Registers all the routes for the FastAPI application.

    Args:
        app (FastAPI): The FastAPI application instance.
    """
    app.include_router(audience_router, prefix="/api")
    app.include_router(cohort_router, prefix="/api")
    app.include_router(object_router, prefix="/api")
    app.include_router(connection_router, prefix="/api")
    app.include_router(query_log_router, prefix="/api")
