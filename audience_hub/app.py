"""FastAPI application entry point for the audience hub."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from audience_hub.core.database import init_db
from audience_hub.core.router import register_routes
from audience_hub.logging.exception_handlers import (
    audience_query_exception_handler,
    general_exception_handler,
)
from audience_hub.query.errors import AudienceQueryError


def create_app() -> FastAPI:

    app = FastAPI(
        title="Audience Hub",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    init_db()

    # Compiler and warehouse errors become 400/422/502 responses
    app.add_exception_handler(AudienceQueryError, audience_query_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    return app
