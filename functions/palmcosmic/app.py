"""
FastAPI application entry point for the PalmCosmic backend.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from palmcosmic import routes, routes_blogs, routes_chat, routes_profile
from palmcosmic.config import apply_model_settings, get_settings


def create_app() -> FastAPI:
    settings = get_settings()
    apply_model_settings(settings)

    app = FastAPI(title="PalmCosmic Backend", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for module in (routes, routes_blogs, routes_chat, routes_profile):
        app.include_router(module.router, prefix=settings.api_prefix)
    return app


app = create_app()
