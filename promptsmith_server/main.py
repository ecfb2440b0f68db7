"""PromptSmith Optimization Server"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import health, optimize, ratings
from .config import settings


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="PromptSmith",
        description="Prompt optimization service",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Optimization routes
    app.include_router(optimize.router)
    app.include_router(ratings.router)

    # System routes
    app.include_router(health.router)

    return app


app = create_app()
