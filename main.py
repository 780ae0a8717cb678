#!/usr/bin/env python3

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

import settings
from infrastructure.container import Container
from presentation.models.access_models import HealthResponse


def create_app(container: Container = None) -> FastAPI:
    """Build the API around a dependency container"""
    container = container or Container()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        container.shutdown()

    app = FastAPI(
        title="Seta Access API",
        description="Access-controlled, versioned dataset delivery with usage accounting",
        version="2.0.0",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register all routers from the container
    for router in container.get_all_routers():
        app.include_router(router)

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        """Liveness check"""
        return "Server is running"

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Record store and accounting status"""
        health = await run_in_threadpool(container.get_service("access").health)
        return HealthResponse(**health)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
