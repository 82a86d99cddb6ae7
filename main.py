#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Main application entry point - OpenAI to Replicate proxy
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from replicate_proxy.auth import api_key_middleware
from replicate_proxy.config import settings
from replicate_proxy.openai_api import router as openai_router, register_exception_handlers
from replicate_proxy.services import network_manager

SERVICE_NAME = "OpenAI to Replicate Proxy"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await network_manager.cleanup()


# Create FastAPI app
app = FastAPI(
    title=SERVICE_NAME,
    description="OpenAI-compatible API server backed by Replicate predictions",
    version="1.0.0",
    lifespan=lifespan,
)

# Registered before CORS so CORS stays the outermost layer
app.middleware("http")(api_key_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

register_exception_handlers(app)

app.include_router(openai_router)


@app.options("/")
async def handle_options():
    """Handle OPTIONS requests"""
    return Response(status_code=200)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": SERVICE_NAME,
        "version": "1.0.0",
        "endpoints": ["/v1/chat/completions", "/v1/completions", "/v1/models", "/health"],
    }


@app.get("/health")
async def health():
    """Health check endpoint (no auth)"""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import uvicorn
    import os
    import platform
    import multiprocessing

    if platform.system() == "Windows":
        workers = 1
    else:
        # (2 x CPU cores) + 1, overridable via UVICORN_WORKERS
        cpu_count = multiprocessing.cpu_count()
        default_workers = (2 * cpu_count) + 1
        workers = int(os.getenv("UVICORN_WORKERS", str(default_workers)))

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.LISTEN_PORT,
        workers=workers,
        http="httptools",
        reload=False,
        log_level="info",
    )
