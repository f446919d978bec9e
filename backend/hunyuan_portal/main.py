"""
FastAPI Entrypoint.

Responsibilities:
- Initialize FastAPI app
- Register routers (hunyuan, r2)
- Setup middleware (CORS) and logging
- Health check endpoints
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hunyuan_portal import __version__
from hunyuan_portal.core.config import get_settings
from hunyuan_portal.core.storage import is_configured as storage_configured
from hunyuan_portal.core.logger import setup_logger
from hunyuan_portal.routes import hunyuan, r2

setup_logger()
settings = get_settings()

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Proxy for Hunyuan3D generation on RunPod and the R2 artifact bucket",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(hunyuan.router)
app.include_router(r2.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "Hunyuan3D Portal is running"}


@app.get("/health")
async def health_check():
    """Reports which upstream services are configured."""
    current = get_settings()
    return {
        "status": "ok",
        "runpod_configured": current.is_runpod_configured(),
        "r2_configured": storage_configured(current),
    }
