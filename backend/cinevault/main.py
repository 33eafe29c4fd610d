import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse

from cinevault.config import get_settings
from cinevault.api import auth, videos, upload
from cinevault.core.database import engine, Base
from cinevault.core.exceptions import AuthError, CineVaultError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description="CineVault - self-hosted personal video library API",
)


@app.exception_handler(CineVaultError)
async def cinevault_exception_handler(request: Request, exc: CineVaultError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url} failed: {type(exc).__name__}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them."""
    logger.error(
        f"Unhandled error on {request.method} {request.url}: {type(exc).__name__}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # TODO: restrict to the web frontend origin once it has a fixed host
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix=f"{settings.api_prefix}/auth", tags=["auth"])
app.include_router(videos.router, prefix=f"{settings.api_prefix}/videos", tags=["videos"])
app.include_router(upload.router, prefix=f"{settings.api_prefix}/upload", tags=["upload"])

# Stored videos are served as-is; stream_url points here
app.mount(
    settings.stream_url_prefix,
    StaticFiles(directory=settings.videos_dir, check_dir=False),
    name="videos",
)


@app.on_event("startup")
async def startup():
    Path(settings.videos_dir).mkdir(parents=True, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": settings.app_name}
