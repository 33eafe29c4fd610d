"""Business logic services layer."""

from .auth_service import AuthService
from .video_service import VideoService
from .ingestion_service import IngestionService, IngestionResult, get_ingestion_service

__all__ = [
    "AuthService",
    "VideoService",
    "IngestionService",
    "IngestionResult",
    "get_ingestion_service",
]
