from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cinevault.config import get_settings
from cinevault.core.database import get_db
from cinevault.core.exceptions import NotFoundError
from cinevault.core.security import get_current_user_id
from cinevault.services import VideoService
from cinevault.schemas.video import VideoCreate, VideoResponse, ProcessingUpdate

settings = get_settings()
router = APIRouter()


@router.post("/", response_model=VideoResponse, status_code=201)
async def create_video(
    video_in: VideoCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a pending video record; the file is sent to /upload afterwards."""
    return await VideoService.create_video(db=db, owner_id=user_id, data=video_in)


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(
    video_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get a specific video by ID."""
    video = await VideoService.get_video(db=db, video_id=video_id, owner_id=user_id)
    if not video:
        raise NotFoundError(video_id)
    return video


@router.patch("/{video_id}/processing", response_model=VideoResponse)
async def update_processing(
    video_id: str,
    update_in: ProcessingUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Record upload/processing progress reported by the client."""
    video = await VideoService.get_video(db=db, video_id=video_id, owner_id=user_id)
    if not video:
        raise NotFoundError(video_id)

    video, _ = await VideoService.update_processing_status(
        db=db,
        video=video,
        status=update_in.status,
        progress=update_in.progress,
        error=update_in.error,
        checkpoint_seconds=settings.progress_checkpoint_seconds,
    )
    return video
