from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from cinevault.core.database import get_db
from cinevault.core.security import get_current_user_id
from cinevault.services import IngestionService, get_ingestion_service
from cinevault.schemas.video import IngestResponse, MetadataSummary

router = APIRouter()


@router.post("", response_model=IngestResponse)
async def upload_video(
    file: UploadFile | None = File(None),
    video_id: str | None = Form(None, alias="videoId"),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    """Upload the binary for a pre-created video and extract its metadata."""
    content = await file.read() if file is not None else None

    result = await ingestion.ingest(
        db=db,
        owner_id=user_id,
        video_id=video_id,
        filename=file.filename if file is not None else None,
        content=content,
    )

    return IngestResponse(
        url=result.stream_url,
        metadata=MetadataSummary(
            duration=result.metadata.duration,
            resolution=result.metadata.resolution,
            location=result.location_name,
            recorded_at=result.metadata.recorded_at,
        ),
    )
