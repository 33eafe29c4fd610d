import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cinevault.core.exceptions import InvalidTransitionError
from cinevault.models.user import User  # noqa: F401  (registers the owner mapper)
from cinevault.models.video import ProcessingStatus, Video
from cinevault.schemas.video import VideoCreate

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)

# Statuses a client may report, by current status. processing and completed
# are only ever set by ingestion.
CLIENT_TRANSITIONS = {
    ProcessingStatus.PENDING: {ProcessingStatus.UPLOADING, ProcessingStatus.FAILED},
    ProcessingStatus.UPLOADING: {ProcessingStatus.UPLOADING, ProcessingStatus.FAILED},
    ProcessingStatus.PROCESSING: set(),
    ProcessingStatus.COMPLETED: set(),
    ProcessingStatus.FAILED: set(),
}


class VideoService:

    @staticmethod
    async def create_video(db: AsyncSession, owner_id: int, data: VideoCreate) -> Video:
        """Create a pending Video record ahead of the file upload."""
        video = Video(
            owner_id=owner_id,
            title=data.title,
            description=data.description,
            original_filename=data.original_filename,
            file_size=data.file_size or 0,
            mime_type=data.mime_type,
            processing_status=ProcessingStatus.PENDING,
            processing_progress=0,
        )
        db.add(video)
        await db.commit()
        await db.refresh(video)
        logger.info(f"영상 레코드 생성: video_id={video.id}, owner_id={owner_id}")
        return video

    @staticmethod
    async def get_video(db: AsyncSession, video_id: str, owner_id: int) -> Video | None:
        """Fetch single video with ownership check."""
        stmt = select(Video).where(
            Video.id == video_id,
            Video.owner_id == owner_id
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def update_fields(
        db: AsyncSession,
        video_id: str,
        owner_id: int,
        **fields: Any
    ) -> int:
        """Apply all given column values in one UPDATE statement and commit.

        Returns the number of rows updated (0 when the video is not owned).
        """
        stmt = (
            update(Video)
            .where(Video.id == video_id, Video.owner_id == owner_id)
            .values(**fields)
        )
        result = await db.execute(stmt)
        await db.commit()
        return result.rowcount

    @staticmethod
    async def update_processing_status(
        db: AsyncSession,
        video: Video,
        status: ProcessingStatus,
        progress: int | None = None,
        error: str | None = None,
        checkpoint_seconds: float = 0.0,
    ) -> tuple[Video, bool]:
        """Record client-reported processing progress.

        Progress reports for an unchanged, non-terminal status are only
        written once ``checkpoint_seconds`` have passed since the last write.

        Raises:
            InvalidTransitionError: the report does not follow CLIENT_TRANSITIONS

        Returns:
            (video, persisted) where persisted tells whether a write happened.
        """
        if status not in CLIENT_TRANSITIONS[video.processing_status]:
            raise InvalidTransitionError(video.processing_status.value, status.value)

        same_status = video.processing_status == status
        terminal = status in TERMINAL_STATUSES or progress == 100
        if same_status and not terminal and error is None:
            updated_at = video.updated_at
            if updated_at.tzinfo is None:
                updated_at = updated_at.replace(tzinfo=timezone.utc)
            elapsed = (datetime.now(timezone.utc) - updated_at).total_seconds()
            if elapsed < checkpoint_seconds:
                return video, False

        fields: dict[str, Any] = {"processing_status": status}
        if progress is not None:
            fields["processing_progress"] = progress
        if error is not None:
            fields["processing_error"] = error

        await VideoService.update_fields(db, video.id, video.owner_id, **fields)
        await db.refresh(video)
        return video, True
