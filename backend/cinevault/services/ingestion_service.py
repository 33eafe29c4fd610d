"""영상 업로드 수집(ingestion) 서비스.

Stores an uploaded video, extracts its metadata, resolves the recording
location and completes the Video record in a single update.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cinevault.config import get_settings
from cinevault.core.exceptions import IngestionError, NotFoundError, ValidationError
from cinevault.core.storage import VideoStorage, get_video_storage
from cinevault.media.geocode import GeocodeResolver, get_geocode_resolver
from cinevault.media.metadata import VideoMetadata, extract_video_metadata
from cinevault.media.probe import ProbeInvoker, get_probe_invoker
from cinevault.models.video import ProcessingStatus
from cinevault.services.video_service import VideoService

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    video_id: str
    storage_path: str
    stream_url: str
    metadata: VideoMetadata
    location_name: str | None


class IngestionService:
    """Drives a video from its pre-upload state to ``completed``.

    Only validation, ownership and the file write can fail the request.
    Once the file is stored, probing and geocoding are best effort.
    """

    def __init__(
        self,
        storage: VideoStorage,
        probe: ProbeInvoker,
        geocoder: GeocodeResolver,
        max_upload_bytes: int,
    ) -> None:
        self.storage = storage
        self.probe = probe
        self.geocoder = geocoder
        self.max_upload_bytes = max_upload_bytes

    def validate(self, video_id: str | None, content: bytes | None) -> None:
        if not video_id or content is None:
            raise ValidationError("파일 또는 videoId가 누락되었습니다")
        if not content:
            raise ValidationError("빈 파일은 업로드할 수 없습니다")
        if len(content) > self.max_upload_bytes:
            raise ValidationError(
                f"파일 크기가 {self.max_upload_bytes // (1024 * 1024)}MB를 초과합니다"
            )

    async def ingest(
        self,
        db: AsyncSession,
        owner_id: int,
        video_id: str | None,
        filename: str | None,
        content: bytes | None,
    ) -> IngestionResult:
        """
        업로드된 영상을 저장하고 메타데이터를 기록.

        Args:
            db: 비동기 데이터베이스 세션
            owner_id: 요청 사용자 ID
            video_id: 미리 생성된 영상 ID
            filename: 원본 파일명 (확장자 결정에 사용)
            content: 업로드된 파일 내용

        Returns:
            IngestionResult with the public stream URL and extracted metadata.

        Raises:
            ValidationError: 파일 또는 videoId 누락
            NotFoundError: 영상이 없거나 소유자가 아닐 때
            StorageFailure: 파일 저장 실패 (레코드는 변경되지 않음)
            IngestionError: 파일 저장 이후 단계 실패 (레코드는 failed로 기록)
        """
        self.validate(video_id, content)

        video = await VideoService.get_video(db, video_id, owner_id)
        if not video:
            raise NotFoundError(video_id)

        # 파일 저장 (실패 시 DB 상태는 그대로 둠)
        path = await self.storage.save(video_id, filename, content)
        stream_url = self.storage.public_url(path.name)

        try:
            await VideoService.update_fields(
                db, video_id, owner_id, processing_status=ProcessingStatus.PROCESSING
            )

            metadata = await extract_video_metadata(path, self.probe)
            logger.info(
                f"메타데이터 추출 완료: video_id={video_id}, duration={metadata.duration}, "
                f"resolution={metadata.resolution}, gps={metadata.has_location}"
            )

            location_name = None
            if metadata.has_location:
                location_name = await self.geocoder.resolve(metadata.latitude, metadata.longitude)
                logger.info(f"위치 확인: video_id={video_id}, location={location_name}")

            await VideoService.update_fields(
                db,
                video_id,
                owner_id,
                storage_path=str(path),
                stream_url=stream_url,
                file_size=len(content),
                processing_status=ProcessingStatus.COMPLETED,
                processing_progress=100,
                processing_error=None,
                location_name=location_name,
                **metadata.to_record(),
            )
        except Exception as e:
            logger.exception(f"영상 처리 실패: video_id={video_id}")
            await self._mark_failed(db, video_id, owner_id, str(e) or type(e).__name__)
            raise IngestionError("영상 처리 결과를 저장하지 못했습니다") from e

        logger.info(f"영상 처리 완료: video_id={video_id}, url={stream_url}")
        return IngestionResult(
            video_id=video_id,
            storage_path=str(path),
            stream_url=stream_url,
            metadata=metadata,
            location_name=location_name,
        )

    @staticmethod
    async def _mark_failed(db: AsyncSession, video_id: str, owner_id: int, error: str) -> None:
        try:
            await db.rollback()
            await VideoService.update_fields(
                db,
                video_id,
                owner_id,
                processing_status=ProcessingStatus.FAILED,
                processing_error=error,
            )
        except SQLAlchemyError:
            await db.rollback()
            logger.exception(f"실패 상태 기록 실패: video_id={video_id}")


def get_ingestion_service() -> IngestionService:
    settings = get_settings()
    return IngestionService(
        storage=get_video_storage(),
        probe=get_probe_invoker(),
        geocoder=get_geocode_resolver(),
        max_upload_bytes=settings.max_upload_size_mb * 1024 * 1024,
    )
