import logging
from functools import lru_cache
from pathlib import Path

import aiofiles

from cinevault.config import get_settings
from cinevault.core.exceptions import StorageFailure

logger = logging.getLogger(__name__)


class VideoStorage:
    """Local durable store for uploaded video binaries.

    Files are keyed by video id and the original extension, so a retried
    upload for the same video overwrites the earlier file.
    """

    def __init__(self, root: Path, url_prefix: str, default_extension: str = ".mp4"):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")
        self.default_extension = default_extension

    def build_filename(self, video_id: str, original_filename: str | None) -> str:
        ext = Path(original_filename or "").suffix
        return f"{video_id}{ext or self.default_extension}"

    def public_url(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    async def save(self, video_id: str, original_filename: str | None, content: bytes) -> Path:
        """영상 파일 저장. 파일이 완전히 기록된 뒤에만 반환."""
        filename = self.build_filename(video_id, original_filename)
        path = self.root / filename
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
                await f.flush()
        except OSError as e:
            logger.error(f"영상 파일 저장 실패: path={path}, error={e}")
            raise StorageFailure(str(path), str(e)) from e
        logger.info(f"영상 파일 저장 완료: path={path}, bytes={len(content)}")
        return path


@lru_cache
def get_video_storage() -> VideoStorage:
    settings = get_settings()
    return VideoStorage(
        root=Path(settings.videos_dir),
        url_prefix=settings.stream_url_prefix,
        default_extension=settings.default_video_extension,
    )
