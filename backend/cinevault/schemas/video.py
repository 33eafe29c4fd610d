from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from cinevault.media.metadata import format_bitrate
from cinevault.models.video import ProcessingStatus


class VideoCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    original_filename: str | None = None
    file_size: int | None = Field(default=None, ge=0)
    mime_type: str | None = None


class ProcessingUpdate(BaseModel):
    status: ProcessingStatus
    progress: int | None = Field(default=None, ge=0, le=100)
    error: str | None = None


class VideoResponse(BaseModel):
    id: str
    title: str
    description: str | None
    original_filename: str | None
    file_size: int
    mime_type: str | None
    stream_url: str | None

    duration: int
    width: int | None
    height: int | None
    frame_rate: float | None
    codec: str | None
    bitrate: int | None
    aspect_ratio: str | None

    audio_codec: str | None
    audio_channels: int | None
    audio_sample_rate: int | None
    audio_bitrate: int | None

    latitude: float | None
    longitude: float | None
    altitude: float | None
    location_name: str | None

    camera_make: str | None
    camera_model: str | None
    software: str | None
    recorded_at: datetime | None

    processing_status: ProcessingStatus
    processing_progress: int
    processing_error: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def bitrate_label(self) -> str:
        """Bitrate for display, e.g. "45.0 Mbps"."""
        return format_bitrate(self.bitrate)


class MetadataSummary(BaseModel):
    duration: int
    resolution: str | None
    location: str | None
    recorded_at: datetime | None = Field(serialization_alias="recordedAt")


class IngestResponse(BaseModel):
    success: bool = True
    url: str
    metadata: MetadataSummary
