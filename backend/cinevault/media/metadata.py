"""Video metadata normalization.

Turns raw ffprobe output into a :class:`VideoMetadata` record. Recording
devices disagree on tag names for GPS, camera and date information, so
each of those facets is read by an ordered list of extractors where the
first one that yields a value wins.
"""

import logging
import math
import re
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dateutil import parser as dateutil_parser

from cinevault.core.exceptions import ProbeFailure
from cinevault.media.probe import ProbeInvoker

logger = logging.getLogger(__name__)

# "+37.7749-122.4194+14.000/" -> latitude, longitude, optional altitude
ISO6709_PATTERN = re.compile(r"([+-]\d+\.\d+)([+-]\d+\.\d+)(?:([+-]\d+\.\d+))?")

# Device-specific keys carrying an ISO 6709 string, tried after "location"
ISO6709_TAG_KEYS = (
    "com.apple.quicktime.location.ISO6709",
    "location-eng",
    "location-iso6709",
)

RECORDED_AT_TAG_KEYS = (
    "creation_time",
    "date",
    "com.apple.quicktime.creationdate",
    "DateTimeOriginal",
    "CreateDate",
    "MediaCreateDate",
)

SOFTWARE_TAG_KEYS = ("encoder", "software", "handler_name", "com.apple.quicktime.software")

# EXIF writes dates as "2023:06:01 12:30:00"
_EXIF_DATE = re.compile(r"^(\d{4}):(\d{2}):(\d{2})(?=[ T]|$)")

_UNKNOWN_ASPECT_RATIOS = {"0:1", "N/A", ""}

# SQLite INTEGER is a signed 64-bit value
_MAX_INT = 2**63 - 1

# Two unrelated defaults; a date that parses differently under each was incomplete
_FILL_DEFAULTS = (datetime(2001, 2, 3), datetime(2004, 5, 6))


@dataclass
class VideoMetadata:
    # Video
    duration: int = 0
    width: int | None = None
    height: int | None = None
    frame_rate: float | None = None
    codec: str | None = None
    bitrate: int | None = None
    aspect_ratio: str | None = None

    # Audio
    audio_codec: str | None = None
    audio_channels: int | None = None
    audio_sample_rate: int | None = None
    audio_bitrate: int | None = None

    # GPS
    latitude: float | None = None
    longitude: float | None = None
    altitude: float | None = None

    # Camera/Device
    camera_make: str | None = None
    camera_model: str | None = None
    software: str | None = None

    recorded_at: datetime | None = None

    raw_metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "VideoMetadata":
        """Record used when probing failed: duration 0, everything else unset."""
        return cls()

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def resolution(self) -> str | None:
        if self.width and self.height:
            return f"{self.width}x{self.height}"
        return None

    def to_record(self) -> dict[str, Any]:
        """Column values for the Video model."""
        return asdict(self)


@dataclass(frozen=True)
class GPSCoordinates:
    latitude: float
    longitude: float
    altitude: float | None = None


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def _to_int(value: Any) -> int | None:
    """Parse an integer the way ffprobe prints them ("128000", 2, "44100")."""
    number = _to_float(value)
    if number is None or abs(number) > _MAX_INT:
        return None
    return int(number)


def _positive_int(value: Any) -> int | None:
    number = _to_int(value)
    return number if number and number > 0 else None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Derived video fields
# ---------------------------------------------------------------------------


def parse_frame_rate(value: Any) -> float | None:
    """Parse "30000/1001" or "29.97" into frames per second.

    Rational values are rounded to 2 decimal places. A zero denominator
    yields None.
    """
    text = _text(value)
    if text is None:
        return None
    if "/" in text:
        num_text, _, den_text = text.partition("/")
        num = _to_float(num_text)
        den = _to_float(den_text)
        if num is None or not den:
            return None
        return round(num / den, 2)
    return _to_float(text)


def compute_aspect_ratio(width: int | None, height: int | None) -> str | None:
    """Reduce width:height by their GCD. Missing or zero sides give None."""
    if not width or not height:
        return None
    divisor = math.gcd(width, height)
    return f"{width // divisor}:{height // divisor}"


def parse_duration(*candidates: Any) -> int:
    """First parseable candidate, rounded half-up to whole seconds."""
    for candidate in candidates:
        seconds = _to_float(candidate)
        if seconds is not None and seconds <= _MAX_INT:
            return max(0, math.floor(seconds + 0.5))
    return 0


def _aspect_ratio(video_stream: Mapping[str, Any] | None, width, height) -> str | None:
    if video_stream:
        declared = _text(video_stream.get("display_aspect_ratio"))
        if declared and declared not in _UNKNOWN_ASPECT_RATIOS:
            return declared
    return compute_aspect_ratio(width, height)


def _first_stream(streams: list[Any], codec_type: str) -> Mapping[str, Any] | None:
    for stream in streams:
        if isinstance(stream, Mapping) and stream.get("codec_type") == codec_type:
            return stream
    return None


# ---------------------------------------------------------------------------
# GPS
# ---------------------------------------------------------------------------


def parse_iso6709(value: Any) -> GPSCoordinates | None:
    """Parse an ISO 6709 location string such as "+37.7749-122.4194+14.000/"."""
    text = _text(value)
    if text is None:
        return None
    match = ISO6709_PATTERN.search(text)
    if not match:
        return None
    altitude = float(match.group(3)) if match.group(3) else None
    return GPSCoordinates(float(match.group(1)), float(match.group(2)), altitude)


def _gps_from_location_tag(tags: Mapping[str, Any]) -> GPSCoordinates | None:
    return parse_iso6709(tags.get("location"))


def _gps_from_device_tags(tags: Mapping[str, Any]) -> GPSCoordinates | None:
    for key in ISO6709_TAG_KEYS:
        coordinates = parse_iso6709(tags.get(key))
        if coordinates:
            return coordinates
    return None


def _gps_from_exif_tags(tags: Mapping[str, Any]) -> GPSCoordinates | None:
    latitude = _to_float(tags.get("GPSLatitude"))
    longitude = _to_float(tags.get("GPSLongitude"))
    if latitude is None or longitude is None:
        return None
    return GPSCoordinates(latitude, longitude, _to_float(tags.get("GPSAltitude")))


GPS_EXTRACTORS: tuple[Callable[[Mapping[str, Any]], GPSCoordinates | None], ...] = (
    _gps_from_location_tag,
    _gps_from_device_tags,
    _gps_from_exif_tags,
)


def parse_gps(tags: Mapping[str, Any]) -> GPSCoordinates | None:
    """Coordinates from the first tag dialect that matches, else None."""
    for extractor in GPS_EXTRACTORS:
        coordinates = extractor(tags)
        if coordinates is not None:
            return coordinates
    return None


# ---------------------------------------------------------------------------
# Recording date
# ---------------------------------------------------------------------------


def _parse_loose(text: str) -> datetime:
    """Free-form parse that refuses to fill in a missing year, month or day."""
    first, second = (dateutil_parser.parse(text, default=default) for default in _FILL_DEFAULTS)
    if first != second:
        raise ValueError(f"incomplete date: {text!r}")
    return first


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a tag timestamp into UTC. Values without an offset are taken as UTC.

    Values missing any date component (a bare time, a month name) give None.
    """
    text = _text(value)
    if text is None:
        return None
    text = _EXIF_DATE.sub(r"\1-\2-\3", text)
    try:
        try:
            parsed = dateutil_parser.isoparse(text)
        except ValueError:
            parsed = _parse_loose(text)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def parse_recorded_at(tags: Mapping[str, Any]) -> datetime | None:
    for key in RECORDED_AT_TAG_KEYS:
        recorded_at = parse_timestamp(tags.get(key))
        if recorded_at is not None:
            return recorded_at
    return None


# ---------------------------------------------------------------------------
# Camera / software
# ---------------------------------------------------------------------------


def _nested_tag(tags: Mapping[str, Any], *path: str) -> Any:
    node: Any = tags
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def _device_tag(tags: Mapping[str, Any], name: str) -> str | None:
    return (
        _text(tags.get(name))
        or _text(tags.get(f"com.apple.quicktime.{name}"))
        or _text(_nested_tag(tags, "com", "apple", "quicktime", name))
    )


def _software(tags: Mapping[str, Any]) -> str | None:
    for key in SOFTWARE_TAG_KEYS:
        value = _text(tags.get(key))
        if value:
            return value
    return None


# ---------------------------------------------------------------------------
# Raw snapshot
# ---------------------------------------------------------------------------

_RAW_FORMAT_KEYS = (
    "filename", "nb_streams", "format_name", "format_long_name",
    "duration", "size", "bit_rate", "tags",
)
_RAW_VIDEO_KEYS = (
    "codec_name", "codec_long_name", "profile", "width", "height",
    "display_aspect_ratio", "pix_fmt", "level", "color_space",
    "color_range", "r_frame_rate", "bit_rate", "tags",
)
_RAW_AUDIO_KEYS = (
    "codec_name", "codec_long_name", "sample_rate", "channels",
    "channel_layout", "bit_rate", "tags",
)


def _pick(source: Mapping[str, Any] | None, keys: tuple[str, ...]) -> dict[str, Any] | None:
    if source is None:
        return None
    return {key: source.get(key) for key in keys}


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def normalize_probe_output(probe_data: Mapping[str, Any]) -> VideoMetadata:
    """Build a VideoMetadata record from ffprobe JSON output.

    Pure function of its input: the same probe output always gives an
    equal record.
    """
    format_section = probe_data.get("format") or {}
    if not isinstance(format_section, Mapping):
        format_section = {}
    streams = probe_data.get("streams") or []
    if not isinstance(streams, list):
        streams = []

    video_stream = _first_stream(streams, "video")
    audio_stream = _first_stream(streams, "audio")
    tags = format_section.get("tags") or {}
    if not isinstance(tags, Mapping):
        tags = {}

    video = video_stream or {}
    audio = audio_stream or {}

    width = _positive_int(video.get("width"))
    height = _positive_int(video.get("height"))

    frame_rate = parse_frame_rate(video.get("r_frame_rate"))
    if frame_rate is None:
        frame_rate = parse_frame_rate(video.get("avg_frame_rate"))

    bitrate = _to_int(format_section.get("bit_rate"))
    if bitrate is None:
        bitrate = _to_int(video.get("bit_rate"))

    gps = parse_gps(tags)

    return VideoMetadata(
        duration=parse_duration(format_section.get("duration"), video.get("duration")),
        width=width,
        height=height,
        frame_rate=frame_rate,
        codec=_text(video.get("codec_name")),
        bitrate=bitrate,
        aspect_ratio=_aspect_ratio(video_stream, width, height),
        audio_codec=_text(audio.get("codec_name")),
        audio_channels=_positive_int(audio.get("channels")),
        audio_sample_rate=_to_int(audio.get("sample_rate")),
        audio_bitrate=_to_int(audio.get("bit_rate")),
        latitude=gps.latitude if gps else None,
        longitude=gps.longitude if gps else None,
        altitude=gps.altitude if gps else None,
        camera_make=_device_tag(tags, "make"),
        camera_model=_device_tag(tags, "model"),
        software=_software(tags),
        recorded_at=parse_recorded_at(tags),
        raw_metadata={
            "format": _pick(format_section, _RAW_FORMAT_KEYS),
            "video": _pick(video_stream, _RAW_VIDEO_KEYS),
            "audio": _pick(audio_stream, _RAW_AUDIO_KEYS),
        },
    )


async def extract_video_metadata(path: Path, invoker: ProbeInvoker) -> VideoMetadata:
    """Probe a stored file and normalize the result.

    Probe and normalization failures are logged and turned into an empty
    record; this never raises for a stored file.
    """
    try:
        probe_data = await invoker.probe(path)
    except ProbeFailure as e:
        logger.warning(f"메타데이터 추출 실패, 빈 메타데이터 사용: path={path}, error={e}")
        return VideoMetadata.empty()

    try:
        return normalize_probe_output(probe_data)
    except Exception:
        logger.exception(f"ffprobe 출력 정규화 실패, 빈 메타데이터 사용: path={path}")
        return VideoMetadata.empty()


def format_bitrate(bps: int | None) -> str:
    """Human readable bitrate, e.g. "8.5 Mbps"."""
    if not bps:
        return "Unknown"
    if bps >= 1_000_000:
        return f"{bps / 1_000_000:.1f} Mbps"
    if bps >= 1_000:
        return f"{bps / 1_000:.0f} Kbps"
    return f"{bps} bps"
