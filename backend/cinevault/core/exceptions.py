"""Custom exception classes for the application."""


class CineVaultError(Exception):
    """Base class for errors surfaced to API callers.

    Carries the HTTP status the global handler responds with.
    """

    status_code = 500

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class AuthError(CineVaultError):
    """Raised when the bearer token is missing or invalid."""

    status_code = 401

    def __init__(self, detail: str = "인증이 필요합니다"):
        super().__init__(detail)


class NotFoundError(CineVaultError):
    """Raised when a video does not exist or belongs to someone else."""

    status_code = 404

    def __init__(self, video_id: str):
        self.video_id = video_id
        super().__init__("영상을 찾을 수 없거나 접근 권한이 없습니다")


class ValidationError(CineVaultError):
    """Raised when an upload request is missing required parts."""

    status_code = 400


class StorageFailure(CineVaultError):
    """Raised when the uploaded file cannot be written to disk."""

    status_code = 500

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"영상 파일 저장 실패: {reason}")


class IngestionError(CineVaultError):
    """Raised when a step after the file was stored fails; the video is marked failed."""

    status_code = 500


class InvalidTransitionError(CineVaultError):
    """Raised when a client status report does not follow the processing flow."""

    status_code = 409

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"처리 상태를 {current}에서 {requested}(으)로 변경할 수 없습니다")


class ProbeFailure(Exception):
    """Raised when ffprobe cannot run or returns unusable output.

    Never reaches the caller; metadata extraction degrades to an empty record.
    """


class GeocodeFailure(Exception):
    """Raised on network, status or parse errors from the geocoding service.

    Never reaches the caller; the location name degrades to None.
    """


class EmailAlreadyExistsError(Exception):
    """Raised when attempting to register with an email that already exists."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email already registered: {email}")


class UsernameAlreadyExistsError(Exception):
    """Raised when attempting to register with a username that already exists."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username already taken: {username}")


class InvalidCredentialsError(Exception):
    """Raised when authentication fails due to invalid email or password."""

    def __init__(self):
        super().__init__("Invalid email or password")
