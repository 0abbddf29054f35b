from .base import InvalidUploadRequestError, ServiceError
from .content import ContentSource, FileContentSource, random_content, seeded_content
from .upload_service import (
    AbortFailed,
    FinalizationFailed,
    PartSpec,
    PartUploadFailed,
    SessionCreationFailed,
    SessionState,
    SessionTokenMissing,
    UploadError,
    UploadOrchestrator,
    UploadOutcome,
    UploadStatus,
    UploadTarget,
    plan_parts,
)

__all__ = [
    "ServiceError",
    "InvalidUploadRequestError",
    "UploadError",
    "SessionCreationFailed",
    "SessionTokenMissing",
    "PartUploadFailed",
    "FinalizationFailed",
    "AbortFailed",
    "UploadOrchestrator",
    "UploadOutcome",
    "UploadStatus",
    "SessionState",
    "UploadTarget",
    "PartSpec",
    "plan_parts",
    "ContentSource",
    "FileContentSource",
    "random_content",
    "seeded_content",
]
