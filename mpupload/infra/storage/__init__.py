"""Object storage abstraction layer.

This module provides a protocol-based abstraction for the multipart upload
calls of S3, MinIO, and other S3-compatible services.
"""

from .client import (
    CompletedPart,
    MultipartUpload,
    StorageClient,
    StorageError,
    UploadIdMissingError,
)

__all__ = [
    "CompletedPart",
    "MultipartUpload",
    "StorageClient",
    "StorageError",
    "UploadIdMissingError",
]
