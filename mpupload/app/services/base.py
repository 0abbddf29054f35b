from __future__ import annotations


class ServiceError(Exception):
    """Base class for application service level exceptions."""


class InvalidUploadRequestError(ServiceError):
    """Raised when upload parameters are rejected before any remote call."""
