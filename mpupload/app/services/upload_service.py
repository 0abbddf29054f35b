"""Multipart upload orchestration.

This module drives one object upload through the multipart protocol of a
``StorageClient``: begin a session, upload every part in order, then
complete it. Once a session exists, any failure aborts it exactly once, and
the failure that triggered the abort is what the caller sees.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from mpupload.app.services.base import InvalidUploadRequestError, ServiceError
from mpupload.app.services.content import ContentSource, random_content
from mpupload.infra.observability.metrics import (
    ABORTS,
    PART_BYTES,
    PART_LATENCY,
    PARTS,
    UPLOADS,
)
from mpupload.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    StorageClient,
    UploadIdMissingError,
)

logger = logging.getLogger(__name__)

# Maximum part number allowed by S3
MAX_PART_NUMBER = 10000


class UploadStatus(Enum):
    """Terminal result of one orchestrator run."""

    SUCCESS = "success"
    FAILED = "failed"


class SessionState(Enum):
    """Furthest lifecycle state a multipart session reached during a run."""

    IDLE = "idle"
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class UploadTarget:
    """Destination of an upload."""

    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class PartSpec:
    """One part to upload."""

    part_number: int
    size_bytes: int


class UploadError(ServiceError):
    """Base class for failures of an upload run.

    The message names the destination; the triggering exception is kept on
    ``cause`` and chained as ``__cause__`` by the raiser.
    """

    def __init__(self, target: UploadTarget, cause: BaseException) -> None:
        super().__init__(f"Bucket: {target.bucket}, key: {target.object_key}, {cause}")
        self.target = target
        self.cause = cause


class SessionCreationFailed(UploadError):
    """Raised when the store rejects the request to begin a session."""


class SessionTokenMissing(SessionCreationFailed):
    """Raised when the store begins a session but returns no upload id."""


class PartUploadFailed(UploadError):
    """Raised when a part could not be produced or transmitted."""

    def __init__(
        self, target: UploadTarget, cause: BaseException, *, part_number: int
    ) -> None:
        super().__init__(target, cause)
        self.part_number = part_number


class FinalizationFailed(UploadError):
    """Raised when completing the session fails after every part succeeded."""


class AbortFailed(UploadError):
    """Describes a failed abort. Logged, never raised to callers."""


@dataclass(frozen=True, slots=True)
class UploadOutcome:
    """Result of ``UploadOrchestrator.run``.

    ``upload_id`` is set whenever a session was created, so a failed run
    still names its session. When the abort of that session was refused,
    ``state`` stays ``IN_PROGRESS`` and ``cleanup_failed`` is true: the
    session may still hold uploaded parts on the store.
    """

    status: UploadStatus
    target: UploadTarget
    state: SessionState
    upload_id: str | None = None
    error: UploadError | None = None
    parts: tuple[CompletedPart, ...] = ()

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.SUCCESS

    @property
    def cleanup_failed(self) -> bool:
        return self.upload_id is not None and self.state == SessionState.IN_PROGRESS

    @classmethod
    def ok(
        cls, target: UploadTarget, upload_id: str, parts: Sequence[CompletedPart]
    ) -> "UploadOutcome":
        return cls(
            status=UploadStatus.SUCCESS,
            target=target,
            state=SessionState.COMPLETED,
            upload_id=upload_id,
            parts=tuple(parts),
        )

    @classmethod
    def fail(
        cls,
        target: UploadTarget,
        error: UploadError,
        *,
        upload_id: str | None = None,
        parts: Sequence[CompletedPart] = (),
        aborted: bool = True,
    ) -> "UploadOutcome":
        if upload_id is None:
            state = SessionState.IDLE
        elif aborted:
            state = SessionState.ABORTED
        else:
            state = SessionState.IN_PROGRESS
        return cls(
            status=UploadStatus.FAILED,
            target=target,
            state=state,
            upload_id=upload_id,
            error=error,
            parts=tuple(parts),
        )

    def raise_for_status(self) -> None:
        """Raise the carried error if the run failed."""
        if self.error is not None:
            raise self.error


def plan_parts(part_sizes: Sequence[int]) -> list[PartSpec]:
    """Number the requested sizes 1..N in the given order.

    Raises:
        InvalidUploadRequestError: If the sequence is empty, too long, or
            holds a size that is not a positive integer.
    """
    if not part_sizes:
        raise InvalidUploadRequestError("at least one part size is required")
    if len(part_sizes) > MAX_PART_NUMBER:
        raise InvalidUploadRequestError(
            f"Cannot upload more than {MAX_PART_NUMBER} parts"
        )
    plan: list[PartSpec] = []
    for part_number, size in enumerate(part_sizes, start=1):
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise InvalidUploadRequestError(
                f"part {part_number}: size must be a positive integer, got {size!r}"
            )
        plan.append(PartSpec(part_number=part_number, size_bytes=size))
    return plan


class UploadOrchestrator:
    """Uploads one object per ``run`` call through a multipart session.

    The orchestrator keeps no state between runs. Parts are sent strictly
    one after another; the first failure ends the run.
    """

    def __init__(
        self,
        storage: StorageClient,
        *,
        content_source: ContentSource = random_content,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        self._storage = storage
        self._content_source = content_source
        self._content_type = content_type
        self._metadata = metadata

    def run(self, target: UploadTarget, part_sizes: Sequence[int]) -> UploadOutcome:
        """Upload ``len(part_sizes)`` parts to ``target`` and complete the object.

        Args:
            target: Destination bucket and key.
            part_sizes: Byte length of each part, in transmission order.

        Returns:
            UploadOutcome. On failure it carries the error of the begin, part
            or finalize call that failed, never an error from the abort.

        Raises:
            InvalidUploadRequestError: If ``part_sizes`` is rejected. No
                remote call is made in that case.
        """
        plan = plan_parts(part_sizes)

        try:
            upload = self._begin(target)
        except SessionCreationFailed as exc:
            logger.warning(
                "Could not begin multipart upload",
                extra={"extra": {"bucket": target.bucket, "object_key": target.object_key}},
            )
            UPLOADS.labels(outcome="failed").inc()
            return UploadOutcome.fail(target, exc)

        completed: list[CompletedPart] = []
        try:
            for part in plan:
                completed.append(self._upload_part(upload, target, part))
            self._finalize(upload, target, completed)
        except UploadError as exc:
            logger.warning(
                "Multipart upload %s failed, aborting",
                upload.upload_id,
                extra={"extra": {"bucket": target.bucket, "object_key": target.object_key}},
            )
            aborted = self._abort(upload, target)
            UPLOADS.labels(outcome="failed").inc()
            return UploadOutcome.fail(
                target,
                exc,
                upload_id=upload.upload_id,
                parts=completed,
                aborted=aborted,
            )
        except BaseException:
            # Interrupted (e.g. KeyboardInterrupt): release the session, then let it propagate.
            self._abort(upload, target)
            UPLOADS.labels(outcome="interrupted").inc()
            raise

        UPLOADS.labels(outcome="success").inc()
        logger.info(
            "Uploaded %s in %d parts",
            target.object_key,
            len(completed),
            extra={
                "extra": {
                    "bucket": target.bucket,
                    "object_key": target.object_key,
                    "upload_id": upload.upload_id,
                    "parts": len(completed),
                }
            },
        )
        return UploadOutcome.ok(target, upload.upload_id, completed)

    def _begin(self, target: UploadTarget) -> MultipartUpload:
        try:
            upload = self._storage.init_multipart_upload(
                bucket=target.bucket,
                object_key=target.object_key,
                content_type=self._content_type,
                metadata=self._metadata,
            )
        except UploadIdMissingError as exc:
            raise SessionTokenMissing(target, exc) from exc
        except Exception as exc:
            raise SessionCreationFailed(target, exc) from exc

        if upload is None or not upload.upload_id:
            cause = UploadIdMissingError("Unable to extract upload id")
            raise SessionTokenMissing(target, cause) from cause

        logger.info(
            "Began multipart upload %s",
            upload.upload_id,
            extra={
                "extra": {
                    "bucket": target.bucket,
                    "object_key": target.object_key,
                    "upload_id": upload.upload_id,
                }
            },
        )
        return upload

    def _upload_part(
        self, upload: MultipartUpload, target: UploadTarget, part: PartSpec
    ) -> CompletedPart:
        try:
            body = self._content_source(part.size_bytes)
            if len(body) != part.size_bytes:
                raise ValueError(
                    f"content source returned {len(body)} bytes, expected {part.size_bytes}"
                )
            with PART_LATENCY.time():
                etag = self._storage.upload_part(
                    bucket=target.bucket,
                    object_key=target.object_key,
                    upload_id=upload.upload_id,
                    part_number=part.part_number,
                    body=body,
                )
        except Exception as exc:
            PARTS.labels(status="failed").inc()
            raise PartUploadFailed(target, exc, part_number=part.part_number) from exc

        PARTS.labels(status="uploaded").inc()
        PART_BYTES.inc(part.size_bytes)
        logger.debug(
            "Uploaded part %d (%d bytes)",
            part.part_number,
            part.size_bytes,
            extra={
                "extra": {
                    "upload_id": upload.upload_id,
                    "part_number": part.part_number,
                    "size_bytes": part.size_bytes,
                    "etag": etag,
                }
            },
        )
        return CompletedPart(part_number=part.part_number, etag=etag)

    def _finalize(
        self,
        upload: MultipartUpload,
        target: UploadTarget,
        parts: Sequence[CompletedPart],
    ) -> None:
        try:
            self._storage.complete_multipart_upload(
                bucket=target.bucket,
                object_key=target.object_key,
                upload_id=upload.upload_id,
                parts=list(parts),
            )
        except Exception as exc:
            raise FinalizationFailed(target, exc) from exc

    def _abort(self, upload: MultipartUpload, target: UploadTarget) -> bool:
        """Abort the session and report whether the store accepted it.

        Failures are logged and counted, never raised.
        """
        try:
            self._storage.abort_multipart_upload(
                bucket=target.bucket,
                object_key=target.object_key,
                upload_id=upload.upload_id,
            )
        except Exception as exc:
            ABORTS.labels(result="failed").inc()
            logger.warning(
                "Abort of multipart upload %s failed: %s",
                upload.upload_id,
                AbortFailed(target, exc),
                extra={
                    "extra": {
                        "bucket": target.bucket,
                        "object_key": target.object_key,
                        "upload_id": upload.upload_id,
                    }
                },
            )
            return False

        ABORTS.labels(result="aborted").inc()
        logger.info("Aborted multipart upload %s", upload.upload_id)
        return True
