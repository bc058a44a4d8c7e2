"""Chunk receiver: validate, store and record one incoming chunk."""

import logging
from dataclasses import dataclass
from typing import Any

from django.conf import settings
from django.core.files.base import File as DjangoFile
from django.db.models import Q
from django.utils import timezone

from server.apps.files.logic.file_operations import get_storage
from server.apps.files.models import File
from server.apps.uploads.exceptions import (
    UploadStateError,
    UploadStorageError,
    UploadValidationError,
)
from server.apps.uploads.logic import ledger
from server.apps.uploads.logic.merge_operations import merge_chunks
from server.apps.uploads.logic.session_operations import (
    get_session,
    is_instant_token,
    resolve_instant_file,
)
from server.apps.uploads.models import FileChunk, UploadSession

# User type for Django's dynamic user model
_User = Any

# Raw bytes in tests and internal callers, UploadedFile from the API
ChunkContent = bytes | DjangoFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChunkUploadRequest:
    """Parameters of one chunk submission."""

    upload_id: str
    chunk_number: int
    total_chunks: int
    is_last_chunk: bool = False


@dataclass(frozen=True)
class ChunkUploadResult:
    """Outcome of one chunk submission.

    ``file`` is only set when the request finalized the upload, either
    by merging or through an instant-upload token.
    """

    filename: str
    chunk_number: int
    file: File | None = None
    already_uploaded: bool = False
    instant: bool = False

    @property
    def completed(self) -> bool:
        """Whether the whole file is available."""
        return self.file is not None


def get_max_chunks() -> int:
    """Upper bound for the number of chunks of one upload."""
    return getattr(settings, 'UPLOAD_MAX_CHUNKS', 10000)


def get_max_chunk_size() -> int:
    """Largest accepted chunk, in bytes."""
    return getattr(settings, 'UPLOAD_CHUNK_SIZE', 5 * 1024 * 1024)


def _chunk_size(chunk: ChunkContent | None) -> int:
    if chunk is None:
        return 0
    if isinstance(chunk, bytes):
        return len(chunk)
    return chunk.size or 0


def validate_chunk_request(
    request: ChunkUploadRequest,
    chunk: ChunkContent | None,
) -> None:
    """Check chunk parameters, each problem with its own message.

    Raises:
        UploadValidationError: On the first failed check.
    """
    if _chunk_size(chunk) == 0:
        raise UploadValidationError('Chunk data must not be empty')
    if request.chunk_number < 0:
        raise UploadValidationError('Chunk number must not be negative')
    if request.total_chunks <= 0:
        raise UploadValidationError('Total chunks must be positive')
    if request.chunk_number >= request.total_chunks:
        raise UploadValidationError(
            f'Chunk number {request.chunk_number} is out of range '
            f'(total {request.total_chunks})',
        )
    if request.total_chunks > get_max_chunks():
        raise UploadValidationError(
            f'Too many chunks: {request.total_chunks} (max {get_max_chunks()})',
        )
    if _chunk_size(chunk) > get_max_chunk_size():
        raise UploadValidationError(
            f'Chunk of {_chunk_size(chunk)} bytes exceeds the chunk size '
            f'limit ({get_max_chunk_size()} bytes)',
        )


def upload_chunk(
    user: _User,
    request: ChunkUploadRequest,
    chunk: ChunkContent | None,
) -> ChunkUploadResult:
    """Receive one chunk of an upload.

    Writes the chunk to storage, records it in the ledger and, when
    the client flags it as the last one, merges the upload inline.

    Args:
        user: Uploading user.
        request: Chunk parameters.
        chunk: Chunk bytes.

    Returns:
        Per-chunk acknowledgement, or the finalized file.

    Raises:
        UploadValidationError: If chunk parameters are malformed.
        UploadNotFoundError: If the session or instant file is unknown.
        UploadStateError: If the session no longer accepts chunks.
        UploadStorageError: If the chunk could not be stored.
    """
    validate_chunk_request(request, chunk)

    if is_instant_token(request.upload_id):
        existing = resolve_instant_file(user, request.upload_id)
        return ChunkUploadResult(
            filename=existing.name,
            chunk_number=request.chunk_number,
            file=existing,
            instant=True,
        )

    session = get_session(user, request.upload_id)
    existing_chunk = ledger.find_chunk(session.upload_id, request.chunk_number)
    if existing_chunk is not None and (
        existing_chunk.status == FileChunk.Status.COMPLETED
    ):
        logger.info(
            'Chunk already uploaded: upload_id=%s, chunk=%d',
            session.upload_id,
            request.chunk_number,
        )
        return ChunkUploadResult(
            filename=session.file_name,
            chunk_number=request.chunk_number,
            already_uploaded=True,
        )

    _accept_chunk_count(session, request.total_chunks)
    _store_chunk(user, session, request.chunk_number, chunk)
    return _finish(user, session, request)


def _finish(
    user: _User,
    session: UploadSession,
    request: ChunkUploadRequest,
) -> ChunkUploadResult:
    if not request.is_last_chunk:
        return ChunkUploadResult(
            filename=session.file_name,
            chunk_number=request.chunk_number,
        )

    logger.info(
        'Last chunk received, merging upload: %s',
        session.upload_id,
    )
    merged = merge_chunks(user, session.upload_id)
    return ChunkUploadResult(
        filename=session.file_name,
        chunk_number=request.chunk_number,
        file=merged,
    )


def _accept_chunk_count(session: UploadSession, total_chunks: int) -> None:
    """Move the session to RECEIVING and pin its chunk count.

    The transition is conditional on the stored row, so a request that
    loaded the session before a merge claimed it cannot undo the claim.
    """
    accepted = UploadSession.objects.filter(
        Q(total_chunks__isnull=True) | Q(total_chunks=total_chunks),
        pk=session.pk,
        state__in=UploadSession.RECEIVING_STATES,
    ).update(
        state=UploadSession.State.RECEIVING,
        total_chunks=total_chunks,
        updated_at=timezone.now(),
    )
    session.refresh_from_db(fields=['state', 'total_chunks', 'updated_at'])
    if accepted:
        return

    if not session.accepts_chunks:
        raise UploadStateError(
            f'Upload {session.upload_id} is {session.state.lower()} '
            'and accepts no more chunks',
        )
    raise UploadValidationError(
        f'Total chunks changed from {session.total_chunks} '
        f'to {total_chunks}',
    )


def _store_chunk(
    user: _User,
    session: UploadSession,
    chunk_number: int,
    chunk: ChunkContent | None,
) -> None:
    """Write the chunk blob and flip its ledger row to COMPLETED.

    A failure leaves the row in UPLOADING, so a retry rewrites the blob.
    """
    size = _chunk_size(chunk)
    try:
        chunk_record = ledger.record_uploading(session, chunk_number, size, user)
        get_storage().put(chunk_record.storage_key, chunk, size=size)
        ledger.mark_completed(chunk_record)
    except Exception as error:
        logger.exception(
            'Failed to upload chunk: upload_id=%s, chunk=%d',
            session.upload_id,
            chunk_number,
        )
        raise UploadStorageError(
            f'Failed to store chunk {chunk_number} of upload '
            f'{session.upload_id}: {error}',
        ) from error

    logger.info(
        'Chunk uploaded: upload_id=%s, chunk=%d, size=%d',
        session.upload_id,
        chunk_number,
        size,
    )


def check_chunk_uploaded(user: _User, upload_id: str, chunk_number: int) -> bool:
    """Whether a chunk is already durably stored (for client resume)."""
    if is_instant_token(upload_id):
        return True
    session = get_session(user, upload_id)
    chunk = ledger.find_chunk(session.upload_id, chunk_number)
    return chunk is not None and chunk.status == FileChunk.Status.COMPLETED


def list_uploaded_chunks(user: _User, upload_id: str) -> list[int]:
    """Sorted numbers of the completed chunks (for client resume)."""
    if is_instant_token(upload_id):
        return []
    session = get_session(user, upload_id)
    return ledger.completed_chunk_numbers(session.upload_id)
