"""Merge engine: turn a complete chunk ledger into one finalized file.

The merge is all-or-nothing. Chunks are read back in chunk-number
order into a spooled buffer while the whole-file hash is computed,
the hash is checked against the declared one, and only then the
merged object is written and the File record created. Any failure
leaves the ledger rows COMPLETED so the merge can be retried.
"""

import logging
from collections.abc import Sequence
from tempfile import SpooledTemporaryFile
from typing import IO, TYPE_CHECKING, Any, Final

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from server.apps.files.infrastructure.metadata import (
    build_storage_key,
    new_hasher,
    normalize_hash,
)
from server.apps.files.logic.file_operations import (
    create_file_record,
    get_storage,
)
from server.apps.files.logic.quota_operations import increment_usage
from server.apps.files.models import File
from server.apps.uploads.exceptions import (
    ChunkUploadError,
    IncompleteUploadError,
    UploadIntegrityError,
    UploadNotFoundError,
    UploadStateError,
    UploadStorageError,
)
from server.apps.uploads.logic import ledger
from server.apps.uploads.logic.session_operations import get_session
from server.apps.uploads.models import FileChunk, UploadSession

if TYPE_CHECKING:
    from server.apps.files.infrastructure.storage import FileStorage

# User type for Django's dynamic user model
_User = Any

_READ_BLOCK_SIZE: Final = 64 * 1024
_ERROR_MAX_LENGTH: Final = 500

# Merged uploads are stored as opaque binary until classified
_MERGED_MIME_TYPE: Final = 'application/octet-stream'

logger = logging.getLogger(__name__)


def get_spool_size() -> int:
    """Merged bytes kept in memory before spilling to a temp file."""
    return getattr(settings, 'UPLOAD_MERGE_SPOOL_SIZE', 32 * 1024 * 1024)


def get_hash_algorithm() -> str:
    """Algorithm of the declared whole-file hash."""
    return getattr(settings, 'UPLOAD_HASH_ALGORITHM', 'md5')


def merge_chunks(user: _User, upload_id: str) -> File:
    """Merge all chunks of an upload into a finalized file.

    Args:
        user: Owner of the upload.
        upload_id: Upload session token.

    Returns:
        The created File.

    Raises:
        UploadNotFoundError: If the session is unknown or has no chunks.
        IncompleteUploadError: If a chunk is missing or not COMPLETED.
        UploadStateError: If another merge holds the session.
        UploadIntegrityError: If the merged content fails verification.
        UploadStorageError: If reading chunks or writing the file fails.
    """
    session = get_session(user, upload_id)
    chunks = ledger.list_chunks(upload_id)
    if not chunks:
        raise UploadNotFoundError(f'No chunks to merge for upload {upload_id}')

    _check_mergeable(session, chunks)
    _claim(session)

    try:
        file_instance = _merge_claimed(user, session, chunks)
    except Exception as error:
        logger.exception('Failed to merge chunks: upload_id=%s', upload_id)
        _release_failed(session, error)
        raise

    logger.info(
        'Chunks merged: upload_id=%s, file_id=%d, chunks=%d',
        upload_id,
        file_instance.id,
        len(chunks),
    )
    return file_instance


def _check_mergeable(
    session: UploadSession,
    chunks: Sequence[FileChunk],
) -> None:
    """Every chunk from 0 to total_chunks - 1 must be COMPLETED."""
    for chunk in chunks:
        if chunk.status != FileChunk.Status.COMPLETED:
            raise IncompleteUploadError(
                f'Chunk {chunk.chunk_number} is not completed '
                f'({chunk.status.lower()})',
                chunk_number=chunk.chunk_number,
            )

    for position, chunk in enumerate(chunks):
        if chunk.chunk_number != position:
            raise IncompleteUploadError(
                f'Chunk {position} is missing',
                chunk_number=position,
            )
    if len(chunks) < session.total_chunks:
        raise IncompleteUploadError(
            f'Chunk {len(chunks)} is missing',
            chunk_number=len(chunks),
        )


def _claim(session: UploadSession) -> None:
    """Move the session to MERGING unless another request already did."""
    claimed = UploadSession.objects.filter(
        pk=session.pk,
        state__in=UploadSession.MERGEABLE_STATES,
    ).update(
        state=UploadSession.State.MERGING,
        updated_at=timezone.now(),
    )
    if not claimed:
        session.refresh_from_db(fields=['state'])
        raise UploadStateError(
            f'Upload {session.upload_id} cannot be merged '
            f'while {session.state.lower()}',
        )
    session.state = UploadSession.State.MERGING


def _release_failed(session: UploadSession, error: Exception) -> None:
    message = error.message if isinstance(error, ChunkUploadError) else str(error)
    UploadSession.objects.filter(
        pk=session.pk,
        state=UploadSession.State.MERGING,
    ).update(
        state=UploadSession.State.FAILED,
        error_message=message[:_ERROR_MAX_LENGTH],
        updated_at=timezone.now(),
    )
    session.state = UploadSession.State.FAILED


def _merge_claimed(
    user: _User,
    session: UploadSession,
    chunks: Sequence[FileChunk],
) -> File:
    storage = get_storage()
    hasher = new_hasher(get_hash_algorithm())
    declared_hash = chunks[0].file_hash

    with SpooledTemporaryFile(max_size=get_spool_size()) as buffer:
        merged_size = _concatenate(storage, session, chunks, buffer, hasher)

        content_hash = hasher.hexdigest()
        if content_hash != normalize_hash(declared_hash):
            raise UploadIntegrityError(
                f'Checksum mismatch for upload {session.upload_id}: '
                'file may be corrupted',
            )
        if merged_size != session.total_size:
            raise UploadIntegrityError(
                f'Merged size {merged_size} does not match declared '
                f'size {session.total_size}',
            )

        storage_key = build_storage_key(user.id, session.file_name, timezone.now())
        buffer.seek(0)
        try:
            storage.put(
                storage_key,
                buffer,
                content_type=_MERGED_MIME_TYPE,
                size=merged_size,
            )
        except Exception as error:
            raise UploadStorageError(
                f'Failed to store merged file {storage_key}: {error}',
            ) from error

    return _finalize(
        user,
        session,
        chunks,
        storage,
        storage_key=storage_key,
        size_bytes=merged_size,
        content_hash=content_hash,
        mime_type=_MERGED_MIME_TYPE,
    )


def _concatenate(  # noqa: WPS211
    storage: 'FileStorage',
    session: UploadSession,
    chunks: Sequence[FileChunk],
    buffer: IO[bytes],
    hasher: Any,
) -> int:
    """Stream chunks in order into ``buffer``, feeding the hasher.

    Returns:
        Number of bytes written.
    """
    written = 0
    for chunk in chunks:
        try:
            with storage.get(chunk.storage_key) as stream:
                for block in iter(lambda: stream.read(_READ_BLOCK_SIZE), b''):
                    written += len(block)
                    if written > session.total_size:
                        raise UploadIntegrityError(
                            f'Merged content of upload {session.upload_id} '
                            f'exceeds declared size {session.total_size}',
                        )
                    hasher.update(block)
                    buffer.write(block)
        except ChunkUploadError:
            raise
        except Exception as error:
            raise UploadStorageError(
                f'Failed to read chunk {chunk.chunk_number} of upload '
                f'{session.upload_id}: {error}',
            ) from error
    return written


def _finalize(  # noqa: WPS211
    user: _User,
    session: UploadSession,
    chunks: Sequence[FileChunk],
    storage: 'FileStorage',
    *,
    storage_key: str,
    size_bytes: int,
    content_hash: str,
    mime_type: str,
) -> File:
    """Create the File record and consume the ledger in one transaction.

    If the transaction fails, the merged object is deleted again.
    """
    try:
        with transaction.atomic():
            file_instance = create_file_record(
                user,
                storage_key=storage_key,
                name=session.file_name,
                size_bytes=size_bytes,
                content_hash=content_hash,
                mime_type=mime_type,
            )
            ledger.mark_merged(chunks, file_instance)
            increment_usage(user, size_bytes)

            session.state = UploadSession.State.COMPLETE
            session.file = file_instance
            session.error_message = ''
            session.save(update_fields=[
                'state',
                'file',
                'error_message',
                'updated_at',
            ])
    except Exception:
        logger.exception(
            'Database transaction failed, rolling back merged file: %s',
            storage_key,
        )
        storage.rollback_upload(storage_key)
        raise
    return file_instance
