"""Upload session lifecycle: init, lookup, instant upload, cancellation."""

import logging
import uuid
from typing import Any, Final

from django.conf import settings
from django.utils import timezone

from server.apps.files.infrastructure.metadata import normalize_hash
from server.apps.files.logic.file_operations import (
    find_duplicate,
    get_active_file,
    get_storage,
)
from server.apps.files.logic.quota_operations import check_quota
from server.apps.files.models import File
from server.apps.uploads.exceptions import (
    SizeLimitExceededError,
    UploadNotFoundError,
    UploadStateError,
    UploadValidationError,
)
from server.apps.uploads.logic import ledger
from server.apps.uploads.models import UploadSession

# User type for Django's dynamic user model
_User = Any

# Token prefix telling the client the upload is already satisfied
INSTANT_UPLOAD_PREFIX: Final = 'INSTANT:'

_MB: Final = 1024 * 1024

logger = logging.getLogger(__name__)


def get_max_file_size() -> int:
    """Largest file size accepted by `init_upload`, in bytes."""
    return getattr(settings, 'UPLOAD_MAX_FILE_SIZE', 1024 * _MB)


def is_instant_token(upload_id: str) -> bool:
    """Whether the token is an instant-upload sentinel."""
    return upload_id.startswith(INSTANT_UPLOAD_PREFIX)


def instant_token(file_instance: File) -> str:
    """Build the sentinel token pointing at an existing file."""
    return f'{INSTANT_UPLOAD_PREFIX}{file_instance.id}'


def init_upload(
    user: _User,
    file_name: str,
    file_size: int,
    file_hash: str,
) -> str:
    """Start a chunked upload or short-circuit it via deduplication.

    Args:
        user: Uploading user.
        file_name: Logical name of the file.
        file_size: Declared size of the whole file in bytes.
        file_hash: Declared hex hash of the whole file.

    Returns:
        A fresh upload id, or ``INSTANT:<file_id>`` when an identical
        active file of the user already exists.

    Raises:
        UploadValidationError: If name, hash or size are malformed.
        SizeLimitExceededError: If the size is above the maximum.
        QuotaExceededError: If the file would not fit into the quota.
    """
    if not file_name or not file_name.strip():
        raise UploadValidationError('File name must not be empty')
    if not file_hash or not file_hash.strip():
        raise UploadValidationError('File hash must not be empty')
    if file_size <= 0:
        raise UploadValidationError('File size must be positive')

    max_size = get_max_file_size()
    if file_size > max_size:
        raise SizeLimitExceededError(
            f'File size exceeds the limit (max {max_size // _MB} MB)',
        )

    duplicate = find_duplicate(user, file_size, file_hash)
    if duplicate is not None:
        logger.info(
            'File already exists, enabling instant upload: %s -> file %d',
            file_name,
            duplicate.id,
        )
        return instant_token(duplicate)

    check_quota(user, file_size)

    session = UploadSession.objects.create(
        upload_id=uuid.uuid4().hex,
        user=user,
        file_name=file_name.strip(),
        total_size=file_size,
        file_hash=normalize_hash(file_hash),
    )
    logger.info(
        'Initialized chunk upload: upload_id=%s, file=%s, size=%d, user=%s',
        session.upload_id,
        session.file_name,
        file_size,
        user.username,
    )
    return session.upload_id


def get_session(user: _User, upload_id: str) -> UploadSession:
    """Get an upload session owned by the user.

    Raises:
        UploadNotFoundError: If the session is unknown to this user.
    """
    try:
        return UploadSession.objects.get(upload_id=upload_id, user=user)
    except UploadSession.DoesNotExist as error:
        raise UploadNotFoundError(
            f'Upload session not found: {upload_id}',
        ) from error


def resolve_instant_file(user: _User, upload_id: str) -> File:
    """Get the existing file an instant-upload token points at.

    Raises:
        UploadNotFoundError: If the token is malformed or the file is
            not an active file of the user.
    """
    raw_id = upload_id.removeprefix(INSTANT_UPLOAD_PREFIX)
    try:
        return get_active_file(user, int(raw_id))
    except (ValueError, File.DoesNotExist) as error:
        raise UploadNotFoundError(
            f'File for instant upload not found: {raw_id}',
        ) from error


def cancel_upload(user: _User, upload_id: str) -> None:
    """Cancel an upload and drop its chunks.

    Blob deletion is best-effort; the ledger rows are removed either
    way. Cancelling an unknown or already cancelled upload is a no-op.

    Raises:
        UploadStateError: If a merge of the session is running.
    """
    if is_instant_token(upload_id):
        return

    session = UploadSession.objects.filter(
        upload_id=upload_id,
        user=user,
    ).first()
    if session is None:
        logger.debug('Cancel of unknown upload ignored: %s', upload_id)
        return

    _mark_cancelled(session)

    storage_keys = [chunk.storage_key for chunk in ledger.list_chunks(upload_id)]
    if storage_keys:
        try:
            get_storage().delete_batch(storage_keys)
        except Exception:
            # Cleanup must not get stuck on storage, orphans are harmless
            logger.exception(
                'Failed to delete chunk objects of upload %s',
                upload_id,
            )

    deleted = ledger.delete_chunks(upload_id)

    logger.info(
        'Chunk upload cancelled: upload_id=%s, chunks=%d, user=%s',
        upload_id,
        deleted,
        user.username,
    )


def _mark_cancelled(session: UploadSession) -> None:
    """Move the session to CANCELLED unless it is merging or complete.

    The check and the write are one conditional update, so a merge that
    claimed the session after it was loaded is never overwritten.

    Raises:
        UploadStateError: If a merge of the session is running.
    """
    UploadSession.objects.filter(
        pk=session.pk,
        state__in=UploadSession.RECEIVING_STATES,
    ).update(
        state=UploadSession.State.CANCELLED,
        updated_at=timezone.now(),
    )
    session.refresh_from_db(fields=['state', 'updated_at'])
    if session.state == UploadSession.State.MERGING:
        raise UploadStateError(
            f'Upload {session.upload_id} is being merged and cannot be cancelled',
        )
