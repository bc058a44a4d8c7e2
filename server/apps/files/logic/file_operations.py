"""Business logic for the file registry."""

import logging
from typing import TYPE_CHECKING, Any

from django.core.files.storage import default_storage
from django.db import transaction

from server.apps.files.infrastructure.metadata import (
    detect_mime_type,
    normalize_hash,
    validate_storage_path,
)
from server.apps.files.logic.quota_operations import decrement_usage
from server.apps.files.models import File

if TYPE_CHECKING:
    from server.apps.files.infrastructure.storage import FileStorage

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def find_duplicate(
    user: _User,
    size_bytes: int,
    content_hash: str,
) -> File | None:
    """Find an active file of the user with identical size and content hash.

    Args:
        user: Owner whose files are searched.
        size_bytes: Declared size of the new upload.
        content_hash: Declared whole-file hash of the new upload.

    Returns:
        Matching File, or None when the upload is new content.
    """
    return File.objects.active().filter(
        user=user,
        size_bytes=size_bytes,
        content_hash=normalize_hash(content_hash),
    ).order_by('uploaded_at').first()


def get_active_file(user: _User, file_id: int) -> File:
    """Get an active file owned by the user.

    Raises:
        File.DoesNotExist: If no such file is visible to the user.
    """
    return File.objects.active().get(user=user, id=file_id)


def create_file_record(  # noqa: WPS211
    user: _User,
    storage_key: str,
    name: str,
    size_bytes: int,
    content_hash: str,
    mime_type: str | None = None,
) -> File:
    """Register an already stored object as a finalized file.

    Must run inside the caller's transaction; the caller owns the
    storage rollback if the transaction fails.

    Args:
        user: Owner of the file.
        storage_key: Key of the stored object ({user_id}/...).
        name: Logical file name.
        size_bytes: Stored size.
        content_hash: Verified whole-file hash.
        mime_type: MIME type, guessed from the name when omitted.

    Returns:
        Created File instance.

    Raises:
        ValidationError: If the key is outside the user's namespace.
    """
    validate_storage_path(user.id, storage_key)

    file_instance = File.objects.create(
        user=user,
        file=storage_key,
        name=name,
        size_bytes=size_bytes,
        mime_type=mime_type or detect_mime_type(name),
        content_hash=normalize_hash(content_hash),
        status=File.Status.ACTIVE,
    )
    logger.info(
        'File record created: %s (ID: %d, %d bytes)',
        storage_key,
        file_instance.id,
        size_bytes,
    )
    return file_instance


def delete_file(file_id: int) -> None:
    """Delete file from database and storage, releasing its quota.

    Storage deletion is handled by the post_delete signal handler.

    Args:
        file_id: ID of file to delete.

    Raises:
        File.DoesNotExist: If file doesn't exist.
    """
    file_instance = File.objects.select_related('user').get(id=file_id)
    logger.info(
        'Deleting file: ID=%d, path=%s',
        file_id,
        file_instance.file.name,
    )

    with transaction.atomic():
        file_instance.delete()
        decrement_usage(file_instance.user, file_instance.size_bytes)
