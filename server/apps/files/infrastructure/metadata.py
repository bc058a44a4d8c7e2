"""Metadata helpers for stored files."""

import hashlib
import mimetypes
import uuid
from datetime import datetime
from pathlib import Path
from typing import Final

from django.core.exceptions import ValidationError

_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'


def detect_mime_type(filename: str) -> str:
    """Guess MIME type from the file name.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or _DEFAULT_MIME_TYPE


def new_hasher(algorithm: str) -> 'hashlib._Hash':
    """Create an incremental hasher.

    Raises:
        ValueError: If the algorithm is not known to hashlib.
    """
    return hashlib.new(algorithm)


def normalize_hash(content_hash: str) -> str:
    """Hex digests compare case-insensitively."""
    return content_hash.strip().lower()


def get_file_extension(filename: str) -> str:
    """Get file extension from filename.

    Args:
        filename: Filename (e.g., 'document.PDF').

    Returns:
        Extension with leading dot, lowercase (e.g., '.pdf').
        Returns empty string if no extension.
    """
    return Path(filename).suffix.lower()


def build_storage_key(user_id: int, filename: str, now: datetime) -> str:
    """Build a fresh date-partitioned key for a finalized file.

    Example: (7, 'a.bin', 2026-10-19) -> '7/2026/10/19/9f0c...e1.bin'

    Args:
        user_id: Owner's user ID.
        filename: Original filename, only its extension is kept.
        now: Timestamp used for the date partition.

    Returns:
        Storage key unrelated to the original name.
    """
    return '{user_id}/{date}/{random_id}{extension}'.format(
        user_id=user_id,
        date=now.strftime('%Y/%m/%d'),
        random_id=uuid.uuid4().hex,
        extension=get_file_extension(filename),
    )


def validate_storage_path(user_id: int, storage_path: str) -> None:
    """Validate storage path follows user isolation rules.

    Ensures the storage path starts with the user's ID to maintain
    multi-user isolation.

    Args:
        user_id: Owner's user ID.
        storage_path: Proposed storage path.

    Raises:
        ValidationError: If path doesn't start with user_id or is invalid.
    """
    if not storage_path:
        raise ValidationError('Storage path cannot be empty')

    first_component = Path(storage_path).parts[0]
    try:
        path_user_id = int(first_component)
    except ValueError as error:
        raise ValidationError(
            'Storage path must start with user ID',
        ) from error

    if path_user_id != user_id:
        raise ValidationError(
            f'Storage path user ID ({path_user_id}) does not match '
            f'owner ({user_id})',
        )
