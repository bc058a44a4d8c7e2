"""Custom storage backend for S3-compatible storage."""

import logging
from collections.abc import Iterable
from itertools import batched
from typing import IO, Any, Final, final, override

from django.core.files.base import ContentFile
from django.core.files.base import File as DjangoFile
from storages.backends.s3 import S3Storage

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most this many keys per request
_DELETE_BATCH_SIZE: Final = 1000
_DEFAULT_CONTENT_TYPE: Final = 'application/octet-stream'


@final
class FileStorage(S3Storage):
    """S3 storage backend used as the blob store.

    Extends django-storages S3Storage with:
    - key-addressed put/get/delete_batch used by chunked uploads
    - rollback of uploads whose database write failed
    - logging around every write and delete
    """

    @override
    def save(
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save content to S3 with error logging.

        Args:
            name: Storage key.
            content: File content (file-like object).
            max_length: Optional maximum length for the key.

        Returns:
            Storage key actually used.
        """
        try:
            logger.debug('Uploading object to storage: %s', name)
            saved_name = super().save(name, content, max_length)
        except Exception:
            logger.exception('Failed to upload object to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete object from S3 with error logging.

        Args:
            name: Storage key of the object to delete.
        """
        try:
            logger.debug('Deleting object from storage: %s', name)
            super().delete(name)
        except Exception:
            logger.exception('Failed to delete object from storage: %s', name)
            raise

    def put(
        self,
        key: str,
        content: bytes | IO[bytes] | DjangoFile,
        content_type: str = _DEFAULT_CONTENT_TYPE,
        size: int | None = None,
    ) -> str:
        """Write content under exactly ``key``, replacing any object there.

        Args:
            key: Storage key.
            content: Raw bytes or a file-like object positioned at start.
            content_type: MIME type stored with the object.
            size: Content length when known (logged only).

        Returns:
            URL of the stored object.
        """
        if isinstance(content, bytes):
            wrapped = ContentFile(content)
        elif isinstance(content, DjangoFile):
            wrapped = content
        else:
            wrapped = DjangoFile(content)
        wrapped.content_type = content_type  # type: ignore[union-attr]

        saved_name = self.save(key, wrapped)
        logger.info(
            'Stored object %s (%s bytes, %s)',
            saved_name,
            size if size is not None else 'unknown',
            content_type,
        )
        return self.url(saved_name)

    def get(self, key: str) -> DjangoFile:
        """Open an object for reading.

        Args:
            key: Storage key.

        Returns:
            Readable file object; close it (or use ``with``) when done.
        """
        try:
            return self.open(key, 'rb')
        except Exception:
            logger.exception('Failed to open object from storage: %s', key)
            raise

    def delete_batch(self, keys: Iterable[str]) -> None:
        """Delete many objects with as few requests as possible.

        Args:
            keys: Storage keys to delete. Missing keys are ignored by S3.

        Raises:
            OSError: If S3 reports keys it could not delete.
        """
        failed: list[str] = []
        for batch in batched(keys, _DELETE_BATCH_SIZE):
            logger.info('Deleting %d objects from storage', len(batch))
            try:
                response = self.bucket.delete_objects(Delete={
                    'Objects': [{'Key': key} for key in batch],
                    'Quiet': True,
                })
            except Exception:
                logger.exception('Batch delete failed: %s', batch[0])
                raise
            for error in response.get('Errors', []):
                logger.error(
                    'Failed to delete object %s: %s',
                    error.get('Key'),
                    error.get('Message'),
                )
                failed.append(error.get('Key', ''))

        if failed:
            raise OSError(f'Failed to delete {len(failed)} objects from storage')

    def rollback_upload(self, name: str) -> None:
        """Delete uploaded object for DB transaction rollback.

        This is a best-effort operation - if deletion fails, the error
        is logged but not raised, as the DB rollback has already occurred.

        Args:
            name: Storage key of the object to delete.
        """
        try:
            logger.warning('Rolling back upload, deleting object: %s', name)
            self.delete(name)
        except Exception:
            # The object stays in storage without a database row
            logger.exception(
                'Failed to rollback upload, orphaned object: %s',
                name,
            )
