"""Database models for files app."""

from typing import Final, final, override

from django.contrib.auth import get_user_model
from django.db import models

User = get_user_model()

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_STORAGE_KEY_MAX_LENGTH: Final = 512
_MIME_TYPE_MAX_LENGTH: Final = 255
_CONTENT_HASH_MAX_LENGTH: Final = 128  # Fits any hashlib hex digest
_STATUS_MAX_LENGTH: Final = 16


class FileQuerySet(models.QuerySet):
    """Query helpers for finalized files."""

    def active(self) -> 'FileQuerySet':
        """Files that are visible to their owner."""
        return self.filter(status=File.Status.ACTIVE)


@final
class File(models.Model):
    """Finalized file stored in S3-compatible storage.

    Produced exactly once per successful chunk merge, or reused as is
    when an upload is satisfied by an identical existing file.

    The storage key follows the pattern
    ``{user_id}/{yyyy}/{mm}/{dd}/{random_id}{ext}``; the logical
    name the user uploaded is kept separately in ``name``.
    """

    class Status(models.TextChoices):
        """Lifecycle of a stored file."""

        ACTIVE = 'ACTIVE', 'Active'
        DELETED = 'DELETED', 'Deleted'

    # Owner relationship
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='files',
        db_index=True,
    )

    # upload_to='' means we control the full key
    file = models.FileField(
        upload_to='',
        max_length=_STORAGE_KEY_MAX_LENGTH,
        help_text='Key in storage: {user_id}/yyyy/mm/dd/id.ext',
    )

    name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        help_text='Original file name as uploaded',
    )

    size_bytes = models.BigIntegerField(
        help_text='File size in bytes',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        default='application/octet-stream',
    )

    content_hash = models.CharField(
        max_length=_CONTENT_HASH_MAX_LENGTH,
        help_text='Hex digest of the whole content, used for deduplication',
        db_index=True,
    )

    status = models.CharField(
        max_length=_STATUS_MAX_LENGTH,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )

    # Timestamps
    uploaded_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True)

    objects = FileQuerySet.as_manager()

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering = ['-uploaded_at']

        indexes = [
            # Deduplication lookup on upload init
            models.Index(
                fields=['user', 'size_bytes', 'content_hash'],
                name='files_user_dedup_idx',
            ),
            models.Index(
                fields=['user', '-uploaded_at'],
                name='files_user_recent_idx',
            ),
        ]

        constraints = [
            models.UniqueConstraint(
                fields=['file'],
                name='files_storage_key_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}:{self.name}'

    def get_url(self) -> str:
        """Get download URL for file.

        Returns:
            Full URL to access file via storage backend.
        """
        return self.file.url


# Default quota: 10 GB in bytes
_DEFAULT_QUOTA_BYTES: Final = 10 * 1024 * 1024 * 1024


@final
class UserQuota(models.Model):
    """Storage quota for a user.

    Usage grows when a merge finalizes a file and shrinks when the
    file is deleted. Uploads are refused at init time once the
    declared size no longer fits.
    """

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='quota',
        primary_key=True,
    )

    quota_bytes = models.BigIntegerField(
        default=_DEFAULT_QUOTA_BYTES,
        help_text='Storage quota limit in bytes',
    )

    used_bytes = models.BigIntegerField(
        default=0,
        help_text='Currently used storage in bytes',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'User Quota'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Quotas'  # type: ignore[mutable-override]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(quota_bytes__gte=0),
                name='quota_bytes_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(used_bytes__gte=0),
                name='used_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}: {self.used_bytes}/{self.quota_bytes}'

    def has_space_for(self, size_bytes: int) -> bool:
        """Check if there's enough space for the given size."""
        return self.used_bytes + size_bytes <= self.quota_bytes

    def available_bytes(self) -> int:
        """Get available storage space (never negative)."""
        return max(0, self.quota_bytes - self.used_bytes)
