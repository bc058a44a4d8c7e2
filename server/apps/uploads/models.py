"""Database models for chunked uploads."""

from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

from server.apps.files.models import File

# Constants for field max lengths
_UPLOAD_ID_MAX_LENGTH: Final = 64
_NAME_MAX_LENGTH: Final = 255
_HASH_MAX_LENGTH: Final = 128
_STORAGE_KEY_MAX_LENGTH: Final = 512
_STATE_MAX_LENGTH: Final = 16
_ERROR_MAX_LENGTH: Final = 500


@final
class UploadSession(models.Model):
    """One logical large-file upload, identified by ``upload_id``.

    State machine::

        INIT -> RECEIVING -> MERGING -> COMPLETE
                    |   ^        |
                    |   +--------+-> FAILED (retryable)
                    +-> CANCELLED

    Only one request can move a session into MERGING, which makes
    concurrent "last chunk" submissions safe.
    """

    class State(models.TextChoices):
        """Upload session lifecycle."""

        INIT = 'INIT', 'Initialized'
        RECEIVING = 'RECEIVING', 'Receiving chunks'
        MERGING = 'MERGING', 'Merging'
        COMPLETE = 'COMPLETE', 'Complete'
        CANCELLED = 'CANCELLED', 'Cancelled'
        FAILED = 'FAILED', 'Failed'

    # States that still accept chunks
    RECEIVING_STATES: ClassVar[frozenset[str]] = frozenset((
        State.INIT,
        State.RECEIVING,
        State.FAILED,
    ))

    # States a merge may start from
    MERGEABLE_STATES: ClassVar[frozenset[str]] = RECEIVING_STATES

    upload_id = models.CharField(
        max_length=_UPLOAD_ID_MAX_LENGTH,
        unique=True,
        help_text='Opaque session token handed to the client',
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='upload_sessions',
        db_index=True,
    )

    file_name = models.CharField(max_length=_NAME_MAX_LENGTH)

    total_size = models.BigIntegerField(
        help_text='Declared size of the whole file in bytes',
    )

    file_hash = models.CharField(
        max_length=_HASH_MAX_LENGTH,
        help_text='Declared whole-file hash (lowercase hex)',
    )

    total_chunks = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text='Fixed by the first received chunk',
    )

    state = models.CharField(
        max_length=_STATE_MAX_LENGTH,
        choices=State.choices,
        default=State.INIT,
        db_index=True,
    )

    file = models.ForeignKey(
        File,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='upload_sessions',
        help_text='Finalized file once the merge completed',
    )

    error_message = models.CharField(
        max_length=_ERROR_MAX_LENGTH,
        blank=True,
        default='',
        help_text='Reason of the last failed merge',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Upload Session'  # type: ignore[mutable-override]
        verbose_name_plural = 'Upload Sessions'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['state', 'updated_at'],
                name='uploads_state_updated_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.file_name} ({self.upload_id[:8]}, {self.state})'

    @property
    def accepts_chunks(self) -> bool:
        """Whether chunks may still be written to this session."""
        return self.state in self.RECEIVING_STATES


@final
class FileChunk(models.Model):
    """Chunk ledger row: durable record of one received chunk.

    Identity is ``(session, chunk_number)``; re-uploading the same
    chunk updates this row instead of adding a new one. The ledger,
    not the blob store, decides what has been received.
    """

    class Status(models.TextChoices):
        """Chunk lifecycle."""

        UPLOADING = 'UPLOADING', 'Uploading'
        COMPLETED = 'COMPLETED', 'Completed'
        MERGED = 'MERGED', 'Merged'

    # The column holds the upload_id string itself
    session = models.ForeignKey(
        UploadSession,
        to_field='upload_id',
        db_column='upload_id',
        on_delete=models.CASCADE,
        related_name='chunks',
    )

    chunk_number = models.PositiveIntegerField(
        help_text='Zero-based position of the chunk',
    )

    # Copied from the session so a chunk validates on its own
    file_name = models.CharField(max_length=_NAME_MAX_LENGTH)
    total_size = models.BigIntegerField()
    file_hash = models.CharField(max_length=_HASH_MAX_LENGTH)

    chunk_size = models.BigIntegerField(
        help_text='Size of this chunk in bytes',
    )

    storage_key = models.CharField(
        max_length=_STORAGE_KEY_MAX_LENGTH,
        help_text='Key in storage: chunks/{upload_id}/{chunk_number}',
    )

    uploader = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='file_chunks',
    )

    status = models.CharField(
        max_length=_STATE_MAX_LENGTH,
        choices=Status.choices,
        default=Status.UPLOADING,
    )

    file = models.ForeignKey(
        File,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='chunks',
        help_text='File this chunk was merged into',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File Chunk'  # type: ignore[mutable-override]
        verbose_name_plural = 'File Chunks'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['chunk_number']

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['session', 'chunk_number'],
                name='chunks_upload_number_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.session_id}#{self.chunk_number} ({self.status})'
