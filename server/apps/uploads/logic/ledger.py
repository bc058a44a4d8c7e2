"""Chunk ledger: durable record of which chunks have been received."""

import logging
from collections.abc import Sequence
from typing import Any

from django.utils import timezone

from server.apps.files.models import File
from server.apps.uploads.models import FileChunk, UploadSession

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def chunk_storage_key(upload_id: str, chunk_number: int) -> str:
    """Deterministic blob key of a chunk.

    Example: ('9f0c...', 3) -> 'chunks/9f0c.../3'
    """
    return f'chunks/{upload_id}/{chunk_number}'


def find_chunk(upload_id: str, chunk_number: int) -> FileChunk | None:
    """Get the ledger row for ``(upload_id, chunk_number)`` if any."""
    return FileChunk.objects.filter(
        session_id=upload_id,
        chunk_number=chunk_number,
    ).first()


def list_chunks(upload_id: str) -> list[FileChunk]:
    """All ledger rows of an upload, sorted by chunk number."""
    return list(
        FileChunk.objects.filter(session_id=upload_id).order_by('chunk_number'),
    )


def completed_chunk_numbers(upload_id: str) -> list[int]:
    """Sorted numbers of the chunks that are durably stored."""
    return list(
        FileChunk.objects.filter(
            session_id=upload_id,
            status=FileChunk.Status.COMPLETED,
        ).order_by('chunk_number').values_list('chunk_number', flat=True),
    )


def record_uploading(
    session: UploadSession,
    chunk_number: int,
    chunk_size: int,
    uploader: _User,
) -> FileChunk:
    """Upsert the ledger row of a chunk that is about to be written.

    A stale row left by a failed attempt is updated in place.

    Returns:
        The ledger row in UPLOADING status.
    """
    chunk, created = FileChunk.objects.update_or_create(
        session=session,
        chunk_number=chunk_number,
        defaults={
            'file_name': session.file_name,
            'total_size': session.total_size,
            'file_hash': session.file_hash,
            'chunk_size': chunk_size,
            'storage_key': chunk_storage_key(session.upload_id, chunk_number),
            'uploader': uploader,
            'status': FileChunk.Status.UPLOADING,
            'file': None,
        },
    )
    logger.debug(
        'Ledger row %s for chunk %s#%d',
        'created' if created else 'reset',
        session.upload_id,
        chunk_number,
    )
    return chunk


def mark_completed(chunk: FileChunk) -> None:
    """Flag a chunk as durably stored."""
    chunk.status = FileChunk.Status.COMPLETED
    chunk.save(update_fields=['status', 'updated_at'])


def mark_merged(chunks: Sequence[FileChunk], file_instance: File) -> int:
    """Flag consumed chunks as merged into ``file_instance``.

    Returns:
        Number of ledger rows updated.
    """
    return FileChunk.objects.filter(
        id__in=[chunk.id for chunk in chunks],
        status=FileChunk.Status.COMPLETED,
    ).update(
        status=FileChunk.Status.MERGED,
        file=file_instance,
        updated_at=timezone.now(),
    )


def delete_chunks(upload_id: str) -> int:
    """Remove every ledger row of an upload.

    Returns:
        Number of ledger rows deleted.
    """
    deleted, _ = FileChunk.objects.filter(session_id=upload_id).delete()
    return deleted
