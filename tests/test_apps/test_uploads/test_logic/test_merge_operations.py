"""Tests for the merge engine."""

from unittest.mock import patch

import pytest

from server.apps.files.models import File, UserQuota
from server.apps.uploads.exceptions import (
    IncompleteUploadError,
    UploadIntegrityError,
    UploadNotFoundError,
    UploadStateError,
)
from server.apps.uploads.logic import chunk_operations, merge_operations
from server.apps.uploads.logic.merge_operations import merge_chunks
from server.apps.uploads.logic.session_operations import (
    cancel_upload,
    init_upload,
)
from server.apps.uploads.models import FileChunk, UploadSession
from tests.test_apps.test_uploads.helpers import md5_hex, split_chunks


def _read(bucket, key):
    return bucket.Object(key).get()['Body'].read()


@pytest.mark.django_db
class TestMergeChunks:
    """Tests for merge_chunks."""

    def test_last_chunk_merges_upload(
        self,
        user,
        content,
        upload_id,
        send_chunk,
        mock_s3,
        bucket,
    ):
        """Test three 100-byte chunks become one 300-byte file."""
        send_chunk(upload_id, 0, b'A' * 100)
        send_chunk(upload_id, 1, b'B' * 100)
        result = send_chunk(upload_id, 2, b'C' * 100, last=True)

        assert result.completed is True
        file_instance = result.file
        assert file_instance.name == 'a.bin'
        assert file_instance.size_bytes == 300
        assert file_instance.content_hash == md5_hex(content)
        assert file_instance.status == File.Status.ACTIVE
        assert file_instance.mime_type == 'application/octet-stream'
        assert file_instance.file.name.startswith(f'{user.id}/')
        assert file_instance.file.name.endswith('.bin')
        assert _read(bucket, file_instance.file.name) == content

        session = UploadSession.objects.get(upload_id=upload_id)
        assert session.state == UploadSession.State.COMPLETE
        assert session.file == file_instance
        assert set(
            FileChunk.objects.filter(session_id=upload_id).values_list(
                'status',
                flat=True,
            ),
        ) == {FileChunk.Status.MERGED}
        assert FileChunk.objects.filter(file=file_instance).count() == 3

    def test_merge_follows_chunk_number_order(
        self,
        user,
        content,
        upload_id,
        send_chunk,
        mock_s3,
        bucket,
    ):
        """Test arrival order does not affect merged content."""
        send_chunk(upload_id, 2, b'C' * 100)
        send_chunk(upload_id, 0, b'A' * 100)
        send_chunk(upload_id, 1, b'B' * 100)

        file_instance = merge_chunks(user, upload_id)

        assert _read(bucket, file_instance.file.name) == content

    def test_short_last_chunk(self, user, send_chunk, mock_s3, bucket):
        """Test files that are not a multiple of the chunk size."""
        payload = bytes(range(256))
        upload_id = init_upload(user, 'bytes.dat', len(payload), md5_hex(payload))
        parts = split_chunks(payload)

        for number, part in enumerate(parts):
            result = send_chunk(
                upload_id,
                number,
                part,
                total_chunks=len(parts),
                last=number == len(parts) - 1,
            )

        assert result.file.size_bytes == 256
        assert _read(bucket, result.file.file.name) == payload

    def test_quota_usage_incremented(self, user, upload_id, send_chunk, mock_s3):
        """Test the merged size is charged to the owner."""
        send_chunk(upload_id, 0, b'A' * 100)
        send_chunk(upload_id, 1, b'B' * 100)
        send_chunk(upload_id, 2, b'C' * 100, last=True)

        assert UserQuota.objects.get(user=user).used_bytes == 300

    def test_missing_chunk(self, user, upload_id, send_chunk, mock_s3):
        """Test a gap names the missing chunk."""
        send_chunk(upload_id, 0, b'A' * 100)
        send_chunk(upload_id, 2, b'C' * 100)

        with pytest.raises(IncompleteUploadError) as exc_info:
            merge_chunks(user, upload_id)

        assert exc_info.value.chunk_number == 1
        assert not File.objects.exists()
        session = UploadSession.objects.get(upload_id=upload_id)
        assert session.state == UploadSession.State.RECEIVING

    def test_missing_trailing_chunk(self, user, upload_id, send_chunk, mock_s3):
        """Test fewer chunks than announced is incomplete."""
        send_chunk(upload_id, 0, b'A' * 100)
        send_chunk(upload_id, 1, b'B' * 100)

        with pytest.raises(IncompleteUploadError) as exc_info:
            merge_chunks(user, upload_id)

        assert exc_info.value.chunk_number == 2

    def test_uploading_chunk_blocks_merge(self, user, upload_id, send_chunk, mock_s3):
        """Test a chunk still being written is not merged."""
        for number, part in enumerate((b'A', b'B', b'C')):
            send_chunk(upload_id, number, part * 100)
        FileChunk.objects.filter(session_id=upload_id, chunk_number=1).update(
            status=FileChunk.Status.UPLOADING,
        )

        with pytest.raises(IncompleteUploadError) as exc_info:
            merge_chunks(user, upload_id)

        assert exc_info.value.chunk_number == 1

    def test_no_chunks(self, user, upload_id):
        """Test merging an upload without chunks."""
        with pytest.raises(UploadNotFoundError):
            merge_chunks(user, upload_id)

    def test_unknown_upload(self, user):
        """Test merging an unknown upload."""
        with pytest.raises(UploadNotFoundError):
            merge_chunks(user, 'missing')

    def test_merge_after_cancel(self, user, upload_id, send_chunk, mock_s3):
        """Test a cancelled upload has nothing left to merge."""
        send_chunk(upload_id, 0, b'A' * 100)
        cancel_upload(user, upload_id)

        with pytest.raises(UploadNotFoundError):
            merge_chunks(user, upload_id)

    def test_merge_twice_rejected(self, user, upload_id, send_chunk, mock_s3):
        """Test merged chunks cannot produce a second file."""
        send_chunk(upload_id, 0, b'A' * 100)
        send_chunk(upload_id, 1, b'B' * 100)
        send_chunk(upload_id, 2, b'C' * 100, last=True)

        with pytest.raises(IncompleteUploadError):
            merge_chunks(user, upload_id)

        assert File.objects.count() == 1

    def test_concurrent_merge_rejected(self, user, upload_id, send_chunk, mock_s3):
        """Test a session already merging cannot be claimed again."""
        for number, part in enumerate((b'A', b'B', b'C')):
            send_chunk(upload_id, number, part * 100)
        UploadSession.objects.filter(upload_id=upload_id).update(
            state=UploadSession.State.MERGING,
        )

        with pytest.raises(UploadStateError):
            merge_chunks(user, upload_id)

        assert not File.objects.exists()

    def test_corrupted_chunk_fails_integrity(
        self,
        user,
        upload_id,
        send_chunk,
        mock_s3,
        bucket,
    ):
        """Test a hash mismatch creates no file and can be retried."""
        send_chunk(upload_id, 0, b'A' * 100)
        send_chunk(upload_id, 1, b'B' * 100)
        bucket.put_object(Key=f'chunks/{upload_id}/1', Body=b'X' * 100)

        with pytest.raises(UploadIntegrityError, match='Checksum mismatch'):
            send_chunk(upload_id, 2, b'C' * 100, last=True)

        assert not File.objects.exists()
        assert not UserQuota.objects.filter(user=user, used_bytes__gt=0).exists()
        session = UploadSession.objects.get(upload_id=upload_id)
        assert session.state == UploadSession.State.FAILED
        assert 'Checksum mismatch' in session.error_message
        assert set(
            FileChunk.objects.filter(session_id=upload_id).values_list(
                'status',
                flat=True,
            ),
        ) == {FileChunk.Status.COMPLETED}

        # No merged object was written
        assert list(bucket.objects.filter(Prefix=f'{user.id}/')) == []

        bucket.put_object(Key=f'chunks/{upload_id}/1', Body=b'B' * 100)
        file_instance = merge_chunks(user, upload_id)

        assert file_instance.size_bytes == 300
        session.refresh_from_db()
        assert session.state == UploadSession.State.COMPLETE
        assert session.error_message == ''

    def test_oversized_content_fails_integrity(
        self,
        user,
        upload_id,
        send_chunk,
        mock_s3,
        bucket,
    ):
        """Test merged bytes beyond the declared size are refused."""
        send_chunk(upload_id, 0, b'A' * 100)
        send_chunk(upload_id, 1, b'B' * 100)
        bucket.put_object(Key=f'chunks/{upload_id}/1', Body=b'B' * 150)

        with pytest.raises(UploadIntegrityError, match='exceeds declared size'):
            send_chunk(upload_id, 2, b'C' * 100, last=True)

    def test_resent_last_chunk_is_only_acknowledged(
        self,
        user,
        upload_id,
        send_chunk,
        mock_s3,
        bucket,
    ):
        """Test a duplicate last chunk does not retry a failed merge."""
        send_chunk(upload_id, 0, b'A' * 100)
        send_chunk(upload_id, 1, b'B' * 100)
        bucket.put_object(Key=f'chunks/{upload_id}/0', Body=b'Z' * 100)
        with pytest.raises(UploadIntegrityError):
            send_chunk(upload_id, 2, b'C' * 100, last=True)

        result = send_chunk(upload_id, 2, b'C' * 100, last=True)

        assert result.already_uploaded is True
        assert result.completed is False
        session = UploadSession.objects.get(upload_id=upload_id)
        assert session.state == UploadSession.State.FAILED

    def test_database_failure_rolls_back_merged_object(
        self,
        user,
        upload_id,
        send_chunk,
        mock_s3,
        bucket,
    ):
        """Test the merged object is removed when the record cannot be saved."""
        send_chunk(upload_id, 0, b'A' * 100)
        send_chunk(upload_id, 1, b'B' * 100)

        with patch(
            'server.apps.uploads.logic.merge_operations.create_file_record',
            side_effect=RuntimeError('database unavailable'),
        ):
            with pytest.raises(RuntimeError):
                send_chunk(upload_id, 2, b'C' * 100, last=True)

        assert list(bucket.objects.filter(Prefix=f'{user.id}/')) == []
        session = UploadSession.objects.get(upload_id=upload_id)
        assert session.state == UploadSession.State.FAILED
        assert session.error_message == 'database unavailable'


@pytest.mark.django_db
def test_requests_during_merge_cannot_undo_the_claim(
    user,
    upload_id,
    send_chunk,
    mock_s3,
):
    """Test a stale chunk, a second merge and a cancel all fail mid-merge."""
    for number, part in enumerate((b'A', b'B', b'C')):
        send_chunk(upload_id, number, part * 100)
    stale_session = UploadSession.objects.get(upload_id=upload_id)
    concatenate = merge_operations._concatenate

    def _interleaved(*args, **kwargs):
        with pytest.raises(UploadStateError):
            chunk_operations._accept_chunk_count(stale_session, 3)
        with pytest.raises(UploadStateError):
            merge_chunks(user, upload_id)
        with pytest.raises(UploadStateError):
            cancel_upload(user, upload_id)
        assert UploadSession.objects.get(
            upload_id=upload_id,
        ).state == UploadSession.State.MERGING
        return concatenate(*args, **kwargs)

    with patch.object(merge_operations, '_concatenate', side_effect=_interleaved):
        file_instance = merge_chunks(user, upload_id)

    assert File.objects.count() == 1
    assert file_instance.size_bytes == 300
    session = UploadSession.objects.get(upload_id=upload_id)
    assert session.state == UploadSession.State.COMPLETE
    assert FileChunk.objects.filter(
        session_id=upload_id,
        status=FileChunk.Status.MERGED,
    ).count() == 3
