"""Shared fixtures for uploads app tests."""

import pytest

from server.apps.uploads.logic.chunk_operations import (
    ChunkUploadRequest,
    upload_chunk,
)
from server.apps.uploads.logic.session_operations import init_upload
from tests.test_apps.test_uploads.helpers import CHUNK_SIZE, md5_hex


@pytest.fixture
def content():
    """300 bytes of distinct chunks.

    Returns:
        Bytes split into three 100-byte chunks of A, B and C.
    """
    return b'A' * CHUNK_SIZE + b'B' * CHUNK_SIZE + b'C' * CHUNK_SIZE


@pytest.fixture
def upload_id(user, content):
    """Start an upload of ``content`` as a.bin.

    Returns:
        Fresh upload id.
    """
    return init_upload(user, 'a.bin', len(content), md5_hex(content))


@pytest.fixture
def send_chunk(user):
    """Factory submitting one chunk as ``user``.

    Returns:
        Callable (upload_id, chunk_number, data, total_chunks, last).
    """
    def _send(upload_id, chunk_number, data, total_chunks=3, last=False):
        return upload_chunk(
            user,
            ChunkUploadRequest(
                upload_id=upload_id,
                chunk_number=chunk_number,
                total_chunks=total_chunks,
                is_last_chunk=last,
            ),
            data,
        )
    return _send
