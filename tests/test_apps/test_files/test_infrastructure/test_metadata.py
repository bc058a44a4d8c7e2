"""Tests for metadata utilities."""

import hashlib
import re
from datetime import UTC, datetime

import pytest
from django.core.exceptions import ValidationError

from server.apps.files.infrastructure.metadata import (
    build_storage_key,
    detect_mime_type,
    get_file_extension,
    new_hasher,
    normalize_hash,
    validate_storage_path,
)


def test_detect_mime_type():
    """Test MIME type detection from filename."""
    assert detect_mime_type('test.pdf') == 'application/pdf'
    assert detect_mime_type('test.txt') == 'text/plain'
    assert detect_mime_type('test.png') == 'image/png'


def test_detect_mime_type_unknown():
    """Test MIME type detection for unknown extension."""
    assert detect_mime_type('test.unknownext') == 'application/octet-stream'
    assert detect_mime_type('no_extension') == 'application/octet-stream'


def test_new_hasher_is_incremental():
    """Test block-wise updates match a one-shot digest."""
    hasher = new_hasher('md5')
    hasher.update(b'test ')
    hasher.update(b'content')

    assert hasher.hexdigest() == hashlib.md5(b'test content').hexdigest()


def test_new_hasher_unknown_algorithm():
    """Test unknown algorithms are refused."""
    with pytest.raises(ValueError):
        new_hasher('no-such-hash')


def test_normalize_hash():
    """Test hashes compare case-insensitively."""
    assert normalize_hash(' ABCdef \n') == 'abcdef'


def test_get_file_extension():
    """Test extension extraction keeps the dot."""
    assert get_file_extension('document.PDF') == '.pdf'
    assert get_file_extension('archive.tar.gz') == '.gz'
    assert get_file_extension('noext') == ''


def test_build_storage_key_layout():
    """Test finalized key is date partitioned under the user id."""
    now = datetime(2026, 3, 7, tzinfo=UTC)

    key = build_storage_key(42, 'a.bin', now)

    assert re.fullmatch(r'42/2026/03/07/[0-9a-f]{32}\.bin', key)


def test_build_storage_key_is_random():
    """Test two keys for the same name differ."""
    now = datetime(2026, 3, 7, tzinfo=UTC)

    assert build_storage_key(1, 'a.bin', now) != build_storage_key(1, 'a.bin', now)


def test_validate_storage_path_valid():
    """Test validation of valid storage path."""
    validate_storage_path(1, '1/2026/01/01/abc.bin')
    validate_storage_path(123, '123/file.txt')


def test_validate_storage_path_wrong_user():
    """Test validation fails for wrong user ID."""
    with pytest.raises(ValidationError, match='does not match'):
        validate_storage_path(1, '2/file.txt')


def test_validate_storage_path_empty():
    """Test validation fails for empty path."""
    with pytest.raises(ValidationError, match='cannot be empty'):
        validate_storage_path(1, '')


def test_validate_storage_path_not_numeric():
    """Test validation fails for non-numeric first component."""
    with pytest.raises(ValidationError, match='must start with user ID'):
        validate_storage_path(1, 'chunks/abc/0')
