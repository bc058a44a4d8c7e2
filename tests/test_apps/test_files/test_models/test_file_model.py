"""Tests for File model."""

import pytest
from django.db import IntegrityError

from server.apps.files.models import File


def _create_file(user, **overrides):
    fields = {
        'user': user,
        'file': f'{user.id}/2026/01/01/abc.pdf',
        'name': 'Report.PDF',
        'size_bytes': 100,
        'mime_type': 'application/pdf',
        'content_hash': 'a' * 32,
    }
    fields.update(overrides)
    return File.objects.create(**fields)


@pytest.mark.django_db
def test_file_model_str(user):
    """Test File __str__ uses owner and logical name."""
    file_instance = _create_file(user)

    assert str(file_instance) == f'{user.username}:Report.PDF'


@pytest.mark.django_db
def test_file_defaults(user):
    """Test new files are active."""
    file_instance = _create_file(user)

    assert file_instance.status == File.Status.ACTIVE


@pytest.mark.django_db
def test_active_queryset_hides_deleted(user):
    """Test active() filters out deleted files."""
    active = _create_file(user)
    _create_file(
        user,
        file=f'{user.id}/2026/01/01/deleted.pdf',
        status=File.Status.DELETED,
    )

    assert list(File.objects.active()) == [active]


@pytest.mark.django_db
def test_storage_key_is_unique(user):
    """Test two files cannot share a storage key."""
    _create_file(user)

    with pytest.raises(IntegrityError):
        _create_file(user)
