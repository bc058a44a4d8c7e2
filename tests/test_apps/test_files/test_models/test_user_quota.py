"""Tests for UserQuota model."""

import pytest
from django.db import IntegrityError

from server.apps.files.models import UserQuota


@pytest.mark.django_db
def test_user_quota_default_values(user):
    """Test UserQuota default values."""
    quota = UserQuota.objects.create(user=user)

    # Default quota is 10 GB
    assert quota.quota_bytes == 10 * 1024 * 1024 * 1024
    assert quota.used_bytes == 0


@pytest.mark.django_db
def test_user_quota_one_to_one_constraint(user):
    """Test that a user can only have one quota record."""
    UserQuota.objects.create(user=user)

    with pytest.raises(IntegrityError):
        UserQuota.objects.create(user=user)


@pytest.mark.django_db
def test_user_quota_str_representation(user):
    """Test UserQuota string representation."""
    quota = UserQuota.objects.create(user=user, quota_bytes=1024, used_bytes=512)

    assert str(quota) == f'{user.username}: 512/1024'


@pytest.mark.django_db
def test_has_space_for(user):
    """Test has_space_for at and around the limit."""
    quota = UserQuota.objects.create(user=user, quota_bytes=1000, used_bytes=400)

    assert quota.has_space_for(600) is True
    assert quota.has_space_for(601) is False


@pytest.mark.django_db
def test_available_bytes_never_negative(user):
    """Test available_bytes clamps at zero when over quota."""
    quota = UserQuota.objects.create(user=user, quota_bytes=100, used_bytes=150)

    assert quota.available_bytes() == 0


@pytest.mark.django_db
def test_negative_usage_rejected(user):
    """Test the check constraint on used_bytes."""
    with pytest.raises(IntegrityError):
        UserQuota.objects.create(user=user, used_bytes=-1)
