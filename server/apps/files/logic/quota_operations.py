"""Business logic for storage quota operations."""

import logging
from typing import Any

from django.db import transaction
from django.db.models import F

from server.apps.files.exceptions import QuotaExceededError
from server.apps.files.models import UserQuota

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def get_or_create_quota(user: _User) -> UserQuota:
    """Get or create quota for user (on-demand creation).

    Args:
        user: User to get quota for.

    Returns:
        UserQuota instance for the user.
    """
    quota, created = UserQuota.objects.get_or_create(user=user)
    if created:
        logger.info(
            'Created quota for user %s: %d bytes',
            user.username,
            quota.quota_bytes,
        )
    return quota


def check_quota(user: _User, size_bytes: int) -> None:
    """Refuse an upload that would not fit into the user's quota.

    Args:
        user: Uploading user.
        size_bytes: Declared size of the upload.

    Raises:
        QuotaExceededError: If the upload would exceed the quota.
    """
    quota = get_or_create_quota(user)
    if quota.has_space_for(size_bytes):
        return

    logger.warning(
        'Quota exceeded for user %s: need %d, have %d available',
        user.username,
        size_bytes,
        quota.available_bytes(),
    )
    raise QuotaExceededError(
        quota_bytes=quota.quota_bytes,
        used_bytes=quota.used_bytes,
        required_bytes=size_bytes,
    )


def increment_usage(user: _User, size_bytes: int) -> None:
    """Atomically add a finalized file's size to the user's usage."""
    with transaction.atomic():
        updated = UserQuota.objects.filter(user=user).update(
            used_bytes=F('used_bytes') + size_bytes,
        )
        if not updated:
            quota = get_or_create_quota(user)
            quota.used_bytes = size_bytes
            quota.save(update_fields=['used_bytes'])

    logger.debug(
        'Incremented usage for user %s by %d bytes',
        user.username,
        size_bytes,
    )


def decrement_usage(user: _User, size_bytes: int) -> None:
    """Atomically release storage usage, clamping at zero."""
    with transaction.atomic():
        try:
            quota = UserQuota.objects.select_for_update().get(user=user)
        except UserQuota.DoesNotExist:
            logger.debug(
                'No quota exists for user %s, skipping decrement',
                user.username,
            )
            return

        quota.used_bytes = max(0, quota.used_bytes - size_bytes)
        quota.save(update_fields=['used_bytes'])

    logger.debug(
        'Decremented usage for user %s by %d bytes (new: %d)',
        user.username,
        size_bytes,
        quota.used_bytes,
    )
