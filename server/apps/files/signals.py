"""Signal handlers for files app."""

import logging

from django.core.files.storage import default_storage
from django.db.models.signals import post_delete
from django.dispatch import receiver

from server.apps.files.models import File

logger = logging.getLogger(__name__)


@receiver(post_delete, sender=File)
def delete_file_from_storage(
    sender: type[File],
    instance: File,
    **kwargs: object,
) -> None:
    """Delete the stored object when its File record is deleted.

    Args:
        sender: The File model class.
        instance: The File instance being deleted.
        **kwargs: Additional signal arguments.
    """
    storage_name = instance.file.name
    if not storage_name:
        return

    try:
        default_storage.delete(storage_name)
        logger.info('File deleted from storage: %s', storage_name)
    except Exception:
        # DB delete already succeeded, the object is left orphaned
        logger.exception(
            'Failed to delete file from storage (orphaned): %s',
            storage_name,
        )
