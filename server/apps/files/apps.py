"""App registry entry for finalized files and storage quotas."""

from typing import override

from django.apps import AppConfig


class FilesConfig(AppConfig):
    """Finalized files, their quotas and blob cleanup on delete."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.files'
    verbose_name = 'File Registry'

    @override
    def ready(self) -> None:
        """Connect the storage cleanup signal."""
        from server.apps.files import signals  # noqa: F401
