"""Django app configuration for uploads app."""

from django.apps import AppConfig


class UploadsConfig(AppConfig):
    """Configuration for chunked uploads app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.uploads'
    verbose_name = 'Chunked uploads'
