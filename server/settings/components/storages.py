"""Django storage configuration for S3-compatible backends.

This module configures django-storages to work with:
- MinIO for local development
- Any S3-compatible bucket in production

Chunks and merged files share the same bucket and the same backend.
"""

from typing import Any, Final

from botocore.config import Config

from server.settings.components import config

# Seconds before a single storage call gives up; bounds merge reads
UPLOAD_STORAGE_TIMEOUT: Final = config('UPLOAD_STORAGE_TIMEOUT', cast=int, default=30)

STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.files.infrastructure.storage.FileStorage',
        'OPTIONS': {
            'bucket_name': config(
                'AWS_STORAGE_BUCKET_NAME',
                default='filedrop',
            ),
            'access_key': config('AWS_ACCESS_KEY_ID', default='testing'),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default='testing'),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='us-east-1',
            ),
            # Chunk keys are deterministic, a retried chunk replaces the blob
            'file_overwrite': True,
            'default_acl': None,  # Inherit bucket ACL
            'client_config': Config(
                connect_timeout=UPLOAD_STORAGE_TIMEOUT,
                read_timeout=UPLOAD_STORAGE_TIMEOUT,
                retries={'max_attempts': 3, 'mode': 'standard'},
            ),
        },
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
