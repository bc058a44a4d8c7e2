"""Management command to cancel abandoned chunked uploads."""

import logging
from datetime import timedelta
from typing import Any, Final

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from server.apps.uploads.logic.session_operations import cancel_upload
from server.apps.uploads.models import UploadSession

_DEFAULT_BATCH_SIZE: Final = 1000

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Cancel upload sessions nobody touched for a while."""

    help = 'Cancel stale chunked uploads and delete their chunks'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--hours',
            type=int,
            default=getattr(settings, 'UPLOAD_STALE_HOURS', 24),
            help='Cancel sessions idle for this many hours',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be cancelled without cancelling',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=f'Max sessions to process (default: {_DEFAULT_BATCH_SIZE})',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        cutoff = timezone.now() - timedelta(hours=options['hours'])

        self.stdout.write(f'Looking for uploads idle since {cutoff}')

        stale_sessions = UploadSession.objects.filter(
            state__in=UploadSession.RECEIVING_STATES,
            updated_at__lte=cutoff,
        ).select_related('user').order_by('updated_at')[:options['batch_size']]

        count = 0
        failed = 0
        for session in stale_sessions:
            if dry_run:
                self.stdout.write(
                    f'Would cancel: {session.upload_id} '
                    f'({session.file_name}, user: {session.user.username}, '
                    f'state: {session.state})',
                )
                count += 1
                continue

            try:
                cancel_upload(session.user, session.upload_id)
            except Exception as exc:
                self.stderr.write(f'Failed to cancel {session.upload_id}: {exc}')
                logger.exception(
                    'Failed to cancel stale upload: %s',
                    session.upload_id,
                )
                failed += 1
            else:
                count += 1

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would cancel {count} stale uploads'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Cancelled {count} stale uploads, {failed} failed',
                ),
            )
