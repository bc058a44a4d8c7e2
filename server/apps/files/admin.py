"""Django admin configuration for files app."""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest

from server.apps.files.models import File, UserQuota

_KB = 1024
_MB = _KB * 1024
_GB = _MB * 1024


def format_size(size_bytes: int) -> str:
    """Format a byte count for humans (e.g., '1.5 MB', '234 KB')."""
    if size_bytes < _KB:
        return f'{size_bytes} B'
    if size_bytes < _MB:
        return f'{size_bytes / _KB:.1f} KB'
    if size_bytes < _GB:
        return f'{size_bytes / _MB:.1f} MB'
    return f'{size_bytes / _GB:.1f} GB'


@admin.register(File)
class FileAdmin(admin.ModelAdmin[File]):
    """Admin interface for File model."""

    list_display = [
        'name',
        'user',
        'size_display',
        'mime_type',
        'status',
        'uploaded_at',
    ]

    list_filter = [
        'status',
        'mime_type',
        'uploaded_at',
    ]

    search_fields = [
        'name',
        'file',
        'content_hash',
    ]

    readonly_fields = [
        'file',
        'size_bytes',
        'mime_type',
        'content_hash',
        'uploaded_at',
        'modified_at',
    ]

    fieldsets = (
        ('File Information', {
            'fields': ('name', 'file', 'user', 'status'),
        }),
        ('Metadata', {
            'fields': (
                'size_bytes',
                'mime_type',
                'content_hash',
            ),
        }),
        ('Timestamps', {
            'fields': ('uploaded_at', 'modified_at'),
        }),
    )

    @admin.display(description='Size')
    def size_display(self, obj: File) -> str:
        """Display file size in human-readable format."""
        return format_size(obj.size_bytes)

    def get_queryset(self, request: HttpRequest) -> QuerySet[File]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related('user')


@admin.register(UserQuota)
class UserQuotaAdmin(admin.ModelAdmin[UserQuota]):
    """Admin interface for per-user storage limits."""

    list_display = ['user', 'used_display', 'limit_display']
    search_fields = ['user__username']

    @admin.display(description='Used')
    def used_display(self, obj: UserQuota) -> str:
        """Display used storage."""
        return format_size(obj.used_bytes)

    @admin.display(description='Limit')
    def limit_display(self, obj: UserQuota) -> str:
        """Display storage limit."""
        return format_size(obj.quota_bytes)
