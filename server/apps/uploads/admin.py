"""Django admin configuration for uploads app."""

from django.contrib import admin
from django.db.models import Count, QuerySet
from django.http import HttpRequest

from server.apps.files.admin import format_size
from server.apps.uploads.models import FileChunk, UploadSession


class FileChunkInline(admin.TabularInline):
    """Ledger rows shown on the session page."""

    model = FileChunk
    extra = 0
    can_delete = False
    fields = ['chunk_number', 'chunk_size', 'status', 'storage_key', 'updated_at']
    readonly_fields = fields


@admin.register(UploadSession)
class UploadSessionAdmin(admin.ModelAdmin[UploadSession]):
    """Admin interface for upload sessions."""

    list_display = [
        'file_name',
        'user',
        'state',
        'size_display',
        'chunks_display',
        'updated_at',
    ]

    list_filter = ['state', 'created_at']

    search_fields = ['upload_id', 'file_name', 'user__username']

    readonly_fields = [
        'upload_id',
        'file_hash',
        'total_size',
        'total_chunks',
        'file',
        'error_message',
        'created_at',
        'updated_at',
    ]

    inlines = [FileChunkInline]

    @admin.display(description='Size')
    def size_display(self, obj: UploadSession) -> str:
        """Display declared size in human-readable format."""
        return format_size(obj.total_size)

    @admin.display(description='Chunks')
    def chunks_display(self, obj: UploadSession) -> str:
        """Display received vs expected chunk count."""
        expected = obj.total_chunks if obj.total_chunks is not None else '?'
        return f'{obj.chunk_count}/{expected}'

    def get_queryset(self, request: HttpRequest) -> QuerySet[UploadSession]:
        """Annotate chunk count and join the owner."""
        return super().get_queryset(request).select_related('user').annotate(
            chunk_count=Count('chunks'),
        )
