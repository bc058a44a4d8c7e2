"""Request and response serializers for the chunk upload API.

Field names are camelCase on the wire and snake_case in Python.
"""

from rest_framework import serializers

from server.apps.files.models import File


class InitUploadSerializer(serializers.Serializer):
    """Body of ``POST /chunks/init``."""

    fileName = serializers.CharField(source='file_name', max_length=255)  # noqa: N815
    fileSize = serializers.IntegerField(source='file_size')  # noqa: N815
    fileHash = serializers.CharField(source='file_hash', max_length=128)  # noqa: N815


class ChunkUploadSerializer(serializers.Serializer):
    """Multipart body of ``POST /chunks/upload``.

    Range checks on the chunk numbers are left to the chunk receiver
    so that every failure carries its own message.
    """

    file = serializers.FileField(allow_empty_file=True)
    uploadId = serializers.CharField(source='upload_id', max_length=64)  # noqa: N815
    chunkNumber = serializers.IntegerField(source='chunk_number')  # noqa: N815
    totalChunks = serializers.IntegerField(source='total_chunks')  # noqa: N815
    isLastChunk = serializers.BooleanField(  # noqa: N815
        source='is_last_chunk',
        default=False,
    )


class UploadIdSerializer(serializers.Serializer):
    """Query or body carrying only the session token."""

    uploadId = serializers.CharField(source='upload_id', max_length=64)  # noqa: N815


class ChunkQuerySerializer(UploadIdSerializer):
    """Query of ``GET /chunks/check``."""

    chunkNumber = serializers.IntegerField(source='chunk_number', min_value=0)  # noqa: N815


class FileSerializer(serializers.ModelSerializer):
    """Finalized file as returned to clients."""

    fileSize = serializers.IntegerField(source='size_bytes')  # noqa: N815
    mimeType = serializers.CharField(source='mime_type')  # noqa: N815
    contentHash = serializers.CharField(source='content_hash')  # noqa: N815
    url = serializers.CharField(source='get_url')
    createdAt = serializers.DateTimeField(source='uploaded_at')  # noqa: N815

    class Meta:
        """Serializer metadata."""

        model = File
        fields = (
            'id',
            'name',
            'fileSize',
            'mimeType',
            'contentHash',
            'status',
            'url',
            'createdAt',
        )
        read_only_fields = fields


class ChunkUploadResultSerializer(serializers.Serializer):
    """Outcome of ``POST /chunks/upload``."""

    filename = serializers.CharField()
    chunkNumber = serializers.IntegerField(source='chunk_number')  # noqa: N815
    completed = serializers.BooleanField()
    alreadyUploaded = serializers.BooleanField(source='already_uploaded')  # noqa: N815
    instant = serializers.BooleanField()
    file = FileSerializer(allow_null=True)
