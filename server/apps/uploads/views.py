"""HTTP endpoints of the chunk upload API.

Every response is wrapped as ``{"code", "message", "data"}``; errors
use the same envelope without ``data``.
"""

import logging
from typing import Any

from rest_framework import status
from rest_framework.decorators import api_view, parser_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import exception_handler

from server.apps.files.exceptions import QuotaExceededError
from server.apps.uploads.exceptions import ChunkUploadError
from server.apps.uploads.logic.chunk_operations import (
    ChunkUploadRequest,
    check_chunk_uploaded,
    list_uploaded_chunks,
    upload_chunk,
)
from server.apps.uploads.logic.merge_operations import merge_chunks
from server.apps.uploads.logic.session_operations import (
    cancel_upload,
    init_upload,
)
from server.apps.uploads.serializers import (
    ChunkQuerySerializer,
    ChunkUploadResultSerializer,
    ChunkUploadSerializer,
    FileSerializer,
    InitUploadSerializer,
    UploadIdSerializer,
)

logger = logging.getLogger(__name__)


def success_response(data: Any, message: str = 'success') -> Response:
    """Wrap payload into the success envelope."""
    return Response({
        'code': status.HTTP_200_OK,
        'message': message,
        'data': data,
    })


def error_response(status_code: int, message: str, **extra: Any) -> Response:
    """Build the error envelope."""
    return Response(
        {'code': status_code, 'message': message, **extra},
        status=status_code,
    )


def upload_exception_handler(
    exc: Exception,
    context: dict[str, Any],
) -> Response | None:
    """Render domain errors and DRF errors with the API envelope.

    Configured as REST_FRAMEWORK['EXCEPTION_HANDLER'].
    """
    if isinstance(exc, ChunkUploadError | QuotaExceededError):
        logger.info(
            'Upload request rejected (%s): %s',
            type(exc).__name__,
            exc.message,
        )
        return error_response(exc.status_code, exc.message)

    response = exception_handler(exc, context)
    if response is None:
        return None

    detail = response.data
    if isinstance(detail, dict) and 'detail' in detail:
        response.data = {'code': response.status_code, 'message': str(detail['detail'])}
    else:
        response.data = {
            'code': response.status_code,
            'message': 'Invalid request parameters',
            'errors': detail,
        }
    return response


@api_view(['POST'])
@parser_classes([JSONParser, FormParser, MultiPartParser])
def init_upload_view(request: Request) -> Response:
    """Start a chunked upload, or reuse an identical file."""
    serializer = InitUploadSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    upload_id = init_upload(request.user, **serializer.validated_data)
    return success_response(upload_id)


@api_view(['POST'])
@parser_classes([MultiPartParser, FormParser])
def upload_chunk_view(request: Request) -> Response:
    """Receive one chunk; the last one returns the merged file."""
    serializer = ChunkUploadSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    params = serializer.validated_data

    result = upload_chunk(
        request.user,
        ChunkUploadRequest(
            upload_id=params['upload_id'],
            chunk_number=params['chunk_number'],
            total_chunks=params['total_chunks'],
            is_last_chunk=params['is_last_chunk'],
        ),
        params['file'],
    )
    return success_response(ChunkUploadResultSerializer(result).data)


@api_view(['GET'])
def check_chunk_view(request: Request) -> Response:
    """Tell whether a chunk is already stored."""
    serializer = ChunkQuerySerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    uploaded = check_chunk_uploaded(
        request.user,
        serializer.validated_data['upload_id'],
        serializer.validated_data['chunk_number'],
    )
    return success_response(uploaded)


@api_view(['GET'])
def list_chunks_view(request: Request) -> Response:
    """List stored chunk numbers so a client can resume."""
    serializer = UploadIdSerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    chunk_numbers = list_uploaded_chunks(
        request.user,
        serializer.validated_data['upload_id'],
    )
    return success_response(chunk_numbers)


@api_view(['POST'])
@parser_classes([JSONParser, FormParser, MultiPartParser])
def merge_chunks_view(request: Request) -> Response:
    """Merge an upload whose chunks are all stored."""
    serializer = UploadIdSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    file_instance = merge_chunks(
        request.user,
        serializer.validated_data['upload_id'],
    )
    return success_response(FileSerializer(file_instance).data)


@api_view(['DELETE'])
def cancel_upload_view(request: Request) -> Response:
    """Cancel an upload; unknown uploads are ignored."""
    serializer = UploadIdSerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    cancel_upload(request.user, serializer.validated_data['upload_id'])
    return success_response(None)
