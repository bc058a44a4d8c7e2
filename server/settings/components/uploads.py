"""Chunked upload settings."""

from server.settings.components import config

# Largest file accepted by `init_upload` (1 GB)
UPLOAD_MAX_FILE_SIZE = config(
    'UPLOAD_MAX_FILE_SIZE',
    cast=int,
    default=1024 * 1024 * 1024,
)

# Largest accepted chunk (5 MB)
UPLOAD_CHUNK_SIZE = config('UPLOAD_CHUNK_SIZE', cast=int, default=5 * 1024 * 1024)

# Upper bound for `totalChunks` of a single upload
UPLOAD_MAX_CHUNKS = config('UPLOAD_MAX_CHUNKS', cast=int, default=10000)

# Merged content above this size is spooled to a temporary file
UPLOAD_MERGE_SPOOL_SIZE = config(
    'UPLOAD_MERGE_SPOOL_SIZE',
    cast=int,
    default=32 * 1024 * 1024,
)

# Sessions untouched for this long are cancelled by `cleanup_stale_uploads`
UPLOAD_STALE_HOURS = config('UPLOAD_STALE_HOURS', cast=int, default=24)

# Algorithm of the whole-file hash declared by clients
UPLOAD_HASH_ALGORITHM = config('UPLOAD_HASH_ALGORITHM', default='md5')
