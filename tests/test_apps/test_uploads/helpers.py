"""Helpers for building chunked upload payloads."""

import hashlib

CHUNK_SIZE = 100


def md5_hex(content: bytes) -> str:
    """Hex md5 digest, the hash clients declare."""
    return hashlib.md5(content).hexdigest()  # noqa: S324


def split_chunks(content: bytes, chunk_size: int = CHUNK_SIZE) -> list[bytes]:
    """Cut content into fixed-size chunks, the last one may be shorter."""
    return [
        content[offset:offset + chunk_size]
        for offset in range(0, len(content), chunk_size)
    ]
