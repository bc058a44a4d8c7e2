"""Infrastructure layer for files app.

This package contains integrations with external systems:
- S3-compatible storage backend (MinIO locally)
- Metadata helpers (hashing, MIME type, storage keys)

Keep infrastructure concerns separate from business logic.
"""
