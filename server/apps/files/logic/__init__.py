"""Business logic layer for files app.

This package contains the file registry used by uploads:
- Finalized file records and deduplication lookups
- Storage quota accounting

Models stay the data layer, infrastructure talks to storage.
"""
