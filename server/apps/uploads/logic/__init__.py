"""Business logic layer for chunked uploads.

- session_operations: init, instant upload, cancellation
- chunk_operations: receiving and validating single chunks
- merge_operations: concatenation, verification, finalization
- ledger: persistence of chunk receipt state
"""
