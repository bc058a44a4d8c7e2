"""Exceptions for files app."""


class QuotaExceededError(Exception):
    """Raised when an upload would not fit into the user's storage quota."""

    status_code = 413

    def __init__(
        self,
        quota_bytes: int,
        used_bytes: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            quota_bytes: Total quota limit in bytes.
            used_bytes: Currently used bytes.
            required_bytes: Bytes the upload declares.
        """
        self.quota_bytes = quota_bytes
        self.used_bytes = used_bytes
        self.required_bytes = required_bytes
        self.available_bytes = max(0, quota_bytes - used_bytes)
        self.message = (
            f'Storage quota exceeded: upload needs {required_bytes} bytes, '
            f'{self.available_bytes} bytes left of {quota_bytes}'
        )
        super().__init__(self.message)
