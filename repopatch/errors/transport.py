from typing import Optional


class TransportError(Exception):
    """Network-level failure talking to the remote file service."""


class ServiceError(TransportError):
    """The remote service answered, but reported failure."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
