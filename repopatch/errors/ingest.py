class IngestError(Exception):
    """Raised when an uploaded archive or folder cannot be processed at all."""
