class StoreError(Exception):
    """Raised when the local content or settings store cannot be read or written."""
