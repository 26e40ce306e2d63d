class PatchParseError(Exception):
    """Raised when patch text cannot be parsed as a unified diff."""
