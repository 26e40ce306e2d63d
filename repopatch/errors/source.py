class SourceError(Exception):
    """Base error for project source registry operations."""


class SourceNotFoundError(SourceError, KeyError):
    """Raised when a source id does not reference a registered source."""

    def __init__(self, source_id):
        super().__init__(f"Project source not found: {source_id}")
        self.source_id = source_id

    def __str__(self) -> str:
        return self.args[0]
