"""Exception hierarchy for ingestion and search."""


class DocumentSearchError(Exception):
    """Base exception for the document search service."""
    pass


class ConfigurationError(DocumentSearchError):
    """Raised when a configuration value is invalid (e.g. non-positive chunk size)."""
    pass


class IngestionError(DocumentSearchError):
    """Raised when an ingestion job cannot complete."""
    pass


class StreamReadError(IngestionError):
    """Raised when the uploaded byte stream cannot be read."""
    pass


class ExtractionError(IngestionError):
    """Raised when text extraction from a document fails."""
    pass


class SearchIndexError(DocumentSearchError):
    """Raised when a write or query against the search index fails."""
    pass
