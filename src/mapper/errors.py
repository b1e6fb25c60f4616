"""Exception hierarchy for the mapper core.

ValidationError maps to HTTP 400 at the API edge; every other MapperError
maps to HTTP 500. Nothing in the core retries on failure.
"""

from __future__ import annotations


class MapperError(Exception):
    """Base class for all mapper failures."""


# ---------------------------------------------------------------------------
# Client input
# ---------------------------------------------------------------------------

class ValidationError(MapperError):
    """Missing or malformed caller-supplied input."""


class MissingParameterError(ValidationError):
    """A required request parameter was not supplied."""

    def __init__(self, *names: str) -> None:
        self.names = names
        super().__init__(f"{', '.join(names)} required")


class FileTooLargeError(ValidationError):
    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"File too large: {size} bytes (max {limit})")


class TooManyRowsError(ValidationError):
    def __init__(self, rows: int, limit: int) -> None:
        self.rows = rows
        self.limit = limit
        super().__init__(f"Too many rows: {rows} (max {limit})")


class UnsupportedFileTypeError(ValidationError):
    def __init__(self, file_name: str, reason: str = "") -> None:
        self.file_name = file_name
        msg = f"Unsupported file type: {file_name}"
        super().__init__(f"{msg} ({reason})" if reason else msg)


class EmptyFileError(ValidationError):
    """Tabular upload with no rows."""


class InvalidKmlError(ValidationError):
    """Uploaded KML failed structural validation."""


# ---------------------------------------------------------------------------
# External collaborators
# ---------------------------------------------------------------------------

class UpstreamError(MapperError):
    """Non-success response from an external service."""

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(message)


class UpstreamQueryError(UpstreamError):
    """Dataset query rejected by the record service."""

    def __init__(self, status: int, body: str = "") -> None:
        super().__init__(f"Dataset query failed: {status} - {body}", status, body)


class StoreOperationError(UpstreamError):
    """File store call failed."""

    def __init__(self, operation: str, status: int | None, body: str = "") -> None:
        self.operation = operation
        super().__init__(f"File store {operation} failed: {status}", status, body)


class GeocodeHttpError(UpstreamError):
    def __init__(self, status: int) -> None:
        super().__init__(f"Geocoding HTTP error: {status}", status)


class GeocodeTimeoutError(UpstreamError):
    def __init__(self, query: str) -> None:
        self.query = query
        super().__init__(f"Geocoding timed out: {query}")


# ---------------------------------------------------------------------------
# Missing entities
# ---------------------------------------------------------------------------

class NotFoundError(MapperError):
    """A resolvable entity is absent."""


class LayerMetadataNotFoundError(NotFoundError):
    def __init__(self, layer_id: str) -> None:
        self.layer_id = layer_id
        super().__init__(f"Layer metadata not found: {layer_id}")


class LayerNotFoundError(NotFoundError):
    """Layer id is not an active layer file of the project."""

    def __init__(self, layer_id: str) -> None:
        self.layer_id = layer_id
        super().__init__(f"Layer not found: {layer_id}")


class AddressNotFoundError(NotFoundError):
    def __init__(self, query: str) -> None:
        self.query = query
        super().__init__(f"Address not found: {query}")


# ---------------------------------------------------------------------------
# Record parent chain
# ---------------------------------------------------------------------------

class MissingParentError(MapperError):
    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Record has no parent: {record_id}")


class UnsupportedParentError(MapperError):
    def __init__(self, record_id: str, parent_type: str | None) -> None:
        self.record_id = record_id
        self.parent_type = parent_type
        super().__init__(f"Unsupported parent type {parent_type!r} for record {record_id}")


class ParentChainTooDeepError(MapperError):
    def __init__(self, record_id: str, max_hops: int) -> None:
        self.record_id = record_id
        self.max_hops = max_hops
        super().__init__(f"Parent chain of {record_id} exceeds {max_hops} hops")


# ---------------------------------------------------------------------------
# KML / layers
# ---------------------------------------------------------------------------

class MalformedXmlError(MapperError):
    """KML text is not well-formed XML."""


class InvalidActionError(MapperError):
    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Invalid action: {action}")
