"""Error types shared by the extractors, the index store and the search engine."""


class DoctreeError(Exception):
    """Base class for all doctree errors."""


class IndexIOError(DoctreeError):
    """Raised when the filesystem or the index database fails.

    The offending path or key is always part of the message.
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class ParseError(DoctreeError):
    """Raised when an extractor cannot parse a source file."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to parse {path}: {reason}")
        self.path = path
        self.reason = reason


class IndexNotFoundError(DoctreeError, LookupError):
    """Raised when no index is stored for a (project, language) key."""

    def __init__(self, project: str, language: str):
        super().__init__(f"No index stored for project '{project}' ({language})")
        self.project = project
        self.language = language


class SchemaVersionError(DoctreeError):
    """Raised when a stored index was written by a newer schema version."""

    def __init__(self, found: int, supported: int, key: str | None = None):
        where = f" for {key}" if key else ""
        super().__init__(
            f"Incompatible schema version{where}: found {found}, "
            f"this reader supports up to {supported}"
        )
        self.found = found
        self.supported = supported


class SchemaError(DoctreeError, ValueError):
    """Raised when an index document violates the schema."""


class RegistryError(DoctreeError, ValueError):
    """Raised when extractors are registered inconsistently."""


class AuthError(DoctreeError):
    """Raised when the server's access mode refuses an operation."""


class OperationCancelled(DoctreeError):
    """Raised when a caller cancelled the operation or its deadline passed."""
