class CatalogueError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code = 500


class ValidationError(CatalogueError):
    """Bad client input; nothing has been mutated."""

    status_code = 400


class StorageError(CatalogueError):
    """Filesystem or catalogue I/O failed."""

    status_code = 500
