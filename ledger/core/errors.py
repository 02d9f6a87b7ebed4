"""Error types shared by the database, configuration and telemetry layers."""

from typing import Optional


class DatabaseError(Exception):
    """Base exception for database operations."""

    prefix = "Other database error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"{self.prefix}: {message}")


class DatabaseConnectionError(DatabaseError):
    """Raised when the engine cannot be created or the database is unreachable."""

    prefix = "Error connecting to the database"


class MigrationError(DatabaseError):
    """Raised when the schema cannot be created."""

    prefix = "Database migration error"


class DatabaseValidationError(DatabaseError):
    """Raised for invalid settings or constraint violations."""

    prefix = "Validation"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class CategoryExistsError(DatabaseValidationError):
    """Raised when a category code or id is already taken."""

    def __init__(self, message: str = "Category already exists", field: Optional[str] = "code"):
        super().__init__(message, field=field)


class NotFoundError(DatabaseError):
    """Raised when a requested record does not exist."""

    prefix = "Not found"


class TelemetryError(Exception):
    """Raised for invalid telemetry levels or logging setup failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Telemetry error: {message}")


class ConfigError(Exception):
    """Raised when a configuration file cannot be read."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        super().__init__(message)
