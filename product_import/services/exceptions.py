"""Service layer exception classes for the product importer.

This module defines the custom exceptions used by the service layer to provide
consistent error handling across the importer.

Problems with a single product (a url key that is already taken, for example)
are never raised. They are added to the product with ``Product.add_error()``
so the rest of the batch can continue. Exceptions are reserved for problems
that stop the whole import.

Exception Hierarchy:
    ServiceError (base)
    ├── DatabaseError
    ├── ImportConfigError
    └── ProductFileError
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


class ImportConfigError(ServiceError):
    """Raised when an import option has an unsupported value."""

    def __init__(self, option: str, value: Any):
        self.option = option
        self.value = value
        super().__init__(f"Invalid value for {option}: {value!r}")


class ProductFileError(ServiceError):
    """Raised when an import file cannot be read or has the wrong shape."""

    def __init__(self, file_path: str, message: str):
        self.file_path = file_path
        super().__init__(f"Cannot read products from {file_path}: {message}")
