"""
Configuration management for the product importer.

This module handles:
- Database path configuration
- Environment-specific configuration (development vs. production)
- Import options (url key scheme, duplicate strategy, batch size)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .constants import (
    DATABASE_FILENAME,
    DEFAULT_BATCH_SIZE,
    MAX_BATCH_SIZE,
)
from ..models.enums import DuplicateUrlKeyStrategy, UrlKeyScheme

logger = logging.getLogger(__name__)

ENV_ENVIRONMENT = "PRODUCT_IMPORT_ENV"
ENV_DATABASE = "PRODUCT_IMPORT_DB"
ENV_LOG_LEVEL = "PRODUCT_IMPORT_LOG_LEVEL"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Config:
    """
    Where the product store lives and how loudly the importer logs.

    Resolution order for the database file:
    1. PRODUCT_IMPORT_DB
    2. data/product_import.db in the project (development)
    3. ~/.product_import/product_import.db (production)
    """

    def __init__(self, environment: str = "production"):
        self.environment = environment
        self._database_path = self._resolve_database_path()

        level = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()
        self._log_level = level if level in VALID_LOG_LEVELS else "INFO"

    def _resolve_database_path(self) -> Path:
        override = os.environ.get(ENV_DATABASE)
        if override:
            return Path(override).expanduser()
        if self.is_development:
            # <project>/data next to the package
            return Path(__file__).resolve().parent.parent.parent / "data" / DATABASE_FILENAME
        return Path.home() / ".product_import" / DATABASE_FILENAME

    def ensure_directories(self):
        """Create the directory that holds the database file."""
        self._database_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._database_path

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL of the database file."""
        return f"sqlite:///{self._database_path.as_posix()}"

    @property
    def log_level(self) -> str:
        """Name of the logging level (DEBUG, INFO, ...)."""
        return self._log_level

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def __repr__(self) -> str:
        return f"Config(environment='{self.environment}', database_path='{self._database_path}')"


@dataclass(frozen=True)
class ImportConfig:
    """
    Options for one import run.

    Attributes:
        url_key_scheme: Source of generated url keys
        duplicate_url_key_strategy: Disambiguation for taken url keys
        batch_size: Products per transaction and rows per multi-row statement,
            1 to MAX_BATCH_SIZE
    """

    url_key_scheme: UrlKeyScheme = UrlKeyScheme.FROM_NAME
    duplicate_url_key_strategy: DuplicateUrlKeyStrategy = DuplicateUrlKeyStrategy.ADD_SERIAL
    batch_size: int = DEFAULT_BATCH_SIZE

    def __post_init__(self):
        from ..services.exceptions import ImportConfigError

        if not isinstance(self.url_key_scheme, UrlKeyScheme):
            raise ImportConfigError("url_key_scheme", self.url_key_scheme)
        if not isinstance(self.duplicate_url_key_strategy, DuplicateUrlKeyStrategy):
            raise ImportConfigError("duplicate_url_key_strategy", self.duplicate_url_key_strategy)
        if not isinstance(self.batch_size, int) or not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ImportConfigError("batch_size", self.batch_size)

    @classmethod
    def from_strings(
        cls,
        url_key_scheme: Optional[str] = None,
        duplicate_url_key_strategy: Optional[str] = None,
        batch_size: Optional[Union[int, str]] = None,
    ) -> "ImportConfig":
        """
        Build an ImportConfig from raw option values (CLI, environment).

        Missing values fall back to the defaults.

        Raises:
            ImportConfigError: If a value is not recognized
        """
        from ..services.exceptions import ImportConfigError

        kwargs = {}
        if url_key_scheme is not None:
            try:
                kwargs["url_key_scheme"] = UrlKeyScheme(url_key_scheme)
            except ValueError as e:
                raise ImportConfigError("url_key_scheme", url_key_scheme) from e
        if duplicate_url_key_strategy is not None:
            try:
                kwargs["duplicate_url_key_strategy"] = DuplicateUrlKeyStrategy(
                    duplicate_url_key_strategy
                )
            except ValueError as e:
                raise ImportConfigError(
                    "duplicate_url_key_strategy", duplicate_url_key_strategy
                ) from e
        if batch_size is not None:
            try:
                kwargs["batch_size"] = int(batch_size)
            except (TypeError, ValueError) as e:
                raise ImportConfigError("batch_size", batch_size) from e
        return cls(**kwargs)


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument - this prevents switching databases
    in the middle of an import.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    PRODUCT_IMPORT_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_ENVIRONMENT, "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None
