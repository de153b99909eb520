"""Tests for configuration and import options."""

from pathlib import Path

import pytest

from product_import.models.enums import DuplicateUrlKeyStrategy, UrlKeyScheme
from product_import.services.exceptions import ImportConfigError
from product_import.utils.config import Config, ImportConfig, get_config
from product_import.utils.constants import DATABASE_FILENAME, DEFAULT_BATCH_SIZE, MAX_BATCH_SIZE


class TestConfig:
    def test_production_database_in_home(self, monkeypatch):
        monkeypatch.delenv("PRODUCT_IMPORT_DB", raising=False)
        config = Config("production")

        assert config.database_path == Path.home() / ".product_import" / DATABASE_FILENAME
        assert not config.is_development

    def test_development_database_in_project(self, monkeypatch):
        monkeypatch.delenv("PRODUCT_IMPORT_DB", raising=False)
        config = Config("development")

        assert config.database_path.parent.name == "data"
        assert config.is_development

    def test_database_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PRODUCT_IMPORT_DB", str(tmp_path / "shop.db"))
        config = Config()

        assert config.database_url == f"sqlite:///{tmp_path.as_posix()}/shop.db"
        config.ensure_directories()
        assert tmp_path.exists()

    def test_log_level(self, monkeypatch):
        monkeypatch.setenv("PRODUCT_IMPORT_LOG_LEVEL", "debug")
        assert Config().log_level == "DEBUG"

        monkeypatch.setenv("PRODUCT_IMPORT_LOG_LEVEL", "chatty")
        assert Config().log_level == "INFO"

    def test_get_config_is_a_singleton(self, monkeypatch):
        monkeypatch.setenv("PRODUCT_IMPORT_ENV", "development")

        config = get_config()

        assert config.is_development
        assert get_config("production") is config


class TestImportConfig:
    def test_defaults(self):
        config = ImportConfig()

        assert config.url_key_scheme == UrlKeyScheme.FROM_NAME
        assert config.duplicate_url_key_strategy == DuplicateUrlKeyStrategy.ADD_SERIAL
        assert config.batch_size == DEFAULT_BATCH_SIZE

    def test_from_strings(self):
        config = ImportConfig.from_strings("from-sku", "add-sku", "50")

        assert config.url_key_scheme == UrlKeyScheme.FROM_SKU
        assert config.duplicate_url_key_strategy == DuplicateUrlKeyStrategy.ADD_SKU
        assert config.batch_size == 50

    @pytest.mark.parametrize(
        "kwargs, option",
        [
            ({"url_key_scheme": "from-title"}, "url_key_scheme"),
            ({"duplicate_url_key_strategy": "add-uuid"}, "duplicate_url_key_strategy"),
            ({"batch_size": "many"}, "batch_size"),
            ({"batch_size": 0}, "batch_size"),
            ({"batch_size": MAX_BATCH_SIZE + 1}, "batch_size"),
        ],
    )
    def test_invalid_values(self, kwargs, option):
        with pytest.raises(ImportConfigError) as exc_info:
            ImportConfig.from_strings(**kwargs)
        assert exc_info.value.option == option

    def test_rejects_plain_strings(self):
        with pytest.raises(ImportConfigError):
            ImportConfig(url_key_scheme="from-name")

    def test_largest_batch_size(self):
        assert ImportConfig(batch_size=MAX_BATCH_SIZE).batch_size == MAX_BATCH_SIZE
