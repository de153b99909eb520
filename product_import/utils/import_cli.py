"""
Product Import CLI Utility

Command-line interface for creating the product database and importing
product files. No UI required - designed for scheduled and scripted use.

Usage Examples:
    # Create the tables and attributes
    python -m product_import.utils.import_cli init-db

    # Import products, generating url keys from the name
    python -m product_import.utils.import_cli import products.json

    # Generate url keys from the sku, disambiguate with the sku
    python -m product_import.utils.import_cli import products.jsonl \\
        --url-key-scheme from-sku --duplicate-strategy add-sku

    # Use another database file
    python -m product_import.utils.import_cli import products.json --db /tmp/shop.db
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from ..models.enums import DuplicateUrlKeyStrategy, UrlKeyScheme
from ..services.database import create_database_engine, init_database, verify_database
from ..services.exceptions import ServiceError
from ..services.import_log_service import ProductImportLogger
from ..services.product_import_service import ProductImporter
from .config import ImportConfig, get_config
from .product_reader import read_products


def _engine_for(db_path: Optional[str]):
    if db_path is None:
        return create_database_engine()
    Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
    return create_database_engine(f"sqlite:///{Path(db_path).expanduser()}")


def init_db(db_path: Optional[str] = None) -> int:
    """Create the schema and seed the attributes."""
    engine = _engine_for(db_path)
    try:
        init_database(engine)
    finally:
        engine.dispose()
    print("Database initialized")
    return 0


def import_file(
    file_path: str,
    import_config: ImportConfig,
    db_path: Optional[str] = None,
) -> int:
    """Import the products of one file."""
    import_logger = ProductImportLogger()
    start_time = time.time()

    try:
        products = read_products(file_path)
    except ServiceError as e:
        import_logger.handle_exception(e)
        return 1

    import_logger.info(f"Importing {len(products)} products from {file_path}...")

    engine = _engine_for(db_path)
    try:
        if not verify_database(engine):
            init_database(engine)

        importer = ProductImporter(engine, import_config, import_logger)
        result = importer.import_products(products)
    except ServiceError:
        # already reported by the importer
        return 1
    finally:
        engine.dispose()

    import_logger.info(result.get_summary())
    import_logger.info(f"Duration: {time.time() - start_time:.2f}s")

    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bulk product importer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Create the database:
    python -m product_import.utils.import_cli init-db

  Import products:
    python -m product_import.utils.import_cli import products.json

  Url keys from the sku, duplicates get the sku appended:
    python -m product_import.utils.import_cli import products.json \\
        --url-key-scheme from-sku --duplicate-strategy add-sku
""",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    init_parser = subparsers.add_parser("init-db", help="Create tables and attributes")
    init_parser.add_argument("--db", dest="db_path", help="SQLite database file")

    import_parser = subparsers.add_parser("import", help="Import a JSON / JSON Lines product file")
    import_parser.add_argument("file", help="Product file (.json or .jsonl)")
    import_parser.add_argument("--db", dest="db_path", help="SQLite database file")
    import_parser.add_argument(
        "--url-key-scheme",
        choices=[scheme.value for scheme in UrlKeyScheme],
        default=UrlKeyScheme.FROM_NAME.value,
        help="Source of generated url keys (default: from-name)",
    )
    import_parser.add_argument(
        "--duplicate-strategy",
        choices=[strategy.value for strategy in DuplicateUrlKeyStrategy],
        default=DuplicateUrlKeyStrategy.ADD_SERIAL.value,
        help="How taken url keys are made unique (default: add-serial)",
    )
    import_parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Products per transaction and rows per statement (default: 1000)",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=get_config().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "init-db":
        return init_db(args.db_path)

    try:
        import_config = ImportConfig.from_strings(
            url_key_scheme=args.url_key_scheme,
            duplicate_url_key_strategy=args.duplicate_strategy,
            batch_size=args.batch_size,
        )
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1

    return import_file(args.file, import_config, args.db_path)


if __name__ == "__main__":
    sys.exit(main())
