"""Services package - Import logic for the product importer.

Architecture:
- Services: Classes that run one step of an import over a batch of products
- Transactions: One connection_scope() per batch
- Exceptions: Consistent error handling via ServiceError hierarchy
- Product problems: Collected on the product, never raised

Service Modules:
- url_key_service: Url key validation and generation
- tier_price_service: Tier price upsert and pruning
- product_import_service: Batch import orchestration
- import_log_service: Per product console reporting

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Engine, schema and connection management
- db_connection: Bulk SQL helper
- metadata: Attribute ids and table names
- logging_utils: Structured service logging
"""
