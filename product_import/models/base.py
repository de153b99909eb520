"""
Base model class for the storage tables.

The importer talks to the store with plain SQL through DbConnection; the
declarative models exist to create the schema (init_database, tests) and to
document the layout the SQL relies on.
"""

from sqlalchemy.orm import declarative_base

# Create the declarative base for all models
Base = declarative_base()
