"""Bulk product importer with url key resolution and tier price reconciliation."""

__version__ = "0.1.0"
