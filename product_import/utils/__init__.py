"""Utilities package for the product importer."""
