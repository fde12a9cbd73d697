"""Toolkit for testing data source plugins."""

__version__ = "1.0.0"
