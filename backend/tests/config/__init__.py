"""
Test configuration package.

Holds the automatic marker assignment shared by the whole suite.
"""

from .markers import pytest_collection_modifyitems

__all__ = ["pytest_collection_modifyitems"]
