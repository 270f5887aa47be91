"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .request_factory import ProducerFactory, RequestFactory
from .storage_factory import FlakyStorageAdapter, StorageTestFactory

__all__ = ["FlakyStorageAdapter", "ProducerFactory", "RequestFactory", "StorageTestFactory"]
