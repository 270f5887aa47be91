"""Application layer: the administrative surface of a cache instance."""

from readthrough.application.admin_service import CacheAdminService

__all__ = ["CacheAdminService"]
