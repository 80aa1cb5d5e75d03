"""Database module initialization"""

from .connection import Base, DatabaseManager, to_async_url
from .models import ProductSearchCacheRow
from .repositories import BaseRepository, ProductSearchCacheRepository

__all__ = [
    # Connection
    "Base", "DatabaseManager", "to_async_url",

    # Models
    "ProductSearchCacheRow",

    # Repositories
    "BaseRepository", "ProductSearchCacheRepository",
]
