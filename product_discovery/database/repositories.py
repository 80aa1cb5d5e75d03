# product_discovery/database/repositories.py
from typing import List, Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
import logging

from product_discovery.database.models import ProductSearchCacheRow

logger = logging.getLogger(__name__)


class BaseRepository:
    """Base repository with common database operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()


class ProductSearchCacheRepository(BaseRepository):
    """Repository for cached product search rows"""

    async def get_rows(self, query_key: str) -> List[ProductSearchCacheRow]:
        result = await self.session.execute(
            select(ProductSearchCacheRow)
            .where(ProductSearchCacheRow.query_key == query_key)
            .order_by(ProductSearchCacheRow.position)
        )
        return list(result.scalars().all())

    async def latest_created_at(self, query_key: str) -> Optional[datetime]:
        result = await self.session.execute(
            select(func.max(ProductSearchCacheRow.created_at))
            .where(ProductSearchCacheRow.query_key == query_key)
        )
        return result.scalar_one_or_none()

    async def delete_rows(self, query_key: str) -> int:
        result = await self.session.execute(
            delete(ProductSearchCacheRow)
            .where(ProductSearchCacheRow.query_key == query_key)
        )
        return result.rowcount or 0

    async def insert_rows(self, rows: List[ProductSearchCacheRow]) -> None:
        self.session.add_all(rows)
        await self.session.flush()

    async def replace_rows(self, query_key: str, rows: List[ProductSearchCacheRow]) -> int:
        """Delete every row of the key, then insert the new ones. The caller owns the transaction."""
        removed = await self.delete_rows(query_key)
        await self.insert_rows(rows)
        logger.debug(f"Replaced cache rows for '{query_key}': -{removed} +{len(rows)}")
        return len(rows)
