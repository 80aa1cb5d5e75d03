# product_discovery/database/models.py
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Index, CheckConstraint
from sqlalchemy.sql import func

from product_discovery.database.connection import Base


class ProductSearchCacheRow(Base):
    """One cached ProductResult. All rows of a query key are replaced together."""
    __tablename__ = "product_search_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Cache key information
    query_key = Column(String(500), nullable=False, index=True)
    query_text = Column(Text, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    # Cached result
    product_name = Column(String(255), nullable=False)
    brand = Column(String(255), nullable=True)
    result = Column(JSON, nullable=False)
    validation = Column(JSON, nullable=True)

    # Request summary
    query_intent = Column(String(50), nullable=True)
    total_sources_analyzed = Column(Integer, default=0)
    processing_method = Column(String(100), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('ix_product_search_cache_key_created', 'query_key', 'created_at'),
        CheckConstraint('position >= 0', name='check_position'),
        CheckConstraint('total_sources_analyzed >= 0', name='check_total_sources'),
    )
