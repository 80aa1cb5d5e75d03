# product_discovery/models/requests.py
from pydantic import BaseModel, Field
from typing import Optional


class ProductSearchRequest(BaseModel):
    model_config = {"populate_by_name": True}

    query: Optional[str] = Field(
        default=None,
        description="Free-text product query"
    )
    bypass_cache: bool = Field(
        default=False,
        alias="bypassCache",
        description="Skip the cache read and run the full pipeline"
    )
