"""API schemas for monthly usage."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class UsageResponse(BaseModel):
    month_key: str = Field(alias="monthKey")
    plan: str
    listings_created: int = Field(alias="listingsCreated")
    listings_limit: int = Field(alias="listingsLimit")
    conversations_opened: int = Field(alias="conversationsOpened")
    conversations_limit: int = Field(alias="conversationsLimit")

    model_config = ConfigDict(populate_by_name=True)
