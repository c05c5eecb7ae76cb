"""Typed request bodies for the HTTP API."""

from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
    query: str
    min_score: int = Field(default=1, ge=1, le=3)


class BulkIdsRequest(BaseModel):
    ids: list[str]


class ImportantDomainRequest(BaseModel):
    domain: str = Field(min_length=1)
