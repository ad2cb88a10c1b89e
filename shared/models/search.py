"""Pydantic models for ranked search results."""

from datetime import datetime

from pydantic import BaseModel


class SearchHit(BaseModel):
    """A single ranked document returned by the search service."""

    document_id: str
    title: str
    created_at: datetime
    score: float
    matched_terms: list[str] = []
