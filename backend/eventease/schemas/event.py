"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    date: datetime
    location: Optional[str] = Field(None, max_length=255)
    capacity: int = Field(..., gt=0, le=100000)


class EventUpdate(BaseModel):
    """
    Partial update of the descriptive fields. Capacity is not accepted:
    once an event exists only the registration engine changes it.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=255)

    model_config = {"extra": "forbid"}


class EventResponse(BaseModel):
    id: str
    title: str
    description: Optional[str]
    date: datetime
    location: Optional[str]
    capacity: int
    organizer_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
