"""
Registration engine result types and the matching request bodies.

Payloads serialize with camelCase aliases (`updatedEvent`, `rolledBack`,
`durationMs`, ...) so HTTP clients see the documented contract, while Python
code keeps snake_case attribute names.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RegistrationErrorType(str, Enum):
    USER_NOT_FOUND = "UserNotFound"
    EVENT_NOT_FOUND = "EventNotFound"
    CAPACITY_EXHAUSTED = "CapacityExhausted"
    DUPLICATE_REGISTRATION = "DuplicateRegistration"
    INSUFFICIENT_CAPACITY = "InsufficientCapacity"
    REGISTRATION_NOT_FOUND = "RegistrationNotFound"
    STORAGE_TIMEOUT = "StorageTimeout"
    STORAGE_UNEXPECTED_ERROR = "StorageUnexpectedError"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Requests

class RegistrationCreate(CamelModel):
    user_id: str = Field(..., min_length=1, max_length=36)
    event_id: str = Field(..., min_length=1, max_length=36)


class BulkRegistrationCreate(CamelModel):
    user_ids: list[str] = Field(..., min_length=1)
    event_id: str = Field(..., min_length=1, max_length=36)


# Summaries embedded in results

class UserSummary(CamelModel):
    id: str
    email: str
    name: str


class EventSummary(CamelModel):
    id: str
    title: str
    date: datetime
    location: Optional[str] = None


class UpdatedEvent(CamelModel):
    id: str
    title: str
    capacity: int


class RegistrationRecord(CamelModel):
    id: str
    created_at: datetime
    user: UserSummary
    event: EventSummary


# Engine results

class RegistrationFailure(CamelModel):
    message: str
    type: RegistrationErrorType
    rolled_back: bool = True


class TransactionMetrics(CamelModel):
    started_at: datetime
    ended_at: datetime
    duration_ms: float


class RegistrationResult(CamelModel):
    success: bool
    registration: Optional[RegistrationRecord] = None
    updated_event: Optional[UpdatedEvent] = None
    error: Optional[RegistrationFailure] = None
    metrics: TransactionMetrics
    timestamp: datetime


class BulkRegistrationResult(CamelModel):
    success: bool
    registrations_created: int = 0
    duplicates_skipped: int = 0
    updated_event: Optional[UpdatedEvent] = None
    error: Optional[RegistrationFailure] = None
    metrics: TransactionMetrics
    timestamp: datetime


# Paginated read-back

class UserRegistration(CamelModel):
    id: str
    created_at: datetime
    event: EventSummary


class Pagination(CamelModel):
    current_page: int
    page_size: int
    total_records: int
    total_pages: int
    has_next_page: bool


class PagedRegistrations(CamelModel):
    registrations: list[UserRegistration]
    pagination: Pagination
