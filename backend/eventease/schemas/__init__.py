from eventease.schemas.user import (
    RefreshRequest,
    Token,
    UserCreate,
    UserListResponse,
    UserLogin,
    UserResponse,
)
from eventease.schemas.event import EventCreate, EventListResponse, EventResponse, EventUpdate
from eventease.schemas.registration import (
    BulkRegistrationCreate,
    BulkRegistrationResult,
    PagedRegistrations,
    RegistrationCreate,
    RegistrationErrorType,
    RegistrationResult,
)

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token", "RefreshRequest", "UserListResponse",
    "EventCreate", "EventUpdate", "EventResponse", "EventListResponse",
    "RegistrationCreate", "BulkRegistrationCreate", "RegistrationErrorType",
    "RegistrationResult", "BulkRegistrationResult", "PagedRegistrations",
]
