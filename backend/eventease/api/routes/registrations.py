"""
Registration endpoints.

The engine never raises for domain failures; these handlers only translate
its result kinds into HTTP status codes and invalidate the listing cache
after capacity changed.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from eventease.api.deps import get_event_cache, get_registration_engine
from eventease.core.config import get_settings
from eventease.core.security import CurrentUser, get_current_user
from eventease.db.session import get_db
from eventease.schemas.registration import (
    BulkRegistrationCreate,
    BulkRegistrationResult,
    PagedRegistrations,
    RegistrationCreate,
    RegistrationErrorType,
    RegistrationResult,
)
from eventease.services.cache_service import EventListCache
from eventease.services.event_service import get_event_organizer_id
from eventease.services.registration_service import RegistrationEngine

router = APIRouter(prefix="/registrations", tags=["Registrations"])

STATUS_BY_ERROR = {
    RegistrationErrorType.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RegistrationErrorType.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RegistrationErrorType.REGISTRATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RegistrationErrorType.DUPLICATE_REGISTRATION: status.HTTP_409_CONFLICT,
    RegistrationErrorType.CAPACITY_EXHAUSTED: status.HTTP_400_BAD_REQUEST,
    RegistrationErrorType.INSUFFICIENT_CAPACITY: status.HTTP_400_BAD_REQUEST,
    RegistrationErrorType.STORAGE_TIMEOUT: status.HTTP_500_INTERNAL_SERVER_ERROR,
    RegistrationErrorType.STORAGE_UNEXPECTED_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _respond(result, success_status: int) -> JSONResponse:
    if result.success:
        code = success_status
    else:
        code = STATUS_BY_ERROR[result.error.type]
    return JSONResponse(
        status_code=code,
        content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@router.post("/", response_model=RegistrationResult, status_code=status.HTTP_201_CREATED)
async def register_for_event(
    body: RegistrationCreate,
    user: CurrentUser = Depends(get_current_user),
    engine: RegistrationEngine = Depends(get_registration_engine),
    cache: EventListCache = Depends(get_event_cache),
):
    """
    Register a user for an event, consuming one slot.

    Attendees may only register themselves; admins may register anyone.
    """
    if body.user_id != user.id and not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only register yourself",
        )

    result = await engine.register_user_for_event(body.user_id, body.event_id)
    if result.success:
        await cache.invalidate()
    return _respond(result, status.HTTP_201_CREATED)


@router.delete("/{event_id}", response_model=RegistrationResult)
async def unregister_from_event(
    event_id: str,
    user: CurrentUser = Depends(get_current_user),
    engine: RegistrationEngine = Depends(get_registration_engine),
    cache: EventListCache = Depends(get_event_cache),
):
    """Cancel the current user's registration and release the slot."""
    result = await engine.unregister_user_for_event(user.id, event_id)
    if result.success:
        await cache.invalidate()
    return _respond(result, status.HTTP_200_OK)


@router.get("/", response_model=PagedRegistrations)
async def list_my_registrations(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, alias="pageSize"),
    user: CurrentUser = Depends(get_current_user),
    engine: RegistrationEngine = Depends(get_registration_engine),
):
    """The current user's registrations, most recent first."""
    page_size = min(page_size, get_settings().REGISTRATION_MAX_PAGE_SIZE)
    paged = await engine.get_user_registrations(user.id, page, page_size)
    return JSONResponse(content=paged.model_dump(mode="json", by_alias=True))


@router.post("/bulk", response_model=BulkRegistrationResult, status_code=status.HTTP_201_CREATED)
async def bulk_register(
    body: BulkRegistrationCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: RegistrationEngine = Depends(get_registration_engine),
    cache: EventListCache = Depends(get_event_cache),
):
    """Register several users at once. Event organizer or admin only."""
    settings = get_settings()
    if len(body.user_ids) > settings.BULK_REGISTRATION_MAX_USERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {settings.BULK_REGISTRATION_MAX_USERS} users per request",
        )

    # A missing event is reported by the engine in the usual result shape
    organizer_id = await get_event_organizer_id(db, body.event_id)
    if organizer_id is not None and organizer_id != user.id and not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the event organizer can bulk register",
        )
    # Release the read session before the engine opens its own transaction
    await db.close()

    result = await engine.bulk_register_users_for_event(body.user_ids, body.event_id)
    if result.success and result.registrations_created:
        await cache.invalidate()
    return _respond(result, status.HTTP_201_CREATED)
