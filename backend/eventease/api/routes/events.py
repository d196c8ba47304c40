"""
Event endpoints with Redis caching on the listing.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventease.api.deps import get_event_cache
from eventease.core.logging import get_logger
from eventease.core.security import CurrentUser, get_current_user
from eventease.db.session import get_db
from eventease.models.event import Event
from eventease.schemas.event import EventCreate, EventUpdate, EventResponse, EventListResponse
from eventease.services.cache_service import EventListCache
from eventease.services.event_service import (
    create_event,
    delete_event,
    get_event,
    list_events,
    update_event,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: EventListCache = Depends(get_event_cache),
):
    """Create a new event. Organizers and admins only."""
    if user.role not in ("organizer", "admin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only organizers can create events",
        )
    event = await create_event(db, event_data, user.id)
    await cache.invalidate()
    return event


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    cache: EventListCache = Depends(get_event_cache),
):
    """
    List events with pagination.
    Pages are cached in Redis; capacities shown here are for display only.
    """
    cached = await cache.get_events(page, page_size, upcoming_only)
    if cached:
        logger.debug("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    events, total = await list_events(db, page, page_size, upcoming_only)

    response_data = {
        "events": [EventResponse.model_validate(e).model_dump(mode="json") for e in events],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await cache.set_events(page, page_size, upcoming_only, response_data)

    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID with its live remaining capacity."""
    return await get_event(db, event_id)


def _require_owner(event: Event, user: CurrentUser) -> None:
    if event.organizer_id != user.id and not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the event organizer can modify this event",
        )


@router.put("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: str,
    event_data: EventUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: EventListCache = Depends(get_event_cache),
):
    """Update title, description, date or location. Capacity is not editable."""
    event = await get_event(db, event_id)
    _require_owner(event, user)
    event = await update_event(db, event, event_data)
    await cache.invalidate()
    return event


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_endpoint(
    event_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cache: EventListCache = Depends(get_event_cache),
):
    """Delete an event together with all of its registrations."""
    event = await get_event(db, event_id)
    _require_owner(event, user)
    await delete_event(db, event_id)
    await cache.invalidate()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
