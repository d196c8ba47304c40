"""
Event catalogue: create, fetch, list, update and delete events.

Capacity is set once here at creation; after that only the registration
engine changes it.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from eventease.models.event import Event
from eventease.schemas.event import EventCreate, EventUpdate
from eventease.core.logging import get_logger

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def create_event(db: AsyncSession, event_data: EventCreate, organizer_id: str) -> Event:
    """Create an event whose capacity starts at its full size."""
    event_date = _as_utc(event_data.date)
    if event_date <= datetime.now(timezone.utc):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event date must be in the future",
        )

    event = Event(
        title=event_data.title,
        description=event_data.description,
        date=event_date,
        location=event_data.location,
        capacity=event_data.capacity,
        organizer_id=organizer_id,
    )
    db.add(event)
    await db.commit()

    logger.info("event_created", event_id=event.id, title=event.title, capacity=event.capacity)
    return event


async def get_event(db: AsyncSession, event_id: str) -> Event:
    result = await db.execute(select(Event).where(Event.id == event_id))
    event = result.scalar_one_or_none()

    if not event:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found",
        )
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
) -> tuple[list[Event], int]:
    """
    List events with pagination, soonest first.
    Uses the ix_events_date index for the upcoming filter and ordering.
    """
    query = select(Event)

    if upcoming_only:
        query = query.where(Event.date >= datetime.now(timezone.utc))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    events_query = (
        query
        .order_by(Event.date.asc(), Event.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total


async def get_event_organizer_id(db: AsyncSession, event_id: str) -> Optional[str]:
    """Organizer of the event, or None when it does not exist."""
    return await db.scalar(select(Event.organizer_id).where(Event.id == event_id))


async def update_event(db: AsyncSession, event: Event, event_data: EventUpdate) -> Event:
    """
    Apply a partial update to the descriptive fields.
    Capacity is left alone; EventUpdate does not even accept it.
    """
    changes = event_data.model_dump(exclude_unset=True)
    for required in ("title", "date"):
        if required in changes and changes[required] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Event {required} cannot be empty",
            )

    if "date" in changes:
        changes["date"] = _as_utc(changes["date"])
        if changes["date"] <= datetime.now(timezone.utc):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Event date must be in the future",
            )

    for field, value in changes.items():
        setattr(event, field, value)
    await db.commit()

    logger.info("event_updated", event_id=event.id, fields=sorted(changes))
    return event


async def delete_event(db: AsyncSession, event_id: str) -> None:
    """
    Delete an event. Registrations go with it through the ON DELETE CASCADE
    foreign key, so this is a single statement rather than an ORM delete.
    """
    result = await db.execute(
        delete(Event)
        .where(Event.id == event_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found",
        )
    await db.commit()
    logger.info("event_deleted", event_id=event_id)
