"""
Registration engine: transactional register / unregister / bulk register.

CONCURRENCY STRATEGY: Guarded Relative Update inside One Transaction
=====================================================================

Problem:
  Two users try to take the last slot simultaneously.
  Both read capacity=1, both write capacity=0, both succeed.
  Result: Overselling.

Solution:
  Every write path runs in a single transaction and changes capacity with a
  relative statement evaluated by the store:

    UPDATE events SET capacity = capacity - 1
    WHERE id = :event_id AND capacity > 0
    RETURNING id, title, capacity

  The UPDATE takes the event row lock. A concurrent transaction blocks on
  that lock and, under READ COMMITTED, re-evaluates the WHERE clause against
  the committed row once it gets it. If the slot is gone the UPDATE touches
  no row and we raise CapacityExhausted, which rolls back the registration
  inserted earlier in the same transaction.

  The capacity read in step 3 only produces a descriptive early error. The
  guarded UPDATE and the CHECK (capacity >= 0) constraint are what actually
  prevent overselling.

Duplicates:
  Same idea. The pre-check gives a readable error, the UNIQUE(user_id,
  event_id) constraint is the backstop and its violation is translated into
  DuplicateRegistration.

Result contract:
  Public methods never raise for domain or storage failures. They return a
  result object with success flag, error kind, rolled_back=True and timing
  metrics so HTTP handlers can map every outcome to a status code.
"""

import asyncio
import math
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventease.core.config import get_settings
from eventease.core.logging import get_logger
from eventease.core.metrics import bulk_registrations_created, record_registration
from eventease.db.base import new_id, utcnow
from eventease.db.session import Database
from eventease.models.event import CAPACITY_CHECK_NAME, Event
from eventease.models.registration import UNIQUE_USER_EVENT_NAME, Registration
from eventease.models.user import User
from eventease.schemas.registration import (
    BulkRegistrationResult,
    EventSummary,
    PagedRegistrations,
    Pagination,
    RegistrationErrorType,
    RegistrationFailure,
    RegistrationRecord,
    RegistrationResult,
    TransactionMetrics,
    UpdatedEvent,
    UserRegistration,
    UserSummary,
)

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TRANSACTION_TIMEOUT = 10.0
STORAGE_ERROR_MESSAGE = "Registration could not be completed. Please try again later."


class RegistrationError(Exception):
    """Domain failure raised inside a transaction to force rollback."""

    error_type: RegistrationErrorType = RegistrationErrorType.STORAGE_UNEXPECTED_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UserNotFound(RegistrationError):
    error_type = RegistrationErrorType.USER_NOT_FOUND


class EventNotFound(RegistrationError):
    error_type = RegistrationErrorType.EVENT_NOT_FOUND


class CapacityExhausted(RegistrationError):
    error_type = RegistrationErrorType.CAPACITY_EXHAUSTED


class DuplicateRegistration(RegistrationError):
    error_type = RegistrationErrorType.DUPLICATE_REGISTRATION


class InsufficientCapacity(RegistrationError):
    error_type = RegistrationErrorType.INSUFFICIENT_CAPACITY


class RegistrationNotFound(RegistrationError):
    error_type = RegistrationErrorType.REGISTRATION_NOT_FOUND


class StorageTimeout(RegistrationError):
    error_type = RegistrationErrorType.STORAGE_TIMEOUT


class StorageUnexpectedError(RegistrationError):
    error_type = RegistrationErrorType.STORAGE_UNEXPECTED_ERROR


def _violated_constraint(exc: IntegrityError) -> Optional[str]:
    """Best-effort name of the constraint behind an IntegrityError."""
    orig = exc.orig
    # asyncpg exposes the constraint name on the wrapped driver exception
    driver_exc = getattr(orig, "__cause__", None)
    name = getattr(driver_exc, "constraint_name", None) or getattr(orig, "constraint_name", None)
    if name:
        return name

    text = str(orig)
    if UNIQUE_USER_EVENT_NAME in text or "UNIQUE constraint failed: registrations.user_id" in text:
        return UNIQUE_USER_EVENT_NAME
    if CAPACITY_CHECK_NAME in text:
        return CAPACITY_CHECK_NAME
    return None


def translate_integrity_error(exc: IntegrityError) -> RegistrationError:
    constraint = _violated_constraint(exc)
    if constraint == UNIQUE_USER_EVENT_NAME:
        return DuplicateRegistration("User is already registered for this event")
    if constraint == CAPACITY_CHECK_NAME:
        return CapacityExhausted("Event has no available capacity")
    return StorageUnexpectedError(STORAGE_ERROR_MESSAGE)


class _Stopwatch:
    def __init__(self):
        self.started_at = datetime.now(timezone.utc)
        self._start = time.perf_counter()

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self._start

    def metrics(self) -> TransactionMetrics:
        elapsed = self.elapsed
        return TransactionMetrics(
            started_at=self.started_at,
            ended_at=datetime.now(timezone.utc),
            duration_ms=round(elapsed * 1000, 3),
        )


class RegistrationEngine:
    """
    Atomic registration operations against an explicitly supplied store.

    The engine holds no state besides the database handle and timeout, so a
    single instance may serve any number of concurrent requests.
    """

    def __init__(self, database: Database, transaction_timeout: float = DEFAULT_TRANSACTION_TIMEOUT):
        self.database = database
        self.transaction_timeout = transaction_timeout

    # Transaction plumbing

    async def _in_transaction(self, work: Callable[..., Awaitable[T]], *args: Any) -> T:
        """
        Run `work(session, *args)` in one transaction bounded by the timeout.
        Every failure leaves the transaction rolled back and surfaces as a
        RegistrationError.
        """

        async def _run() -> T:
            async with self.database.session() as session:
                async with session.begin():
                    return await work(session, *args)

        try:
            return await asyncio.wait_for(_run(), timeout=self.transaction_timeout)
        except RegistrationError:
            raise
        except asyncio.TimeoutError:
            raise StorageTimeout("The registration timed out. Please try again.")
        except IntegrityError as exc:
            translated = translate_integrity_error(exc)
            if isinstance(translated, StorageUnexpectedError):
                logger.error("registration_integrity_error", error=str(exc.orig))
            raise translated
        except (SQLAlchemyError, OSError) as exc:
            logger.error("registration_storage_error", error=str(exc), exc_type=type(exc).__name__)
            raise StorageUnexpectedError(STORAGE_ERROR_MESSAGE)

    def _insert_ignoring_duplicates(self, rows: list[dict]):
        # Database only accepts the two dialects below
        if self.database.dialect_name == "postgresql":
            stmt = postgresql.insert(Registration).values(rows)
        else:
            stmt = sqlite.insert(Registration).values(rows)
        return stmt.on_conflict_do_nothing(
            index_elements=[Registration.user_id, Registration.event_id]
        ).returning(Registration.id)

    @staticmethod
    async def _apply_capacity_delta(session: AsyncSession, event_id: str, delta: int) -> Optional[UpdatedEvent]:
        """
        Relative capacity change evaluated by the store. Decrements are
        guarded so the row is only touched while enough capacity remains;
        None means the guard rejected the change.
        """
        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .values(capacity=Event.capacity + delta)
            .returning(Event.id, Event.title, Event.capacity)
            .execution_options(synchronize_session=False)
        )
        if delta < 0:
            stmt = stmt.where(Event.capacity >= -delta)
        row = (await session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return UpdatedEvent(id=row.id, title=row.title, capacity=row.capacity)

    @staticmethod
    async def _load_event(session: AsyncSession, event_id: str):
        result = await session.execute(
            select(
                Event.id,
                Event.title,
                Event.capacity,
                Event.organizer_id,
                Event.date,
                Event.location,
            ).where(Event.id == event_id)
        )
        event = result.one_or_none()
        if event is None:
            raise EventNotFound("Event not found")
        return event

    # Single registration

    async def _register(self, session: AsyncSession, user_id: str, event_id: str):
        user = (
            await session.execute(
                select(User.id, User.email, User.name).where(User.id == user_id)
            )
        ).one_or_none()
        if user is None:
            raise UserNotFound("User not found")

        event = await self._load_event(session, event_id)

        if event.capacity <= 0:
            raise CapacityExhausted(
                f"Event '{event.title}' has no available capacity. Current capacity: {event.capacity}"
            )

        existing_id = (
            await session.execute(
                select(Registration.id).where(
                    Registration.user_id == user_id,
                    Registration.event_id == event_id,
                )
            )
        ).scalar_one_or_none()
        if existing_id is not None:
            raise DuplicateRegistration(
                f"User is already registered for this event (registration ID: {existing_id})"
            )

        registration = Registration(user_id=user_id, event_id=event_id)
        session.add(registration)
        await session.flush()

        updated_event = await self._apply_capacity_delta(session, event_id, -1)
        if updated_event is None:
            # Another transaction took the last slot after our read
            raise CapacityExhausted(
                f"Event '{event.title}' has no available capacity. Current capacity: 0"
            )

        record = RegistrationRecord(
            id=registration.id,
            created_at=registration.created_at,
            user=UserSummary(id=user.id, email=user.email, name=user.name),
            event=EventSummary(
                id=event.id,
                title=event.title,
                date=event.date,
                location=event.location,
            ),
        )
        return record, updated_event

    async def register_user_for_event(self, user_id: str, event_id: str) -> RegistrationResult:
        """
        Register `user_id` for `event_id`, consuming one slot.

        Existence, capacity and duplicates are re-verified inside the
        transaction. On any failure no registration row and no capacity
        change survive.
        """
        watch = _Stopwatch()
        try:
            record, updated_event = await self._in_transaction(self._register, user_id, event_id)
        except RegistrationError as exc:
            return self._failed("register", exc, watch, user_id=user_id, event_id=event_id)

        record_registration("register", "success", watch.elapsed)
        logger.info(
            "registration_created",
            registration_id=record.id,
            user_id=user_id,
            event_id=event_id,
            remaining_capacity=updated_event.capacity,
        )
        return RegistrationResult(
            success=True,
            registration=record,
            updated_event=updated_event,
            metrics=watch.metrics(),
            timestamp=watch.started_at,
        )

    # Unregistration

    async def _unregister(self, session: AsyncSession, user_id: str, event_id: str):
        event = await self._load_event(session, event_id)

        result = await session.execute(
            select(Registration.id, Registration.created_at, User.id, User.email, User.name)
            .join(User, User.id == Registration.user_id)
            .where(
                Registration.user_id == user_id,
                Registration.event_id == event_id,
            )
        )
        row = result.one_or_none()
        if row is None:
            raise RegistrationNotFound("User is not registered for this event")
        registration_id, created_at, uid, email, name = row

        deleted = await session.execute(
            delete(Registration)
            .where(Registration.id == registration_id)
            .execution_options(synchronize_session=False)
        )
        if deleted.rowcount != 1:
            # Removed by a concurrent unregister between our read and delete
            raise RegistrationNotFound("User is not registered for this event")

        updated_event = await self._apply_capacity_delta(session, event_id, 1)
        if updated_event is None:
            raise EventNotFound("Event not found")

        record = RegistrationRecord(
            id=registration_id,
            created_at=created_at,
            user=UserSummary(id=uid, email=email, name=name),
            event=EventSummary(
                id=event.id,
                title=event.title,
                date=event.date,
                location=event.location,
            ),
        )
        return record, updated_event

    async def unregister_user_for_event(self, user_id: str, event_id: str) -> RegistrationResult:
        """Delete the user's registration and give the slot back, atomically."""
        watch = _Stopwatch()
        try:
            record, updated_event = await self._in_transaction(self._unregister, user_id, event_id)
        except RegistrationError as exc:
            return self._failed("unregister", exc, watch, user_id=user_id, event_id=event_id)

        record_registration("unregister", "success", watch.elapsed)
        logger.info(
            "registration_deleted",
            registration_id=record.id,
            user_id=user_id,
            event_id=event_id,
            remaining_capacity=updated_event.capacity,
        )
        return RegistrationResult(
            success=True,
            registration=record,
            updated_event=updated_event,
            metrics=watch.metrics(),
            timestamp=watch.started_at,
        )

    # Bulk registration

    async def _bulk_register(self, session: AsyncSession, user_ids: Sequence[str], event_id: str):
        event = await self._load_event(session, event_id)

        found = set(
            (await session.execute(select(User.id).where(User.id.in_(user_ids)))).scalars()
        )
        missing = len(user_ids) - len(found)
        if missing:
            raise UserNotFound(f"{missing} of the requested users do not exist")

        requested = len(user_ids)
        if event.capacity < requested:
            raise InsufficientCapacity(
                f"Insufficient capacity. Available: {event.capacity}, Requested: {requested}"
            )

        now = utcnow()
        rows = [
            {"id": new_id(), "user_id": user_id, "event_id": event_id, "created_at": now}
            for user_id in user_ids
        ]
        inserted = await session.execute(self._insert_ignoring_duplicates(rows))
        created = len(inserted.scalars().all())

        if created == 0:
            return created, UpdatedEvent(id=event.id, title=event.title, capacity=event.capacity)

        updated_event = await self._apply_capacity_delta(session, event_id, -created)
        if updated_event is None:
            # Concurrent registrations consumed the slots since the pre-check
            raise InsufficientCapacity(
                f"Insufficient capacity. Available: fewer than {created}, Requested: {requested}"
            )
        return created, updated_event

    async def bulk_register_users_for_event(
        self, user_ids: Iterable[str], event_id: str
    ) -> BulkRegistrationResult:
        """
        Register many users at once. Pairs that already exist are skipped and
        capacity drops by exactly the number of rows actually inserted.
        """
        requested = list(user_ids)
        if not requested:
            raise ValueError("user_ids must not be empty")
        unique_ids = list(dict.fromkeys(requested))

        watch = _Stopwatch()
        try:
            created, updated_event = await self._in_transaction(
                self._bulk_register, unique_ids, event_id
            )
        except RegistrationError as exc:
            self._log_failure("bulk_register", exc, watch, event_id=event_id, requested=len(requested))
            return BulkRegistrationResult(
                success=False,
                error=RegistrationFailure(message=exc.message, type=exc.error_type),
                metrics=watch.metrics(),
                timestamp=watch.started_at,
            )

        record_registration("bulk_register", "success", watch.elapsed)
        bulk_registrations_created.inc(created)
        logger.info(
            "bulk_registration_completed",
            event_id=event_id,
            requested=len(requested),
            created=created,
            remaining_capacity=updated_event.capacity,
        )
        return BulkRegistrationResult(
            success=True,
            registrations_created=created,
            duplicates_skipped=len(requested) - created,
            updated_event=updated_event,
            metrics=watch.metrics(),
            timestamp=watch.started_at,
        )

    # Read-back

    async def get_user_registrations(
        self, user_id: str, page: int = 1, page_size: int = 10
    ) -> PagedRegistrations:
        """
        Most recent registrations first, with an event summary each.

        Count and page run concurrently on separate sessions; a registration
        landing between the two reads may show up in one and not the other.
        """
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be positive")

        async def _fetch_page():
            async with self.database.session() as session:
                result = await session.execute(
                    select(
                        Registration.id,
                        Registration.created_at,
                        Event.id.label("event_id"),
                        Event.title,
                        Event.date,
                        Event.location,
                    )
                    .join(Event, Event.id == Registration.event_id)
                    .where(Registration.user_id == user_id)
                    .order_by(Registration.created_at.desc(), Registration.id.desc())
                    .offset((page - 1) * page_size)
                    .limit(page_size)
                )
                return result.all()

        async def _count():
            async with self.database.session() as session:
                result = await session.execute(
                    select(func.count(Registration.id)).where(Registration.user_id == user_id)
                )
                return result.scalar_one()

        rows, total = await asyncio.gather(_fetch_page(), _count())

        total_pages = math.ceil(total / page_size)
        return PagedRegistrations(
            registrations=[
                UserRegistration(
                    id=row.id,
                    created_at=row.created_at,
                    event=EventSummary(
                        id=row.event_id,
                        title=row.title,
                        date=row.date,
                        location=row.location,
                    ),
                )
                for row in rows
            ],
            pagination=Pagination(
                current_page=page,
                page_size=page_size,
                total_records=total,
                total_pages=total_pages,
                has_next_page=page < total_pages,
            ),
        )

    # Failure reporting

    def _log_failure(self, operation: str, exc: RegistrationError, watch: _Stopwatch, **context):
        record_registration(operation, exc.error_type.value, watch.elapsed)
        log = logger.error if isinstance(exc, (StorageTimeout, StorageUnexpectedError)) else logger.warning
        log(
            "registration_rolled_back",
            operation=operation,
            error_type=exc.error_type.value,
            reason=exc.message,
            **context,
        )

    def _failed(self, operation: str, exc: RegistrationError, watch: _Stopwatch, **context) -> RegistrationResult:
        self._log_failure(operation, exc, watch, **context)
        return RegistrationResult(
            success=False,
            error=RegistrationFailure(message=exc.message, type=exc.error_type),
            metrics=watch.metrics(),
            timestamp=watch.started_at,
        )


def build_registration_engine(database: Database) -> RegistrationEngine:
    settings = get_settings()
    return RegistrationEngine(database, transaction_timeout=settings.REGISTRATION_TX_TIMEOUT_SECONDS)
