"""
FastAPI dependencies for the process-wide collaborators kept on app.state.
"""

from fastapi import Depends, Request

from eventease.db.session import Database, get_database
from eventease.services.cache_service import EventListCache
from eventease.services.registration_service import RegistrationEngine, build_registration_engine


def get_event_cache(request: Request) -> EventListCache:
    return request.app.state.event_cache


def get_registration_engine(database: Database = Depends(get_database)) -> RegistrationEngine:
    return build_registration_engine(database)
