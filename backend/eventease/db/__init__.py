from eventease.db.base import Base
from eventease.db.session import Database, get_database, get_db

__all__ = ["Base", "Database", "get_database", "get_db"]
