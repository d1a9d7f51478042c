"""
Database Package

SQLAlchemy (async) persistence for assessments and submissions.
"""

from edudash.database.session import close_database, get_session_factory, initialize_database

__all__ = ["initialize_database", "get_session_factory", "close_database"]
