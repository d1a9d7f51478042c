"""
SQLAlchemy Base Configuration

This module provides the SQLAlchemy declarative base for the EduDash
database records.
"""

from typing import Any, Dict

from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base

# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata = MetaData(naming_convention=convention)

Base = declarative_base(metadata=metadata)


class ModelBase(Base):
    """Base class for all SQLAlchemy records."""

    __abstract__ = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert the record's columns to a dictionary."""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }
