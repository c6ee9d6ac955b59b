"""
SQLAlchemy Base Configuration

This module provides the declarative base shared by every table of the
assessment engine. Constraint names follow a fixed convention so that
migrations can refer to them.
"""

import datetime
from typing import Any, Dict

from sqlalchemy import MetaData, Column, DateTime
from sqlalchemy.orm import declarative_base

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
    """Base class for all tables: timestamps and bulk column assignment."""

    __abstract__ = True

    created_at = Column(DateTime, nullable=False, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.datetime.utcnow,
                        onupdate=datetime.datetime.utcnow)

    def update(self, data: Dict[str, Any]) -> None:
        """Assign the given column values."""
        for key, value in data.items():
            if key in self.__table__.columns:
                setattr(self, key, value)
