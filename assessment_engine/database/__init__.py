"""
Database Module

SQLAlchemy configuration, engine lifecycle and table definitions for the
assessment engine.
"""

from assessment_engine.database.base import Base, ModelBase, metadata

__all__ = ['Base', 'ModelBase', 'metadata']
