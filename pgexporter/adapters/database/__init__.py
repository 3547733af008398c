"""Database adapters."""

from pgexporter.adapters.database.fake import FakeDatabase
from pgexporter.adapters.database.sqlalchemy import SqlAlchemyDatabase

__all__ = ["SqlAlchemyDatabase", "FakeDatabase"]
