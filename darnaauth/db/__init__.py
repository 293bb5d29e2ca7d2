"""
Persistence layer: declarative base, connection management and
database exceptions.
"""
from .base import Base
from .session import Database
from .exceptions import DatabaseError, ConnectionError, ConflictError

__all__ = ['Base', 'Database', 'DatabaseError', 'ConnectionError', 'ConflictError']
