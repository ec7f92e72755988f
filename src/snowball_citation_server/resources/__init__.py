"""
Resources layer for data management.

Handles storage of analytics events and session links
as plain files under the data directory.
"""

from .events import EventStore
from .sessions import SessionLinker, validate_session_token

__all__ = ["EventStore", "SessionLinker", "validate_session_token"]
