"""Persistent room model type definitions for database operations."""

from datetime import datetime
from enum import Enum
from typing import TypedDict
from uuid import UUID


class RoomType(str, Enum):
    """Kinds of persisted rooms. Breakout rooms are not persisted."""

    ARENA = "arena"


class PersistentRoom(TypedDict):
    """Persistent room table row representation.

    At most one arena row has ``is_active`` set; a partial unique index
    enforces it.
    """

    id: UUID
    name: str
    type: RoomType
    is_active: bool
    created_by: UUID
    created_at: datetime
    last_active: datetime
