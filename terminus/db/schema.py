"""
Database schema definitions using SQLAlchemy.

Saves and engagement logs share one key/value slot table. Payloads are kept
as raw JSON text rather than a JSON column so a corrupted or partial write is
read back exactly as stored and rejected by validation, not by the driver.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StorageSlot(Base):
    """
    Storage slot holding one serialized record.

    Attributes:
        key: Slot key, e.g. ``save:<user id>`` or ``engagement:<user id>``
        payload: Serialized record as JSON text
        created_at: Timestamp when the slot was first written
        updated_at: Timestamp when the slot was last written
    """

    __tablename__ = "storage_slots"

    key = Column(String, primary_key=True)
    payload = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)
