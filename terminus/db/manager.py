"""
Database manager for Terminus.

This module provides a high-level interface over the storage slot table,
handling connection management for the persistence layer.
"""

import os
from typing import List, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session as DBSession
from sqlalchemy.orm import sessionmaker

from terminus.db.schema import Base, StorageSlot, _utcnow
from terminus.utils.logger import get_logger

logger = get_logger(__name__)


class DatabaseManager:
    """
    Manages storage slot operations.

    Attributes:
        db_path: Path to the SQLite database file
        engine: SQLAlchemy engine for database connections
        SessionLocal: Factory for creating database sessions
    """

    def __init__(self, db_path: str = "data/terminus.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file (created if doesn't exist)
        """
        self.db_path = db_path

        # Ensure data directory exists
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self.engine = create_engine(
            f"sqlite:///{db_path}",
            echo=False,  # Set to True for SQL debugging
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

        logger.info(f"Database initialized at {db_path}")

    def put_slot(self, key: str, payload: str) -> None:
        """
        Write a payload to a slot, replacing any previous content.

        Raises:
            SQLAlchemyError: If the write fails
        """
        db: DBSession = self.SessionLocal()
        try:
            slot = db.get(StorageSlot, key)
            if slot:
                slot.payload = payload  # type: ignore[assignment]
                slot.updated_at = _utcnow()  # type: ignore[assignment]
            else:
                db.add(StorageSlot(key=key, payload=payload))
            db.commit()
            logger.debug(f"Wrote slot {key} ({len(payload)} bytes)")
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to write slot {key}: {e}")
            raise
        finally:
            db.close()

    def get_slot(self, key: str) -> Optional[str]:
        """
        Read a slot's payload.

        Returns:
            The stored text, or None if the slot is empty
        """
        db: DBSession = self.SessionLocal()
        try:
            slot = db.get(StorageSlot, key)
            return slot.payload if slot else None  # type: ignore[return-value]
        finally:
            db.close()

    def copy_slot(self, source: str, destination: str) -> bool:
        """
        Copy one slot's payload into another.

        Returns:
            True if the source existed and was copied
        """
        payload = self.get_slot(source)
        if payload is None:
            return False
        self.put_slot(destination, payload)
        return True

    def delete_slot(self, key: str) -> bool:
        """
        Delete a slot.

        Returns:
            True if deleted, False if not found
        """
        db: DBSession = self.SessionLocal()
        try:
            slot = db.get(StorageSlot, key)
            if slot:
                db.delete(slot)
                db.commit()
                logger.debug(f"Deleted slot {key}")
                return True
            return False
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to delete slot {key}: {e}")
            raise
        finally:
            db.close()

    def list_slots(self, prefix: str = "") -> List[str]:
        """List slot keys, optionally filtered by prefix"""
        db: DBSession = self.SessionLocal()
        try:
            query = db.query(StorageSlot.key)
            if prefix:
                query = query.filter(StorageSlot.key.startswith(prefix))
            return [row[0] for row in query.order_by(StorageSlot.key).all()]
        finally:
            db.close()
