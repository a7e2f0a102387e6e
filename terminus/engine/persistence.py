"""
Game state persistence.

Handles save, load, backup and migration of GameState snapshots. A load
that fails validation never raises: it falls back to the backup slot and
then to None, and the caller starts a fresh game.
"""

import json
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from terminus.config import settings
from terminus.db.manager import DatabaseManager
from terminus.errors import StateValidationError
from terminus.schemas.state import GameState, utcnow
from terminus.schemas.validation import deserialize_game_state, serialize_game_state
from terminus.utils.logger import get_logger

logger = get_logger(__name__)

SAVE_SLOT_PREFIX = "save:"
BACKUP_SLOT_PREFIX = "save-backup:"


class GameStateManager:
    """
    Persists one player's snapshots in a save slot with a backup slot.

    Attributes:
        db: Storage slot manager
        user_id: Player whose slots this manager owns
        save_key: Slot holding the current save
        backup_key: Slot holding the save that preceded it
    """

    def __init__(self, db: DatabaseManager, user_id: str):
        self.db = db
        self.user_id = user_id
        self.save_key = f"{SAVE_SLOT_PREFIX}{user_id}"
        self.backup_key = f"{BACKUP_SLOT_PREFIX}{user_id}"

    def save(self, state: GameState) -> bool:
        """
        Save a snapshot, keeping the previous save as a backup.

        The state's ``last_saved`` timestamp is refreshed in the stored record.
        The write is read back and compared; on mismatch the backup is restored.

        Returns:
            True on success, False on failure
        """
        if state.user_id != self.user_id:
            logger.error(f"Refusing to save state of {state.user_id} into slot of {self.user_id}")
            return False

        stamped = state.model_copy(update={"last_saved": utcnow()})
        payload = json.dumps(serialize_game_state(stamped), sort_keys=True)

        try:
            self.db.copy_slot(self.save_key, self.backup_key)
            self.db.put_slot(self.save_key, payload)

            if self.db.get_slot(self.save_key) != payload:
                logger.error("Save verification failed, restoring backup")
                self._restore_from_backup()
                return False
        except SQLAlchemyError as e:
            logger.error(f"Failed to save game state for {self.user_id}: {e}")
            return False

        logger.info(f"Game saved for {self.user_id} ({len(payload)} bytes)")
        return True

    def load(self) -> Optional[GameState]:
        """
        Load the current save.

        Returns:
            The saved snapshot, the backup if the main save is invalid, or
            None if neither can be loaded
        """
        try:
            payload = self.db.get_slot(self.save_key)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read save for {self.user_id}: {e}")
            return None

        if payload is None:
            logger.info(f"No save found for {self.user_id}")
            return None

        try:
            state = self._parse(payload)
        except StateValidationError as e:
            logger.warning(f"Save for {self.user_id} is corrupted or invalid: {e}")
            backup = self._load_backup()
            if backup is not None:
                logger.info(f"Restored {self.user_id} from backup")
            return backup

        logger.info(f"Game loaded for {self.user_id} (v{state.save_version})")
        return state

    def _parse(self, payload: str) -> GameState:
        try:
            record = json.loads(payload)
        except (json.JSONDecodeError, TypeError) as e:
            raise StateValidationError(f"Save is not valid JSON: {e}")

        state = deserialize_game_state(self.migrate_if_needed(record))
        if state.user_id != self.user_id:
            raise StateValidationError(
                f"Save belongs to {state.user_id}, expected {self.user_id}"
            )
        return state

    def _load_backup(self) -> Optional[GameState]:
        try:
            payload = self.db.get_slot(self.backup_key)
            if payload is None:
                return None
            return self._parse(payload)
        except (StateValidationError, SQLAlchemyError) as e:
            logger.warning(f"Backup for {self.user_id} unusable: {e}")
            return None

    def _restore_from_backup(self) -> bool:
        try:
            return self.db.copy_slot(self.backup_key, self.save_key)
        except SQLAlchemyError as e:
            logger.error(f"Failed to restore backup for {self.user_id}: {e}")
            return False

    @staticmethod
    def migrate_if_needed(record: Any) -> Any:
        """Bring a save record up to the current save version.

        Records that are not shaped like saves are returned untouched so
        validation rejects them.
        """
        if not isinstance(record, dict) or not isinstance(record.get("saveVersion"), str):
            return record

        current_version = settings.save_version
        if record["saveVersion"] == current_version:
            return record

        logger.info(f"Migrating save from v{record['saveVersion']} to v{current_version}")
        return {**record, "saveVersion": current_version}

    def has_save(self) -> bool:
        try:
            return self.db.get_slot(self.save_key) is not None
        except SQLAlchemyError as e:
            logger.error(f"Failed to check save for {self.user_id}: {e}")
            return False

    def get_save_metadata(self) -> Dict[str, Any]:
        """Read version, owner and save time without building the full state"""
        try:
            payload = self.db.get_slot(self.save_key)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read save metadata for {self.user_id}: {e}")
            return {"exists": False}
        if payload is None:
            return {"exists": False}
        try:
            record = json.loads(payload)
            return {
                "exists": True,
                "version": record.get("saveVersion"),
                "last_saved": record.get("lastSaved"),
                "user_id": record.get("userId"),
            }
        except (json.JSONDecodeError, AttributeError):
            return {"exists": False}

    def export_save(self) -> Optional[str]:
        """
        Export the current save as JSON text for manual backup.

        Returns:
            The stored JSON, or None if there is no valid save
        """
        try:
            payload = self.db.get_slot(self.save_key)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read save for export for {self.user_id}: {e}")
            return None
        if payload is None:
            return None
        try:
            self._parse(payload)
        except StateValidationError as e:
            logger.error(f"Save is invalid, cannot export: {e}")
            return None
        return payload

    def import_save(self, payload: str) -> bool:
        """
        Replace the current save with imported JSON text.

        The import is validated first and the current save is kept as backup.

        Returns:
            True if the import was accepted
        """
        try:
            self._parse(payload)
        except StateValidationError as e:
            logger.error(f"Imported save is invalid: {e}")
            return False

        try:
            self.db.copy_slot(self.save_key, self.backup_key)
            self.db.put_slot(self.save_key, payload)
        except SQLAlchemyError as e:
            logger.error(f"Failed to import save for {self.user_id}: {e}")
            return False

        logger.info(f"Save imported for {self.user_id}")
        return True

    def reset(self) -> bool:
        """
        Delete the save and its backup. All progress is lost.

        Returns:
            True if both slots were cleared
        """
        try:
            self.db.delete_slot(self.save_key)
            self.db.delete_slot(self.backup_key)
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete save data for {self.user_id}: {e}")
            return False
        logger.warning(f"All save data deleted for {self.user_id}")
        return True
