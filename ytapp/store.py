"""
Base class for stores that keep their whole state in one key-value blob.
"""

import logging
import threading
from typing import Callable, Optional, TypeVar

from .database import Database, KeyValueRepository
from .serialization import Codec, DecodeError

T = TypeVar("T")


class PersistentStore:
    """
    In-memory state persisted as a single blob per key.

    Loading treats a missing key and an undecodable blob the same way:
    the store starts empty. Saving failures are logged and swallowed so a
    broken local cache never blocks the rest of the app.
    """

    def __init__(self, database: Database, error_manager=None):
        self.database = database
        self.repository = KeyValueRepository(database)
        self.error_manager = error_manager
        self.logger = logging.getLogger(self.__class__.__module__)
        self.lock = threading.RLock()

    def _load_state(self, key: str, codec: Codec[T], empty: Callable[[], T]) -> T:
        try:
            blob = self.repository.load(key)
        except Exception as e:
            self.logger.error("Error reading %s: %s", key, e, exc_info=True)
            self._report_data_error(f"Could not read {key}", context=str(e))
            return empty()

        if blob is None:
            self.logger.info("No saved state found for %s", key)
            return empty()

        try:
            return codec.decode(blob)
        except DecodeError as e:
            self.logger.warning("Failed to decode %s, starting empty: %s", key, e)
            self._report_data_error(f"Saved {key} was unreadable and has been reset", context=str(e))
            return empty()

    def _save_state(self, key: str, codec: Codec[T], value: T) -> bool:
        try:
            self.repository.save(key, codec.encode(value))
            return True
        except Exception as e:
            self.logger.error("Error saving %s: %s", key, e, exc_info=True)
            self._report_data_error(f"Could not save {key}", context=str(e))
            return False

    def _report_data_error(self, message: str, context: Optional[str] = None) -> None:
        if self.error_manager is not None:
            self.error_manager.report_data_error(message, context=context)
