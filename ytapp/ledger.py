"""
Watch history and favorites.

Both are ordered, deduplicated-by-ID lists with the most recent entry at
index 0. New entries start with a placeholder title which is filled in by
an asynchronous oEmbed lookup.
"""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from datetime import datetime
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from .database import Database
from .metadata import MetadataClient
from .models import (
    FAVORITE_PLACEHOLDER_TITLE,
    HISTORY_PLACEHOLDER_TITLE,
    FavoriteEntry,
    HistoryEntry,
    is_placeholder_title,
)
from .serialization import Codec, FavoritesCodec, HistoryCodec
from .store import PersistentStore

HISTORY_KEY = "videoHistory"
FAVORITES_KEY = "videoFavorites"

E = TypeVar("E", HistoryEntry, FavoriteEntry)


class TitleBackfill:
    """
    Runs title lookups on a small thread pool.

    Lookups are fire-and-forget: a failed lookup leaves the placeholder in
    place and is not retried. A video already waiting for its title is not
    queued twice.
    """

    def __init__(self, metadata_client: MetadataClient, max_workers: int = 2):
        self.logger = logging.getLogger(__name__)
        self.metadata_client = metadata_client
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="TitleBackfill"
        )
        self._pending: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self._shutdown = False

    def schedule(self, video_id: str, on_title: Callable[[str, str], None]) -> Optional[Future]:
        """
        Look up the title of video_id and pass it to on_title(video_id, title).

        on_title is not called when the lookup fails.

        Returns:
            The pending lookup, or None after shutdown
        """

        def lookup():
            title = self.metadata_client.fetch_title(video_id)
            if title:
                on_title(video_id, title)
            else:
                self.logger.info("No title found for %s, keeping placeholder", video_id)

        with self._lock:
            if self._shutdown:
                return None
            future = self._pending.get(video_id)
            if future is not None:
                return future
            future = self._executor.submit(lookup)
            self._pending[video_id] = future
        future.add_done_callback(lambda done: self._on_done(video_id, done))
        return future

    def _on_done(self, video_id: str, future: Future) -> None:
        with self._lock:
            if self._pending.get(video_id) is future:
                del self._pending[video_id]
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self.logger.error("Title backfill failed for %s: %s", video_id, exc)

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until all scheduled lookups have finished."""
        with self._lock:
            pending = list(self._pending.values())
        if pending:
            wait_futures(pending, timeout=timeout)

    def shutdown(self) -> None:
        """Stop accepting lookups and drop the queued ones."""
        with self._lock:
            self._shutdown = True
        self._executor.shutdown(wait=False, cancel_futures=True)


class _Ledger(PersistentStore, Generic[E], ABC):
    """Ordered list of entries with move-to-front on add."""

    key: str = ""
    placeholder: str = ""

    def __init__(
        self,
        database: Database,
        codec: Codec[List[E]],
        backfill: Optional[TitleBackfill] = None,
        error_manager=None,
        max_entries: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(database, error_manager)
        self.backfill = backfill
        self.max_entries = max_entries
        self._clock = clock
        self._codec = codec
        self._entries: List[E] = self._load_state(self.key, codec, list)
        self.logger.info("Loaded %s entries from %s", len(self._entries), self.key)

        # Lookups that never finished before the last shutdown
        for entry in list(self._entries):
            if is_placeholder_title(entry.title):
                self._schedule_backfill(entry.id)

    # Subclass hooks

    @abstractmethod
    def _make_entry(self, video_id: str, title: str) -> E:
        """Build a new entry stamped with the current time."""
        ...

    @abstractmethod
    def _touch(self, entry: E) -> None:
        """Refresh the entry's timestamp when it is re-added."""
        ...

    # Internals

    def _persist(self) -> None:
        self._save_state(self.key, self._codec, self._entries)

    def _index_of(self, video_id: str) -> Optional[int]:
        for index, entry in enumerate(self._entries):
            if entry.id == video_id:
                return index
        return None

    def _schedule_backfill(self, video_id: str) -> None:
        if self.backfill is not None:
            self.backfill.schedule(video_id, self._apply_title)

    def _apply_title(self, video_id: str, title: str) -> None:
        """Patch a placeholder title, unless the entry was removed meanwhile."""
        with self.lock:
            index = self._index_of(video_id)
            if index is None:
                self.logger.debug("Dropping title for %s, entry no longer exists", video_id)
                return
            entry = self._entries[index]
            if not is_placeholder_title(entry.title):
                return
            entry.title = title
            self._persist()
        self.logger.info("Updated title for %s: %s", video_id, title)

    # Public API

    def add(self, video_id: str, title: Optional[str] = None) -> E:
        """
        Add a video at the head of the list.

        An existing entry is moved to the front instead of duplicated.

        Args:
            video_id: Video ID
            title: Known title, if any (a placeholder is used otherwise)

        Returns:
            The entry now at index 0

        Raises:
            ValueError: If video_id is empty
        """
        if not video_id:
            raise ValueError("Video ID must not be empty")
        needs_title = False
        with self.lock:
            index = self._index_of(video_id)
            if index is not None:
                entry = self._entries.pop(index)
                self._touch(entry)
                if title and is_placeholder_title(entry.title):
                    entry.title = title
            else:
                entry = self._make_entry(video_id, title or self.placeholder)
                needs_title = is_placeholder_title(entry.title)
            self._entries.insert(0, entry)

            if self.max_entries is not None and len(self._entries) > self.max_entries:
                del self._entries[self.max_entries :]
            self._persist()

        if needs_title:
            self._schedule_backfill(video_id)
        return entry

    def remove(self, video_id: str) -> bool:
        with self.lock:
            index = self._index_of(video_id)
            if index is None:
                return False
            del self._entries[index]
            self._persist()
        return True

    def remove_at(self, index: int) -> bool:
        with self.lock:
            if index < 0 or index >= len(self._entries):
                return False
            del self._entries[index]
            self._persist()
        return True

    def clear_all(self) -> int:
        with self.lock:
            count = len(self._entries)
            self._entries = []
            self._persist()
        self.logger.info("Cleared %s entries from %s", count, self.key)
        return count

    def contains(self, video_id: str) -> bool:
        with self.lock:
            return self._index_of(video_id) is not None

    def get(self, video_id: str) -> Optional[E]:
        with self.lock:
            index = self._index_of(video_id)
            return self._entries[index] if index is not None else None

    def entries(self) -> List[E]:
        with self.lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)


class HistoryLedger(_Ledger[HistoryEntry]):
    """Most recently watched videos."""

    key = HISTORY_KEY
    placeholder = HISTORY_PLACEHOLDER_TITLE

    def __init__(
        self,
        database: Database,
        backfill: Optional[TitleBackfill] = None,
        error_manager=None,
        max_entries: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(
            database,
            HistoryCodec(),
            backfill=backfill,
            error_manager=error_manager,
            max_entries=max_entries,
            clock=clock,
        )

    def _make_entry(self, video_id: str, title: str) -> HistoryEntry:
        return HistoryEntry(id=video_id, title=title, watched_at=self._clock())

    def _touch(self, entry: HistoryEntry) -> None:
        entry.watched_at = self._clock()


class FavoritesLedger(_Ledger[FavoriteEntry]):
    """Starred videos."""

    key = FAVORITES_KEY
    placeholder = FAVORITE_PLACEHOLDER_TITLE

    def __init__(
        self,
        database: Database,
        backfill: Optional[TitleBackfill] = None,
        error_manager=None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(
            database,
            FavoritesCodec(),
            backfill=backfill,
            error_manager=error_manager,
            clock=clock,
        )

    def _make_entry(self, video_id: str, title: str) -> FavoriteEntry:
        return FavoriteEntry(id=video_id, title=title, favorited_at=self._clock())

    def _touch(self, entry: FavoriteEntry) -> None:
        entry.favorited_at = self._clock()

    def promote_to_top(self, video_id: str, title: Optional[str] = None) -> bool:
        """
        Move an existing favorite to the head of the list.

        Promotion never favorites a video that isn't already a favorite.

        Returns:
            True if the video is a favorite (and is now at index 0)

        Raises:
            ValueError: If video_id is empty
        """
        if not video_id:
            raise ValueError("Video ID must not be empty")
        with self.lock:
            index = self._index_of(video_id)
            if index is None:
                return False
            entry = self._entries[index]
            refreshed = bool(title) and is_placeholder_title(entry.title)
            if refreshed:
                entry.title = title
            if index == 0 and not refreshed:
                return True
            if index != 0:
                self._entries.insert(0, self._entries.pop(index))
            self._persist()
        self.logger.debug("Promoted favorite %s to top", video_id)
        return True
