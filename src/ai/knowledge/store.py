"""
Knowledge Store

Keeps what the AI has learned across games: combos, strategies,
opponent habits and card synergies. Entries carry an importance score
and tags, and old entries can be pruned by age.

The in-memory map is authoritative. Every mutation is written through
to a StorageBackend on a best-effort basis; a failing backend is logged
and otherwise ignored.
"""

from datetime import datetime, timedelta
from itertools import count
from typing import Callable, Optional
import logging
import secrets
import threading

from .config import KnowledgeConfig
from .storage import StorageBackend, decode_entries, encode_entries
from .types import KnowledgeEntry, KnowledgeType, SearchQuery, StoreStats, utcnow

logger = logging.getLogger(__name__)


# Fields update() may change; id and created_at are owned by the store
UPDATABLE_FIELDS = frozenset({
    "type", "content", "importance", "tags", "related_ids", "access_count",
})


class KnowledgeStore:
    """
    Importance-ranked, tagged store of knowledge entries.

    Reads hand out copies, so callers can't mutate stored entries.
    Reads and mutations are serialized with a per-instance lock.
    """

    def __init__(
        self,
        storage: Optional[StorageBackend] = None,
        config: Optional[KnowledgeConfig] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize the store and restore previously saved entries.

        Args:
            storage: Persistence backend. Defaults to the one described by config.
            config: Knowledge settings. Defaults to KnowledgeConfig().
            clock: Returns the current time; injectable for tests.
        """
        self.config = config or KnowledgeConfig()
        self.storage = storage if storage is not None else self.config.create_storage()
        self._clock = clock
        self._entries: dict[str, KnowledgeEntry] = {}
        self._id_counter = count(1)
        self._lock = threading.RLock()

        self._load_from_storage()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._entries

    # === Create / Read ===

    def save(
        self,
        type: KnowledgeType,
        content: str,
        importance: float = 0.5,
        tags: Optional[list[str]] = None,
        related_ids: Optional[list[str]] = None
    ) -> KnowledgeEntry:
        """
        Store a new entry and return it.

        The store assigns the id and timestamps; access_count starts at 0.
        """
        with self._lock:
            now = self._clock()
            entry = KnowledgeEntry(
                id=self._generate_id(now),
                type=KnowledgeType(type),
                content=content,
                importance=self._normalize_importance(importance),
                tags=_dedupe(tags or []),
                created_at=now,
                updated_at=now,
                access_count=0,
                related_ids=list(related_ids or []),
            )
            self._entries[entry.id] = entry
            self._save_to_storage()
            return entry.copy()

    def get(self, entry_id: str) -> Optional[KnowledgeEntry]:
        """Look up an entry and count the access. Returns None if missing."""
        with self._lock:
            if not self.record_access(entry_id):
                return None
            return self.peek(entry_id)

    def peek(self, entry_id: str) -> Optional[KnowledgeEntry]:
        """Look up an entry without touching its access count."""
        with self._lock:
            entry = self._entries.get(entry_id)
            return entry.copy() if entry else None

    def record_access(self, entry_id: str) -> bool:
        """Increment the access count of an entry. Returns False if missing."""
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                return False
            entry.access_count += 1
            return True

    def search(self, query: Optional[SearchQuery] = None, **filters) -> list[KnowledgeEntry]:
        """
        Find entries matching every given filter, most important first.

        Filters can be passed as a SearchQuery or as keyword arguments
        (type, tag, min_importance, limit). With no filters, all entries
        are returned. Passing both a SearchQuery and keyword filters
        raises TypeError.
        """
        if query is not None and filters:
            raise TypeError("Pass either a SearchQuery or keyword filters, not both")
        query = query or SearchQuery(**filters)

        with self._lock:
            results = list(self._entries.values())

            if query.type is not None:
                wanted = KnowledgeType(query.type)
                results = [e for e in results if e.type == wanted]

            if query.tag is not None:
                results = [e for e in results if query.tag in e.tags]

            if query.min_importance is not None:
                results = [e for e in results if e.importance >= query.min_importance]

            # Stable sort: equal importance keeps insertion order
            results.sort(key=lambda e: e.importance, reverse=True)

            if query.limit:
                results = results[:query.limit]

            return [e.copy() for e in results]

    def get_by_importance(self, limit: int) -> list[KnowledgeEntry]:
        """Top `limit` entries across all types."""
        return self.search(limit=limit)

    def get_related(self, entry_id: str) -> list[KnowledgeEntry]:
        """Resolve related_ids, skipping entries that no longer exist."""
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                return []

            related = []
            for rel_id in entry.related_ids:
                rel = self._entries.get(rel_id)
                if rel is not None:
                    related.append(rel.copy())
            return related

    def group_by_tag(self) -> dict[str, list[KnowledgeEntry]]:
        """Map each tag to the entries carrying it, tags in first-seen order."""
        groups: dict[str, list[KnowledgeEntry]] = {}
        with self._lock:
            for entry in self._entries.values():
                for tag in entry.tags:
                    groups.setdefault(tag, []).append(entry.copy())
        return groups

    # === Update / Delete ===

    def update(self, entry_id: str, **updates) -> Optional[KnowledgeEntry]:
        """
        Merge the given fields into an entry and refresh updated_at.

        Returns the updated entry, or None if the id is unknown.
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Cannot update knowledge fields: {', '.join(sorted(unknown))}")

        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                return None

            if "type" in updates:
                entry.type = KnowledgeType(updates["type"])
            if "content" in updates:
                entry.content = updates["content"]
            if "importance" in updates:
                entry.importance = self._normalize_importance(updates["importance"])
            if "tags" in updates:
                entry.tags = _dedupe(updates["tags"] or [])
            if "related_ids" in updates:
                entry.related_ids = list(updates["related_ids"] or [])
            if "access_count" in updates:
                entry.access_count = max(0, int(updates["access_count"]))

            entry.updated_at = max(self._clock(), entry.created_at)
            self._save_to_storage()
            return entry.copy()

    def delete(self, entry_id: str) -> bool:
        """Remove an entry. Returns True if something was removed."""
        with self._lock:
            if self._entries.pop(entry_id, None) is None:
                return False
            self._save_to_storage()
            return True

    def prune_old(self, days_old: float) -> int:
        """
        Remove entries created more than `days_old` days ago.

        Returns the number of removed entries.
        """
        with self._lock:
            try:
                max_age = timedelta(days=days_old)
            except OverflowError:
                # Older than anything a datetime can represent
                return 0

            now = self._clock()
            stale = [eid for eid, e in self._entries.items() if now - e.created_at > max_age]
            for eid in stale:
                del self._entries[eid]

            if stale:
                logger.info(f"Pruned {len(stale)} knowledge entries older than {days_old} days")
                self._save_to_storage()

            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._save_to_storage()

    # === Statistics ===

    def get_stats(self) -> StoreStats:
        with self._lock:
            entries = [entry.copy() for entry in self._entries.values()]
        if not entries:
            return StoreStats()

        by_type: dict[str, int] = {}
        for entry in entries:
            by_type[entry.type.value] = by_type.get(entry.type.value, 0) + 1

        created = [entry.created_at for entry in entries]
        return StoreStats(
            total_entries=len(entries),
            by_type=by_type,
            average_importance=sum(e.importance for e in entries) / len(entries),
            oldest_entry=min(created),
            newest_entry=max(created),
        )

    # === Internals ===

    def _generate_id(self, now: datetime) -> str:
        # Counter keeps ids unique within a tick; the suffix guards
        # against other processes writing to the same backend.
        millis = int(now.timestamp() * 1000)
        return f"knowledge-{millis}-{next(self._id_counter)}-{secrets.token_hex(3)}"

    def _normalize_importance(self, importance: float) -> float:
        importance = float(importance)
        if not self.config.clamp_importance:
            return importance

        clamped = min(1.0, max(0.0, importance))
        if clamped != importance:
            logger.debug(f"Clamped knowledge importance {importance} to {clamped}")
        return clamped

    def _save_to_storage(self) -> None:
        try:
            self.storage.save(encode_entries(list(self._entries.values())))
        except Exception as e:
            logger.warning(f"Failed to persist knowledge store: {e}")

    def _load_from_storage(self) -> None:
        try:
            payload = self.storage.load()
        except Exception as e:
            logger.warning(f"Failed to read knowledge store, starting empty: {e}")
            return

        for entry in decode_entries(payload):
            self._entries[entry.id] = entry

        if self._entries:
            logger.debug(f"Loaded {len(self._entries)} knowledge entries")


def _dedupe(tags: list[str]) -> list[str]:
    return list(dict.fromkeys(tags))
