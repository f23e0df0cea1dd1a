"""
Playwatch Knowledge System

Learns from the opponent while a game is running and remembers it afterwards:
1. ComboDetector - Logs plays and finds card sequences repeated across turns
2. KnowledgeStore - Importance-ranked, tagged insights that persist between games

Combo patterns can be fed into the store with patterns_to_entries().
"""

from .types import (
    PlayEventType,
    PlayEvent,
    PlaySequence,
    ComboPattern,
    FrequentCard,
    KnowledgeType,
    KnowledgeEntry,
    SearchQuery,
    StoreStats,
)
from .config import KnowledgeConfig
from .combo_detector import (
    ComboDetector,
    group_sequences,
    mine_patterns,
    format_warning,
    patterns_to_entries,
)
from .storage import StorageBackend, MemoryStorage, FileStorage, KnowledgeRecord
from .store import KnowledgeStore

__all__ = [
    # Types
    'PlayEventType',
    'PlayEvent',
    'PlaySequence',
    'ComboPattern',
    'FrequentCard',
    'KnowledgeType',
    'KnowledgeEntry',
    'SearchQuery',
    'StoreStats',
    # Config
    'KnowledgeConfig',
    # Combo detection
    'ComboDetector',
    'group_sequences',
    'mine_patterns',
    'format_warning',
    'patterns_to_entries',
    # Persistence
    'StorageBackend',
    'MemoryStorage',
    'FileStorage',
    'KnowledgeRecord',
    'KnowledgeStore',
]
