"""
Knowledge Configuration

Thresholds for combo detection and settings for knowledge persistence.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os

from .storage import FileStorage, MemoryStorage, StorageBackend


@dataclass
class KnowledgeConfig:
    """Configuration for the combo detector and knowledge store."""

    # Combo detection
    min_sequence_length: int = 2
    min_pattern_occurrences: int = 2
    threat_occurrences: int = 3  # Patterns seen this often become threats
    frequent_cards_limit: int = 5

    # Persistence
    storage_path: Optional[str] = None
    storage_key: str = "ai_knowledge_store"

    # Importance outside 0.0-1.0 is clamped instead of stored as-is
    clamp_importance: bool = True

    @classmethod
    def from_env(cls) -> 'KnowledgeConfig':
        """Create config with overrides from PLAYWATCH_* environment variables."""
        config = cls(storage_path=os.environ.get("PLAYWATCH_KNOWLEDGE_PATH") or None)

        threat = os.environ.get("PLAYWATCH_THREAT_OCCURRENCES")
        if threat:
            config.threat_occurrences = int(threat)

        min_occurrences = os.environ.get("PLAYWATCH_MIN_PATTERN_OCCURRENCES")
        if min_occurrences:
            config.min_pattern_occurrences = int(min_occurrences)

        return config

    def create_storage(self) -> StorageBackend:
        """Return the backend described by this config."""
        if self.storage_path:
            return FileStorage(Path(self.storage_path) / f"{self.storage_key}.json")
        return MemoryStorage()
