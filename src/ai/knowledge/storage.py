"""
Knowledge Storage Backends

Durable slot the KnowledgeStore reads once at startup and rewrites after
every mutation. The payload is a JSON list of entries with ISO-8601
timestamps; KnowledgeRecord validates it on the way back in.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional
import json
import logging
import os

from pydantic import BaseModel, Field, ValidationError

from .types import KnowledgeEntry, KnowledgeType

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """
    Abstract persistence slot for a KnowledgeStore.

    Implementations may raise on failure; the store treats every
    error as best-effort and keeps its in-memory state.
    """

    @abstractmethod
    def load(self) -> Optional[str]:
        """Return the stored payload, or None if nothing was saved yet."""
        pass

    @abstractmethod
    def save(self, payload: str) -> None:
        """Replace the stored payload."""
        pass


class MemoryStorage(StorageBackend):
    """Keeps the last payload in memory. Useful for tests and ephemeral bots."""

    def __init__(self, payload: Optional[str] = None):
        self.payload = payload
        self.writes = 0

    def load(self) -> Optional[str]:
        return self.payload

    def save(self, payload: str) -> None:
        self.payload = payload
        self.writes += 1


class FileStorage(StorageBackend):
    """
    Single JSON file on disk.

    Writes go to a sibling temp file first and are swapped in with
    os.replace, so a crash mid-write leaves the previous payload intact.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def save(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise


# =============================================================================
# Wire Format
# =============================================================================

class KnowledgeRecord(BaseModel):
    """Serialized form of a KnowledgeEntry."""
    id: str = Field(min_length=1)
    type: KnowledgeType
    content: str
    importance: float
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    access_count: int = Field(default=0, ge=0)
    related_ids: list[str] = Field(default_factory=list)


def encode_entries(entries: list[KnowledgeEntry]) -> str:
    """Serialize entries to the JSON payload written to a backend."""
    return json.dumps([entry.to_dict() for entry in entries], ensure_ascii=False)


def decode_entries(payload: Optional[str]) -> list[KnowledgeEntry]:
    """
    Parse a stored payload back into entries.

    A missing or unparsable payload yields an empty list. Records that
    fail validation are skipped so one bad row doesn't lose the rest.
    """
    if not payload:
        return []

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.warning(f"Discarding unparsable knowledge payload: {e}")
        return []

    if not isinstance(data, list):
        logger.warning(f"Discarding knowledge payload of type {type(data).__name__}")
        return []

    entries = []
    for item in data:
        try:
            record = KnowledgeRecord.model_validate(item)
        except ValidationError as e:
            logger.warning(f"Skipping invalid knowledge record: {e.error_count()} error(s)")
            continue
        entries.append(KnowledgeEntry.from_dict(record.model_dump()))

    return entries
