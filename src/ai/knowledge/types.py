"""
Knowledge System Types

Dataclasses shared by the combo detector and the knowledge store.
- Play observation: PlayEvent, PlaySequence, ComboPattern
- Learned knowledge: KnowledgeEntry, SearchQuery, StoreStats
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class PlayEventType(str, Enum):
    """Kinds of opponent actions the observer reports."""
    SUMMON = "summon"
    EFFECT = "effect"
    ATTACK = "attack"
    BLOCK = "block"
    TRIGGER = "trigger"
    INTERCEPT = "intercept"


class KnowledgeType(str, Enum):
    """Categories of learned knowledge."""
    COMBO = "combo"
    STRATEGY = "strategy"
    OPPONENT_PATTERN = "opponent_pattern"
    CARD_SYNERGY = "card_synergy"
    GAME_INSIGHT = "game_insight"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Play Observation
# =============================================================================

@dataclass(frozen=True)
class PlayEvent:
    """A single card play observed during a game."""
    card_id: str
    card_name: str
    turn: int
    timestamp: datetime
    type: PlayEventType
    target_id: Optional[str] = None
    target_name: Optional[str] = None


@dataclass
class PlaySequence:
    """
    All plays of a single turn, ordered by timestamp.

    Only turns with at least two plays produce a sequence.
    """
    turn: int
    events: list[PlayEvent] = field(default_factory=list)

    duration: int = 0
    """Milliseconds between the first and the last play of the turn."""

    @property
    def card_names(self) -> list[str]:
        return [event.card_name for event in self.events]


@dataclass
class ComboPattern:
    """An ordered run of card names that recurred across turns."""
    card_names: list[str]
    occurrences: int
    turns: list[int] = field(default_factory=list)

    is_threat: bool = False
    """Seen often enough that the AI should actively play around it."""


@dataclass
class FrequentCard:
    """How often the opponent played a given card."""
    card_name: str
    count: int


# =============================================================================
# Learned Knowledge
# =============================================================================

@dataclass
class KnowledgeEntry:
    """
    A unit of learned insight kept by the KnowledgeStore.

    The store assigns id, created_at and updated_at; callers only
    provide the type, content, importance and tags.
    """
    id: str
    type: KnowledgeType
    content: str

    importance: float = 0.5
    """How much this entry should weigh in decisions (0.0-1.0)."""

    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    access_count: int = 0
    """Number of successful lookups through KnowledgeStore.get()."""

    related_ids: list[str] = field(default_factory=list)

    def copy(self) -> 'KnowledgeEntry':
        """Return a detached copy that shares no mutable state."""
        return replace(self, tags=list(self.tags), related_ids=list(self.related_ids))

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary for persistence."""
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "importance": self.importance,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "access_count": self.access_count,
            "related_ids": list(self.related_ids),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'KnowledgeEntry':
        """Create from a dictionary produced by to_dict()."""
        return cls(
            id=data["id"],
            type=KnowledgeType(data["type"]),
            content=data["content"],
            importance=float(data["importance"]),
            tags=list(data.get("tags") or []),
            created_at=_parse_timestamp(data["created_at"]),
            updated_at=_parse_timestamp(data["updated_at"]),
            access_count=int(data.get("access_count") or 0),
            related_ids=list(data.get("related_ids") or []),
        )


@dataclass
class SearchQuery:
    """Filters for KnowledgeStore.search(). All given filters must match."""
    type: Optional[KnowledgeType] = None
    tag: Optional[str] = None
    min_importance: Optional[float] = None
    limit: Optional[int] = None


@dataclass
class StoreStats:
    """Aggregate view over the entries of a KnowledgeStore."""
    total_entries: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    average_importance: float = 0.0
    oldest_entry: Optional[datetime] = None
    newest_entry: Optional[datetime] = None


def _parse_timestamp(value) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(value)
    # Payloads written without an offset are treated as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value
