"""
Playwatch AI System

Opponent analysis for the AI layer of a card-game client.
It does not pick moves; it produces combo warnings and stored
knowledge for whichever decision component sits on top.
"""

from .knowledge import (
    ComboDetector,
    KnowledgeStore,
    KnowledgeConfig,
    PlayEvent,
    PlayEventType,
    KnowledgeEntry,
    KnowledgeType,
)

# Full subsystem available for advanced usage
from . import knowledge

__all__ = [
    'ComboDetector',
    'KnowledgeStore',
    'KnowledgeConfig',
    'PlayEvent',
    'PlayEventType',
    'KnowledgeEntry',
    'KnowledgeType',
    'knowledge',
]
