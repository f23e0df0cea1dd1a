"""
Combo Detector

Watches the opponent's plays and finds card sequences they repeat
from turn to turn. Repeated sequences are reported as combo patterns,
and patterns seen often enough are flagged as threats.
"""

from collections import Counter
from datetime import timedelta
from typing import Iterable, Optional

from .config import KnowledgeConfig
from .types import ComboPattern, FrequentCard, KnowledgeType, PlayEvent, PlaySequence


WARNING_ARROW = " → "


class ComboDetector:
    """
    Per-opponent play log with combo pattern analysis.

    The log is append-only for the lifetime of a game; sequences and
    patterns are recomputed from the full history on every call.
    """

    def __init__(self, config: Optional[KnowledgeConfig] = None):
        self.config = config or KnowledgeConfig()
        self._play_history: list[PlayEvent] = []

    def __len__(self) -> int:
        return len(self._play_history)

    # === Event Log ===

    def record_play(self, event: PlayEvent) -> None:
        """Append a play to the log. Field values are not validated."""
        self._play_history.append(event)

    def get_play_history(self) -> list[PlayEvent]:
        """Return all plays in the order they were recorded."""
        return list(self._play_history)

    def clear(self) -> None:
        self._play_history = []

    def get_recent_plays(self, current_turn: int, turns_back: int) -> list[PlayEvent]:
        """Plays from the last `turns_back` turns, ending at `current_turn`."""
        min_turn = current_turn - turns_back + 1
        return [play for play in self._play_history if play.turn >= min_turn]

    def get_card_play_count(self, card_name: str) -> int:
        return sum(1 for play in self._play_history if play.card_name == card_name)

    def get_frequent_cards(self, limit: Optional[int] = None) -> list[FrequentCard]:
        """
        Most played cards, highest count first.

        Cards with equal counts keep the order in which they were first played.
        """
        if limit is None:
            limit = self.config.frequent_cards_limit

        # Counter preserves first-seen order and most_common() sorts stably
        counts = Counter(play.card_name for play in self._play_history)
        return [
            FrequentCard(card_name=name, count=count)
            for name, count in counts.most_common()[:max(limit, 0)]
        ]

    # === Sequence Detection ===

    def detect_sequences(self, current_turn: Optional[int] = None) -> list[PlaySequence]:
        """
        Group the whole history into per-turn sequences.

        `current_turn` is accepted for callers that track it but does not
        narrow the scan; every turn in the log is considered.
        """
        return group_sequences(self._play_history, self.config.min_sequence_length)

    # === Pattern Mining ===

    def detect_combo_patterns(self) -> list[ComboPattern]:
        """Find ordered card-name sequences repeated across turns."""
        return mine_patterns(
            self.detect_sequences(),
            min_occurrences=self.config.min_pattern_occurrences,
            threat_occurrences=self.config.threat_occurrences,
        )

    # === Warnings ===

    def get_warnings(self) -> list[str]:
        return [format_warning(pattern) for pattern in self.detect_combo_patterns()]


def group_sequences(events: Iterable[PlayEvent], min_length: int = 2) -> list[PlaySequence]:
    """
    Build one PlaySequence per turn with at least `min_length` plays.

    Plays inside a turn are ordered by timestamp; plays sharing a
    timestamp keep their recorded order. Sequences are returned by turn.
    """
    plays_by_turn: dict[int, list[PlayEvent]] = {}
    for play in events:
        plays_by_turn.setdefault(play.turn, []).append(play)

    sequences = []
    for turn in sorted(plays_by_turn):
        plays = plays_by_turn[turn]
        if len(plays) < min_length:
            continue

        ordered = sorted(plays, key=lambda p: p.timestamp)
        elapsed = ordered[-1].timestamp - ordered[0].timestamp
        sequences.append(PlaySequence(
            turn=turn,
            events=ordered,
            duration=elapsed // timedelta(milliseconds=1),
        ))

    return sequences


def mine_patterns(
    sequences: Iterable[PlaySequence],
    min_occurrences: int = 2,
    threat_occurrences: int = 3
) -> list[ComboPattern]:
    """
    Collect card-name sequences that occur in `min_occurrences` or more turns.

    Result is ordered by occurrences (most first), then by the turn the
    pattern was first seen.
    """
    turns_by_key: dict[tuple[str, ...], list[int]] = {}
    for seq in sequences:
        key = tuple(seq.card_names)
        turns_by_key.setdefault(key, []).append(seq.turn)

    patterns = []
    for card_names, turns in turns_by_key.items():
        if len(turns) < min_occurrences:
            continue
        patterns.append(ComboPattern(
            card_names=list(card_names),
            occurrences=len(turns),
            turns=list(turns),
            is_threat=len(turns) >= threat_occurrences,
        ))

    patterns.sort(key=lambda p: (-p.occurrences, min(p.turns)))
    return patterns


def format_warning(pattern: ComboPattern) -> str:
    """Render a pattern as a one-line warning for the AI or the player."""
    card_list = WARNING_ARROW.join(pattern.card_names)
    if pattern.is_threat:
        return f"⚠️ Frequent combo detected: {card_list} (seen {pattern.occurrences} times)"
    return f"Combo detected: {card_list} (seen {pattern.occurrences} times)"


def patterns_to_entries(patterns: Iterable[ComboPattern], base_importance: float = 0.5) -> list[dict]:
    """
    Turn combo patterns into KnowledgeStore.save() keyword arguments.

    Importance grows by 0.1 per occurrence beyond the first and is capped
    at 1.0. Each card name becomes a tag so the combo can be found by card.
    """
    entries = []
    for pattern in patterns:
        importance = min(1.0, base_importance + 0.1 * (pattern.occurrences - 1))
        tags = ["combo"] + list(dict.fromkeys(pattern.card_names))
        if pattern.is_threat:
            tags.append("threat")
        entries.append({
            "type": KnowledgeType.COMBO,
            "content": format_warning(pattern),
            "importance": importance,
            "tags": tags,
        })
    return entries
