"""
Tests for the Combo Detector

Covers:
- Play log recording and copies
- Per-turn sequence detection
- Combo pattern mining and threat flagging
- Warning generation
- Auxiliary play queries
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.ai.knowledge import (
    ComboDetector, ComboPattern, KnowledgeConfig, KnowledgeStore, KnowledgeType,
    MemoryStorage, PlayEvent, PlayEventType, format_warning, patterns_to_entries,
)


T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def play(card_name, turn, offset_ms=0, card_id=None, type=PlayEventType.SUMMON):
    """Helper to build a play event relative to T0."""
    return PlayEvent(
        card_id=card_id or f"{card_name}-{turn}-{offset_ms}",
        card_name=card_name,
        turn=turn,
        timestamp=T0 + timedelta(milliseconds=offset_ms),
        type=type,
    )


def record_combo(detector, turn, *card_names):
    """Record the given cards as one turn, 100ms apart."""
    for i, name in enumerate(card_names):
        detector.record_play(play(name, turn, offset_ms=turn * 100_000 + i * 100))


@pytest.fixture
def detector():
    return ComboDetector()


# =============================================================================
# Play Log
# =============================================================================

class TestRecordPlay:
    """Test the append-only play log."""

    def test_records_a_play(self, detector):
        detector.record_play(play("Test Card", 1))
        assert len(detector.get_play_history()) == 1
        assert len(detector) == 1

    def test_keeps_insertion_order(self, detector):
        detector.record_play(play("Card2", 2, offset_ms=2000))
        detector.record_play(play("Card1", 1, offset_ms=1000))

        history = detector.get_play_history()
        assert [p.turn for p in history] == [2, 1]

    def test_history_is_a_copy(self, detector):
        detector.record_play(play("Card1", 1))

        history = detector.get_play_history()
        history.clear()
        history.append(play("Intruder", 9))

        assert [p.card_name for p in detector.get_play_history()] == ["Card1"]

    def test_events_are_immutable(self):
        event = play("Card1", 1)
        with pytest.raises(AttributeError):
            event.turn = 5

    def test_clear_empties_the_log(self, detector):
        detector.record_play(play("Card1", 1))
        detector.clear()
        assert detector.get_play_history() == []


# =============================================================================
# Sequence Detection
# =============================================================================

class TestDetectSequences:
    """Test per-turn grouping."""

    def test_consecutive_plays_in_same_turn(self, detector):
        detector.record_play(play("Card1", 1, offset_ms=0, type=PlayEventType.SUMMON))
        detector.record_play(play("Card2", 1, offset_ms=1000, type=PlayEventType.EFFECT))
        detector.record_play(play("Card3", 1, offset_ms=2000, type=PlayEventType.EFFECT))

        sequences = detector.detect_sequences(1)

        assert len(sequences) == 1
        assert len(sequences[0].events) == 3
        assert sequences[0].duration == 2000

    def test_single_plays_do_not_form_sequences(self, detector):
        detector.record_play(play("Card1", 1))
        detector.record_play(play("Card2", 2))
        assert detector.detect_sequences(2) == []

    def test_events_sorted_by_timestamp(self, detector):
        detector.record_play(play("Late", 3, offset_ms=5000))
        detector.record_play(play("Early", 3, offset_ms=1000))
        detector.record_play(play("Middle", 3, offset_ms=3000))

        seq = detector.detect_sequences(3)[0]
        assert seq.card_names == ["Early", "Middle", "Late"]
        assert seq.duration == 4000

    def test_equal_timestamps_keep_recorded_order(self, detector):
        detector.record_play(play("First", 1))
        detector.record_play(play("Second", 1))

        assert detector.detect_sequences(1)[0].card_names == ["First", "Second"]

    def test_sequences_ordered_by_turn(self, detector):
        record_combo(detector, 5, "A", "B")
        record_combo(detector, 2, "C", "D")
        record_combo(detector, 9, "E", "F")

        assert [s.turn for s in detector.detect_sequences(9)] == [2, 5, 9]

    def test_current_turn_does_not_filter(self, detector):
        record_combo(detector, 1, "A", "B")
        record_combo(detector, 7, "C", "D")

        assert len(detector.detect_sequences(1)) == 2
        assert len(detector.detect_sequences()) == 2

    def test_configurable_minimum_length(self):
        detector = ComboDetector(KnowledgeConfig(min_sequence_length=3))
        record_combo(detector, 1, "A", "B")
        record_combo(detector, 2, "A", "B", "C")

        assert [s.turn for s in detector.detect_sequences()] == [2]


# =============================================================================
# Pattern Mining
# =============================================================================

class TestDetectComboPatterns:
    """Test combo patterns across turns."""

    def test_repeated_pattern_across_turns(self, detector):
        record_combo(detector, 1, "DangerousCard", "ComboCard")
        record_combo(detector, 3, "DangerousCard", "ComboCard")

        patterns = detector.detect_combo_patterns()

        assert len(patterns) == 1
        assert patterns[0].card_names == ["DangerousCard", "ComboCard"]
        assert patterns[0].occurrences == 2
        assert patterns[0].turns == [1, 3]
        assert patterns[0].is_threat is False

    def test_third_occurrence_becomes_threat(self, detector):
        for turn in (1, 3, 5):
            record_combo(detector, turn, "DangerousCard", "ComboCard")

        patterns = detector.detect_combo_patterns()

        assert patterns[0].occurrences == 3
        assert patterns[0].is_threat is True

    def test_single_occurrence_is_not_a_pattern(self, detector):
        record_combo(detector, 1, "A", "B")
        record_combo(detector, 2, "B", "A")
        assert detector.detect_combo_patterns() == []

    def test_order_matters(self, detector):
        record_combo(detector, 1, "A", "B", "C")
        record_combo(detector, 2, "A", "C", "B")
        record_combo(detector, 3, "A", "B", "C")

        patterns = detector.detect_combo_patterns()
        assert [p.card_names for p in patterns] == [["A", "B", "C"]]

    def test_sorted_by_occurrences_then_first_turn(self, detector):
        record_combo(detector, 1, "X", "Y")
        record_combo(detector, 2, "A", "B")
        record_combo(detector, 3, "X", "Y")
        record_combo(detector, 4, "A", "B")
        record_combo(detector, 5, "A", "B")
        record_combo(detector, 6, "P", "Q")
        record_combo(detector, 7, "P", "Q")

        patterns = detector.detect_combo_patterns()

        assert [p.card_names for p in patterns] == [["A", "B"], ["X", "Y"], ["P", "Q"]]
        assert [p.occurrences for p in patterns] == [3, 2, 2]

    def test_configurable_threat_threshold(self):
        detector = ComboDetector(KnowledgeConfig(threat_occurrences=2))
        record_combo(detector, 1, "A", "B")
        record_combo(detector, 2, "A", "B")

        assert detector.detect_combo_patterns()[0].is_threat is True


# =============================================================================
# Warnings
# =============================================================================

class TestGetWarnings:
    """Test warning strings."""

    def test_warning_for_detected_combo(self, detector):
        record_combo(detector, 1, "DangerousCard", "ComboCard")
        record_combo(detector, 3, "DangerousCard", "ComboCard")

        warnings = detector.get_warnings()

        assert len(warnings) == 1
        assert "Combo" in warnings[0]
        assert "DangerousCard → ComboCard" in warnings[0]
        assert "2" in warnings[0]

    def test_threat_warning_is_marked(self, detector):
        for turn in (1, 2, 3):
            record_combo(detector, turn, "A", "B")
        record_combo(detector, 4, "C", "D")
        record_combo(detector, 5, "C", "D")

        threat, plain = detector.get_warnings()

        assert threat.startswith("⚠️")
        assert not plain.startswith("⚠️")
        assert "3" in threat

    def test_empty_when_no_patterns(self, detector):
        detector.record_play(play("Card1", 1))
        assert detector.get_warnings() == []

    def test_empty_log(self, detector):
        assert detector.get_warnings() == []

    def test_format_warning(self):
        pattern = ComboPattern(card_names=["A", "B"], occurrences=4, turns=[1, 2, 3, 4], is_threat=True)
        assert format_warning(pattern) == "⚠️ Frequent combo detected: A → B (seen 4 times)"


# =============================================================================
# Auxiliary Queries
# =============================================================================

class TestPlayQueries:
    """Test recent plays, play counts and frequent cards."""

    def test_recent_plays(self, detector):
        detector.record_play(play("Old", 1))
        detector.record_play(play("Recent", 5))
        detector.record_play(play("Latest", 6))

        recent = detector.get_recent_plays(6, 2)

        assert [p.card_name for p in recent] == ["Recent", "Latest"]

    def test_card_play_count_is_exact_match(self, detector):
        detector.record_play(play("Bolt", 1))
        detector.record_play(play("Bolt", 2))
        detector.record_play(play("Bolt Jr.", 2))

        assert detector.get_card_play_count("Bolt") == 2
        assert detector.get_card_play_count("Missing") == 0

    def test_frequent_cards(self, detector):
        for name, turn in [("A", 1), ("B", 1), ("B", 2), ("C", 2), ("C", 3), ("C", 4)]:
            detector.record_play(play(name, turn))

        frequent = detector.get_frequent_cards(2)

        assert [(f.card_name, f.count) for f in frequent] == [("C", 3), ("B", 2)]

    def test_frequent_cards_ties_keep_first_seen_order(self, detector):
        for name in ["Z", "M", "A", "M", "Z", "A"]:
            detector.record_play(play(name, 1))

        assert [f.card_name for f in detector.get_frequent_cards()] == ["Z", "M", "A"]

    def test_frequent_cards_default_limit(self, detector):
        for i in range(8):
            detector.record_play(play(f"Card{i}", 1))

        assert len(detector.get_frequent_cards()) == 5


# =============================================================================
# Feeding the Knowledge Store
# =============================================================================

class TestPatternsToEntries:
    """Test turning combo patterns into knowledge entries."""

    def test_patterns_become_combo_entries(self, detector):
        for turn in (1, 2, 3):
            record_combo(detector, turn, "Goblin", "Sac Outlet")

        store = KnowledgeStore(storage=MemoryStorage())
        for fields in patterns_to_entries(detector.detect_combo_patterns()):
            store.save(**fields)

        (entry,) = store.search(type=KnowledgeType.COMBO)
        assert entry.importance == pytest.approx(0.7)
        assert "Goblin" in entry.tags
        assert "threat" in entry.tags
        assert "Goblin → Sac Outlet" in entry.content

    def test_importance_capped(self):
        pattern = ComboPattern(card_names=["A", "B"], occurrences=12, turns=list(range(12)), is_threat=True)
        (fields,) = patterns_to_entries([pattern])
        assert fields["importance"] == 1.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
