"""
Tests for transcript parsing.

Covers:
- Quote normalization across Unicode quote variants
- The segment strategy cascade (quotes, callsign boundary)
- Speaker labels and the ordered speaker heuristics
- parse() on labeled, unlabeled and quoted transcripts
"""

import pytest

from readback.models import Speaker
from readback.services.parser import (
    SPEAKER_HEURISTICS,
    clean_text,
    extract_quoted_segments,
    identify_labeled_speaker,
    infer_speaker,
    normalize_quotes,
    parse,
)


class TestNormalizeQuotes:
    """Tests for quote normalization."""

    def test_curly_double_quotes_become_ascii(self):
        assert normalize_quotes('“PAL456, squawk 2416”') == '"PAL456, squawk 2416"'

    def test_guillemets_become_ascii(self):
        assert normalize_quotes('«Climb FL350»') == '"Climb FL350"'

    def test_apostrophe_inside_word_is_kept(self):
        text = "traffic 2 o'clock"
        assert normalize_quotes(text) == text

    def test_standalone_single_quotes_are_normalized(self):
        assert normalize_quotes("'Roger'") == '"Roger"'


class TestExtractQuotedSegments:
    """Tests for the segment extraction cascade."""

    def test_quoted_fragments(self, quoted_transcript):
        segments = extract_quoted_segments(quoted_transcript, min_length=10)

        assert segments == [
            'PAL456, climb and maintain FL350',
            'Climb and maintain FL350, PAL456',
        ]

    def test_bare_speaker_labels_are_not_segments(self):
        text = '"ATC:" "PAL456, climb and maintain FL350" "Pilot:" "Climb and maintain FL350, PAL456"'

        segments = extract_quoted_segments(text, min_length=3)

        assert segments == [
            'PAL456, climb and maintain FL350',
            'Climb and maintain FL350, PAL456',
        ]

    def test_callsign_boundary_splits_continuous_text(self):
        text = 'PAL456, turn right heading 090. PAL456, right heading 090'

        segments = extract_quoted_segments(text, min_length=10)

        assert segments == ['PAL456, turn right heading 090.', 'PAL456, right heading 090']

    def test_single_transmission_is_not_split(self):
        segments = extract_quoted_segments('PAL456, climb and maintain FL350', min_length=10)

        assert len(segments) == 1


class TestSpeakerHeuristics:
    """Tests for lexical speaker attribution."""

    def test_rules_are_ordered_with_positional_guess_last(self):
        names = [name for name, _ in SPEAKER_HEURISTICS]

        assert names[0] == 'callsign_at_end'
        assert names[-1] == 'alternate_by_position'

    def test_callsign_at_end_is_pilot(self):
        assert infer_speaker('Climb and maintain FL350, PAL456', 0) == Speaker.PILOT

    def test_callsign_at_start_is_atc(self):
        assert infer_speaker('PAL456, climb and maintain FL350', 1) == Speaker.ATC

    def test_say_again_is_atc(self):
        assert infer_speaker('Say again your altitude', 1) == Speaker.ATC

    def test_unable_is_pilot(self):
        assert infer_speaker('Unable due weather', 0) == Speaker.PILOT

    def test_command_without_callsign_is_atc(self):
        assert infer_speaker('Descend and maintain 5000', 1) == Speaker.ATC

    def test_positional_fallback_alternates(self):
        assert infer_speaker('Good morning', 0) == Speaker.ATC
        assert infer_speaker('Good morning', 1) == Speaker.PILOT

    def test_without_fallback_unmatched_text_is_unknown(self):
        assert infer_speaker('Good morning', 1, allow_fallback=False) == Speaker.UNKNOWN


class TestSpeakerLabels:
    """Tests for explicit speaker labels."""

    @pytest.mark.parametrize('line,expected', [
        ('ATC: PAL456, squawk 2416', Speaker.ATC),
        ('Tower: PAL456, cleared to land runway 24', Speaker.ATC),
        ('Manila Approach: PAL456, descend and maintain 5000', Speaker.ATC),
        ('PILOT: Squawk 2416, PAL456', Speaker.PILOT),
        ('PAL456: Squawk 2416', Speaker.PILOT),
    ])
    def test_labels(self, line, expected):
        assert identify_labeled_speaker(line) == expected

    def test_clean_text_strips_label(self):
        assert clean_text('ATC: PAL456, climb and maintain FL350') == 'PAL456, climb and maintain FL350'

    def test_clean_text_strips_brackets_and_quotes(self):
        assert clean_text('"[[PAL456, squawk 2416]]"') == 'PAL456, squawk 2416'


class TestParse:
    """Tests for parse()."""

    def test_labeled_transcript(self, labeled_transcript):
        lines = parse(labeled_transcript)

        assert [line.speaker for line in lines] == [
            Speaker.ATC, Speaker.PILOT, Speaker.ATC, Speaker.PILOT,
        ]
        assert [line.lineNumber for line in lines] == [1, 2, 3, 4]
        assert lines[0].text == 'PAL456, climb and maintain flight level 350'
        assert lines[0].rawText.startswith('ATC:')

    def test_quoted_transcript(self, quoted_transcript):
        lines = parse(quoted_transcript)

        assert len(lines) == 2
        assert lines[0].speaker == Speaker.ATC
        assert lines[1].speaker == Speaker.PILOT
        assert lines[1].text == 'Climb and maintain FL350, PAL456'

    def test_unicode_quoted_transcript(self):
        lines = parse('“PAL456, squawk 2416” “Squawk 2416, PAL456”')

        assert [line.speaker for line in lines] == [Speaker.ATC, Speaker.PILOT]

    def test_unlabeled_lines_use_lexical_cues(self):
        lines = parse('PAL456, descend and maintain 5000\nDescend and maintain 5000, PAL456')

        assert [line.speaker for line in lines] == [Speaker.ATC, Speaker.PILOT]

    def test_blank_lines_are_skipped(self):
        lines = parse('ATC: PAL456, squawk 2416\n\n\nPILOT: Squawk 2416, PAL456')

        assert [line.lineNumber for line in lines] == [1, 2]

    def test_blank_text_yields_no_lines(self):
        assert parse('   ') == []
