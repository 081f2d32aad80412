"""
Dialogue parser: raw transcript text to speaker-tagged lines.

Transcripts arrive in three shapes:
1. Plain lines, optionally prefixed with a speaker label ("ATC:", "PAL456:").
2. Quoted fragments on one line, using any Unicode quote variant
   ("PAL456, climb ..." "Climb ..., PAL456").
3. Continuous text where only the callsigns mark the turn boundaries.

Segment extraction runs an ordered cascade of four strategies and keeps the
first one that yields at least two segments. Speakers are then assigned by
SPEAKER_HEURISTICS, an ordered list of named rules applied until one fires.
The last rule, alternate_by_position, is a positional guess and is only used
when a segment has no labels or lexical cues at all.

Usage:
    from readback.services.parser import parse

    lines = parse('"PAL456, climb and maintain FL350" "Climb FL350, PAL456"')
"""

import logging
import re
from typing import Callable, List, Optional, Tuple

from readback.core.config import get_settings
from readback.models import ParsedLine, Speaker

logger = logging.getLogger(__name__)


# =============================================================================
# Quote Normalization
# =============================================================================

DOUBLE_QUOTES = re.compile(
    "[\u201C\u201D\u201E\u201F\u2033\u2036\u00AB\u00BB\uFF02\u301D\u301E\u301F]"
)
_SINGLE = "['\u2018\u2019\u201A\u201B\u2032\u2035\uFF07`\u00B4]"

# Apostrophes inside words ("o'clock") are not quotes
SINGLE_QUOTES = re.compile(
    "(?<![A-Za-z])" + _SINGLE + "|" + _SINGLE + "(?![A-Za-z])"
)

BARE_SPEAKER_LABEL = re.compile(
    r"^(ATC|Pilot|PLT|ATCO|Tower|Ground|Approach|Departure|Center)[\s:]*$",
    re.IGNORECASE,
)
PARENTHETICAL = re.compile(r"^\(Expected:|^\([^)]*\)$", re.IGNORECASE)
DOUBLE_BRACKETS = re.compile(r"\[\[|\]\]")
EDGE_QUOTES = re.compile(r'^"|"$')

CONSECUTIVE_QUOTES = re.compile(r'\."\s*"|"\s*"')
# An aircraft callsign that opens a new transmission: "... FL350. PAL456, ..."
CALLSIGN_TOKEN = re.compile(r"\b(?!FL\d)([A-Z]{2,3}\d{2,4})\b")
CALLSIGN_TURN = r"(?:(?<=[.!?])\s*|\s+)(?={callsign}\s*[,:])"
SENTENCE_BOUNDARY = re.compile(r'\.\s*"?\s*(?=[A-Z][a-z]*,|\[\[|")')


def normalize_quotes(text: str) -> str:
    """Replace every double and single quote variant with an ASCII double quote."""
    return SINGLE_QUOTES.sub('"', DOUBLE_QUOTES.sub('"', text))


def _strip_segment(part: str) -> str:
    return DOUBLE_BRACKETS.sub("", EDGE_QUOTES.sub("", part)).strip()


# =============================================================================
# Segment Extraction Strategies
# =============================================================================


def _split_on_quotes(text: str, min_length: int) -> List[str]:
    segments = []
    for part in text.split('"'):
        cleaned = part.strip()
        if len(cleaned) <= min_length:
            continue
        if BARE_SPEAKER_LABEL.match(cleaned):
            continue
        if PARENTHETICAL.search(cleaned):
            continue
        if not re.search(r"[a-zA-Z]{3,}", cleaned):
            continue
        segments.append(DOUBLE_BRACKETS.sub("", cleaned))
    return segments


def _split_on_consecutive_quotes(text: str, min_length: int) -> List[str]:
    if not CONSECUTIVE_QUOTES.search(text):
        return []
    segments = []
    for part in CONSECUTIVE_QUOTES.split(text):
        cleaned = _strip_segment(part)
        if len(cleaned) > 3 and re.search(r"[a-zA-Z]{2,}", cleaned):
            segments.append(cleaned)
    return segments


def _split_on_callsign(text: str, min_length: int) -> List[str]:
    tokens = list(CALLSIGN_TOKEN.finditer(text))
    if len(tokens) < 2:
        return []

    boundary = re.compile(CALLSIGN_TURN.format(callsign=re.escape(tokens[1].group(1))))
    match = boundary.search(text, tokens[0].end())
    if match is None:
        return []
    second_idx = match.end()
    if second_idx <= 10:
        return []

    before = _strip_segment(text[:second_idx].strip())
    after = _strip_segment(text[second_idx:].strip())
    if len(before) > 5 and len(after) > 5:
        return [before, after]
    return []


def _split_on_sentences(text: str, min_length: int) -> List[str]:
    segments = []
    for part in SENTENCE_BOUNDARY.split(text):
        cleaned = _strip_segment(part)
        if len(cleaned) > 5 and re.search(r"[a-zA-Z]{2,}", cleaned):
            segments.append(cleaned)
    return segments


SEGMENT_STRATEGIES: List[Tuple[str, Callable[[str, int], List[str]]]] = [
    ("quotes", _split_on_quotes),
    ("consecutive_quotes", _split_on_consecutive_quotes),
    ("callsign_boundary", _split_on_callsign),
    ("sentences", _split_on_sentences),
]


def extract_quoted_segments(text: str, min_length: Optional[int] = None) -> List[str]:
    """
    Split text into dialogue segments using the first strategy that finds two.

    Args:
        text: Transcript text, possibly containing Unicode quotes.
        min_length: Length floor for plain quoted segments. Defaults to
            Settings.parser_min_segment_length.

    Returns:
        The segments of the first successful strategy, or the (possibly
        empty or single) result of the last strategy.
    """
    if min_length is None:
        min_length = get_settings().parser_min_segment_length

    normalized = normalize_quotes(text)
    segments: List[str] = []
    for name, strategy in SEGMENT_STRATEGIES:
        segments = strategy(normalized, min_length)
        if len(segments) >= 2:
            logger.debug(f"Segment strategy '{name}' produced {len(segments)} segments")
            return segments
    return segments


# =============================================================================
# Speaker Heuristics
# =============================================================================

KNOWN_PREFIXES = r"(PAL|CEB|APG|GAP|RPC|SRQ|UAL|AAL|DAL|SWA|JBU)"

CALLSIGN_AT_END = [
    re.compile(r",\s*[A-Z]{2,4}\s*\d{2,4}\.?$", re.IGNORECASE),
    re.compile(r",\s*" + KNOWN_PREFIXES + r"\s*\d+\.?$", re.IGNORECASE),
]
CALLSIGN_AT_START = [
    re.compile(r"^[A-Z]{2,4}\s*\d{2,4}[,\s]", re.IGNORECASE),
    re.compile(r"^" + KNOWN_PREFIXES + r"\s*\d+[,\s]", re.IGNORECASE),
]

ATC_ONLY_MARKERS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"\bnegative\s*[\u2014\u2013-]",
        r"\bconfirm\b",
        r"\bsay\s+again",
        r"\bread\s*back",
        r"\bverify",
        r"\bcorrection",
        r"\bdisregard",
        r"\bstandby",
        r"\bradar\s+contact",
        r"\bidentified",
        r"\bcontact\s+\w+\s+(on|one)\b",
        r"\bwhen\s+passing",
        r"\bafter\s+passing",
    )
]

PILOT_MARKERS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"\b(roger|wilco)\b",
        r"\bunable\b",
        r"\b(requesting|request)\b",
        r"\bwith\s+you\b",
        r"\bready\s+(for|to)\b",
        r"\bchecking\s+in",
        r"\b(climbing|descending|turning|maintaining)\b",
    )
]

ATC_COMMANDS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"\b(climb|descend)\s+(and\s+)?(maintain|to)\b",
        r"\bturn\s+(left|right)\b",
        r"\b(maintain|reduce|increase)\s+(speed|FL|flight\s*level|\d)",
        r"\bcleared\s+(for|to|ils|rnav|vor|visual|takeoff|land)\b",
        r"\bcontact\s+\w+",
        r"\bsquawk\s+\d",
        r"\btaxi\s+(to|via)\b",
        r"\bhold\s+short\b",
        r"\bline\s+up\s+and\s+wait\b",
        r"\bexpect\s+(vectors|ils|rnav|runway|delay)\b",
        r"\bvectors?\s+for\b",
        r"\breport\s+(passing|established|ready)\b",
    )
]


def callsign_at_end(text: str, index: int) -> Optional[Speaker]:
    """Pilots close a readback with their callsign."""
    if any(p.search(text) for p in CALLSIGN_AT_END):
        return Speaker.PILOT
    return None


def callsign_at_start(text: str, index: int) -> Optional[Speaker]:
    """Controllers open a transmission by addressing the aircraft."""
    if any(p.search(text) for p in CALLSIGN_AT_START):
        return Speaker.ATC
    return None


def atc_only_markers(text: str, index: int) -> Optional[Speaker]:
    if any(p.search(text) for p in ATC_ONLY_MARKERS):
        return Speaker.ATC
    return None


def pilot_markers(text: str, index: int) -> Optional[Speaker]:
    if any(p.search(text) for p in PILOT_MARKERS):
        return Speaker.PILOT
    return None


def atc_commands(text: str, index: int) -> Optional[Speaker]:
    if any(p.search(text) for p in ATC_COMMANDS):
        return Speaker.ATC
    return None


def alternate_by_position(text: str, index: int) -> Optional[Speaker]:
    """Last resort: ATC speaks first, so even positions are ATC."""
    return Speaker.ATC if index % 2 == 0 else Speaker.PILOT


SPEAKER_HEURISTICS: List[Tuple[str, Callable[[str, int], Optional[Speaker]]]] = [
    ("callsign_at_end", callsign_at_end),
    ("callsign_at_start", callsign_at_start),
    ("atc_only_markers", atc_only_markers),
    ("pilot_markers", pilot_markers),
    ("atc_commands", atc_commands),
    ("alternate_by_position", alternate_by_position),
]


def infer_speaker(text: str, index: int, allow_fallback: bool = True) -> Speaker:
    """
    Assign a speaker from content alone.

    Args:
        text: Segment text without speaker labels.
        index: 0-based position of the segment, used by the positional rule.
        allow_fallback: When False the positional rule is skipped and
            UNKNOWN is returned if no lexical rule fires.

    Returns:
        The speaker chosen by the first rule that fires.
    """
    for name, rule in SPEAKER_HEURISTICS:
        if name == "alternate_by_position" and not allow_fallback:
            continue
        speaker = rule(text, index)
        if speaker is not None:
            return speaker
    return Speaker.UNKNOWN


# =============================================================================
# Speaker Labels
# =============================================================================

_FACILITY_LABEL = (
    r"^(MANILA|CEBU|CLARK|DAVAO)\s*"
    r"(APP|DEP|TWR|GND|CTR|APPROACH|DEPARTURE|TOWER|GROUND)\b\s*:?\s*"
)

ATC_LABELS = [
    re.compile(r"^(ATC|ATCO)\b\s*:?", re.IGNORECASE),
    re.compile(r"^(TOWER|GROUND|APPROACH|DEPARTURE|CONTROL|RADAR|CENTER)\s*:", re.IGNORECASE),
    re.compile(_FACILITY_LABEL, re.IGNORECASE),
]
PILOT_LABELS = [
    re.compile(r"^(PILOT|PLT|P)\b\s*:", re.IGNORECASE),
    re.compile(r"^PILOT\b", re.IGNORECASE),
    re.compile(r"^(PAL|CEB|AXN|APG|GAP|RPC|SRQ)\s*\d+\s*:", re.IGNORECASE),
    re.compile(r"^RP-?C?\d+\s*:", re.IGNORECASE),
]
LABEL_PREFIXES = [
    re.compile(r"^(ATC|ATCO|PILOT|PLT)\b\s*:?\s*", re.IGNORECASE),
    re.compile(r"^(TOWER|GROUND|APPROACH|DEPARTURE|CONTROL|RADAR|CENTER)\s*:\s*", re.IGNORECASE),
    re.compile(r"^P\s*:\s*", re.IGNORECASE),
    re.compile(_FACILITY_LABEL, re.IGNORECASE),
    re.compile(r"^(PAL|CEB|AXN|APG|GAP|RPC|SRQ)\s*\d+\s*:\s*", re.IGNORECASE),
    re.compile(r"^RP-?C?\d+\s*:\s*", re.IGNORECASE),
]
SURROUNDING_QUOTES = re.compile(r'^["\'\u201C\u201D\s]+|["\'\u201C\u201D\s]+$')


def identify_labeled_speaker(line: str) -> Speaker:
    """
    Speaker from an explicit label, or from lexical cues when unlabeled.

    Returns UNKNOWN when neither a label nor a lexical rule applies; the
    positional fallback is left to the second parsing pass.
    """
    stripped = line.strip()
    if any(p.match(stripped) for p in ATC_LABELS):
        return Speaker.ATC
    if any(p.match(stripped) for p in PILOT_LABELS):
        return Speaker.PILOT
    return infer_speaker(clean_text(stripped), 0, allow_fallback=False)


def clean_text(text: str) -> str:
    """Remove double brackets, surrounding quotes and one leading speaker label."""
    cleaned = DOUBLE_BRACKETS.sub("", text)
    cleaned = SURROUNDING_QUOTES.sub("", cleaned)
    for prefix in LABEL_PREFIXES:
        stripped = prefix.sub("", cleaned, count=1)
        if stripped != cleaned:
            cleaned = stripped
            break
    return SURROUNDING_QUOTES.sub("", cleaned).strip()


# =============================================================================
# Parse
# =============================================================================


def parse(text: str, min_segment_length: Optional[int] = None) -> List[ParsedLine]:
    """
    Parse a transcript into ordered, speaker-tagged lines.

    Args:
        text: Raw transcript.
        min_segment_length: Optional override of the quoted-segment floor.

    Returns:
        ParsedLine list with contiguous 1-based line numbers, in input order.
    """
    entries: List[Tuple[str, str, Speaker]] = []

    # Unquoted multi-line text is split per line so one line's callsign
    # cannot swallow the next line
    segments: List[str] = []
    if '"' in normalize_quotes(text) or "\n" not in text.strip():
        segments = extract_quoted_segments(text, min_segment_length)
    if len(segments) >= 2:
        for index, segment in enumerate(segments):
            entries.append((segment, clean_text(segment), infer_speaker(segment, index)))
    else:
        for line in (l for l in text.split("\n") if l.strip()):
            line_segments = extract_quoted_segments(line, min_segment_length)
            if len(line_segments) >= 2:
                for segment in line_segments:
                    speaker = infer_speaker(segment, len(entries))
                    entries.append((segment, clean_text(segment), speaker))
            else:
                entries.append((line.strip(), clean_text(line), identify_labeled_speaker(line)))

    unknown = sum(1 for _, _, speaker in entries if speaker == Speaker.UNKNOWN)
    if unknown > len(entries) / 2:
        logger.debug(f"{unknown} of {len(entries)} lines unlabeled, inferring from content")
        entries = [
            (raw, cleaned, infer_speaker(cleaned, index) if speaker == Speaker.UNKNOWN else speaker)
            for index, (raw, cleaned, speaker) in enumerate(entries)
        ]

    return [
        ParsedLine(lineNumber=number, text=cleaned, rawText=raw, speaker=speaker)
        for number, (raw, cleaned, speaker) in enumerate(entries, start=1)
    ]
