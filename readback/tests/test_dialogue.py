"""
Tests for full-dialogue analysis.

Covers:
- Per-line checks: number formats, pilot callsigns, APP/DEP procedures
- Context adjustment of finding severity
- Transcript metrics and risk level
- analyze_dialogue end to end on clean, faulty and emergency transcripts
"""

import pytest

from readback.knowledge import DEFAULT_KNOWLEDGE_BASE
from readback.models import (
    ConversationContext,
    CorpusType,
    FindingCategory,
    FlightPhase,
    ParsedLine,
    PhraseologyFinding,
    RiskLevel,
    SafetyImpact,
    SafetyMetrics,
    Severity,
    Speaker,
)
from readback.services.dialogue import (
    adjust_severity,
    analyze_dialogue,
    check_app_dep_procedures,
    check_number_formats,
    check_pilot_callsign,
    count_clarifications,
    readback_completeness,
    risk_level,
    scan_line,
)


# ============================================================
# HELPERS
# ============================================================

def make_line(text: str, speaker: Speaker = Speaker.ATC, number: int = 1) -> ParsedLine:
    return ParsedLine(lineNumber=number, text=text, rawText=text, speaker=speaker)


def make_finding(issue: str, severity: Severity, category: FindingCategory) -> PhraseologyFinding:
    return PhraseologyFinding(
        line=1,
        original='PAL456, taxi to holding point',
        issue=issue,
        suggestion='Use standard phraseology',
        severity=severity,
        category=category,
    )


# ============================================================
# LINE CHECKS
# ============================================================

class TestNumberFormats:
    """Tests for check_number_formats()."""

    def test_two_digit_heading(self):
        findings = check_number_formats(make_line('PAL456, turn left heading 90'))

        assert len(findings) == 1
        assert findings[0].issue == 'Heading must be expressed as 3 digits'
        assert findings[0].suggestion == 'Use "heading 090" instead of "heading 90"'

    def test_heading_out_of_range(self):
        findings = check_number_formats(make_line('PAL456, fly heading 400'))

        assert [f.severity for f in findings] == [Severity.HIGH]
        assert findings[0].safetyImpact == SafetyImpact.SAFETY

    def test_short_squawk(self):
        findings = check_number_formats(make_line('PAL456, squawk 241'))

        assert findings[0].issue == 'Squawk code must be 4 digits'
        assert findings[0].severity == Severity.MEDIUM

    def test_non_octal_squawk(self):
        findings = check_number_formats(make_line('PAL456, squawk 2489'))

        assert findings[0].issue == 'Invalid squawk code - contains digits 8 or 9'

    def test_long_flight_level(self):
        findings = check_number_formats(make_line('PAL456, climb FL3500'))

        assert findings[0].issue == 'Flight level format incorrect'

    def test_valid_numbers(self):
        assert check_number_formats(make_line('PAL456, turn right heading 270, squawk 2416')) == []


class TestPilotCallsign:
    """Tests for check_pilot_callsign()."""

    def test_missing_callsign(self):
        findings = check_pilot_callsign(make_line('Descending to 5000 now', Speaker.PILOT), DEFAULT_KNOWLEDGE_BASE)

        assert findings[0].issue == 'Missing callsign in pilot transmission'
        assert findings[0].category == FindingCategory.STRUCTURE

    def test_callsign_present(self):
        line = make_line('Descending 5000, PAL456', Speaker.PILOT)

        assert check_pilot_callsign(line, DEFAULT_KNOWLEDGE_BASE) == []

    def test_short_or_atc_lines_are_skipped(self):
        assert check_pilot_callsign(make_line('Wilco', Speaker.PILOT), DEFAULT_KNOWLEDGE_BASE) == []
        assert check_pilot_callsign(make_line('Descending to 5000 now'), DEFAULT_KNOWLEDGE_BASE) == []


class TestProcedures:
    """Tests for the approach/departure procedure checks."""

    @pytest.mark.parametrize('text,issue', [
        ('PAL456, descend to 4000', 'Incomplete descent instruction'),
        ('PAL456, climb to 6000', 'Incomplete climb instruction'),
        ('PAL456, turn heading 270', 'Missing turn direction'),
        ('PAL456, contact Manila Approach 119 point 1',
         'Non-standard frequency pronunciation: "point" instead of "decimal"'),
        ('PAL456, cleared ILS runway 24', 'Incomplete approach clearance'),
    ])
    def test_procedure_findings(self, text, issue):
        findings = check_app_dep_procedures(make_line(text))

        assert [f.issue for f in findings] == [issue]
        assert findings[0].category == FindingCategory.PROCEDURE

    def test_standard_wording_passes(self):
        assert check_app_dep_procedures(make_line('PAL456, descend and maintain 4000')) == []

    def test_procedures_only_for_app_dep(self):
        line = make_line('PAL456, descend to 4000')

        assert scan_line(line, CorpusType.GND, DEFAULT_KNOWLEDGE_BASE) == []
        assert len(scan_line(line, CorpusType.APP_DEP, DEFAULT_KNOWLEDGE_BASE)) == 1


# ============================================================
# CONTEXT ADJUSTMENT
# ============================================================

class TestAdjustSeverity:
    """Tests for adjust_severity()."""

    def test_emergency_raises_one_step(self):
        finding = make_finding('Non-standard phrase', Severity.LOW, FindingCategory.LANGUAGE)

        adjusted = adjust_severity(finding, ConversationContext(emergencyDeclared=True), CorpusType.APP_DEP)

        assert adjusted.severity == Severity.MEDIUM
        assert adjusted.whyItMatters.startswith('EMERGENCY CONTEXT:')
        assert finding.severity == Severity.LOW

    def test_approach_phase_raises_procedure_findings(self):
        finding = make_finding('Incomplete descent instruction', Severity.LOW, FindingCategory.PROCEDURE)

        adjusted = adjust_severity(finding, ConversationContext(flightPhase=FlightPhase.APPROACH), CorpusType.APP_DEP)

        assert adjusted.severity == Severity.MEDIUM
        assert adjusted.explanation == '[APPROACH/LANDING PHASE]'

    def test_tcas_altitude_number_finding_is_high(self):
        finding = make_finding('Flight level format incorrect', Severity.LOW, FindingCategory.NUMBER)

        adjusted = adjust_severity(finding, ConversationContext(tcasActive=True), CorpusType.APP_DEP)

        assert adjusted.severity == Severity.HIGH

    def test_ramp_corpus_counts_as_ground(self):
        finding = make_finding('Non-standard taxi instruction', Severity.MEDIUM, FindingCategory.PROCEDURE)

        adjusted = adjust_severity(finding, ConversationContext(), CorpusType.RAMP)

        assert adjusted.severity == Severity.HIGH
        assert adjusted.explanation == '[GROUND PHASE]'


# ============================================================
# METRICS
# ============================================================

class TestMetrics:
    """Tests for the transcript level metrics."""

    def test_clarifications(self):
        assert count_clarifications('Say again? Confirm squawk') == 2

    def test_completeness_without_instructions(self):
        assert readback_completeness([]) == 100.0

    @pytest.mark.parametrize('metrics,expected', [
        (SafetyMetrics(), RiskLevel.LOW),
        (SafetyMetrics(criticalIssues=1, highSeverityIssues=1), RiskLevel.HIGH),
        (SafetyMetrics(highSeverityIssues=5), RiskLevel.HIGH),
        (SafetyMetrics(highSeverityIssues=2), RiskLevel.MEDIUM),
        (SafetyMetrics(readbackCompleteness=50.0), RiskLevel.MEDIUM),
    ])
    def test_risk_level(self, metrics, expected):
        assert risk_level([], metrics) == expected


# ============================================================
# ANALYZE DIALOGUE
# ============================================================

class TestAnalyzeDialogue:
    """Tests for analyze_dialogue()."""

    def test_clean_transcript(self, labeled_transcript):
        analysis = analyze_dialogue(labeled_transcript)

        assert analysis.phraseologyFindings == []
        assert analysis.totalWords == 24
        assert analysis.totalExchanges == 2
        assert analysis.clarificationCount == 0
        assert analysis.safetyMetrics.overallSafetyScore == 100
        assert analysis.safetyMetrics.readbackCompleteness == 100.0
        assert analysis.riskLevel == RiskLevel.LOW
        assert analysis.contextInfo.detectedCallsign == 'PAL456'

    def test_bare_roger_on_approach(self):
        transcript = (
            'ATC: PAL456, descend and maintain 3000\n'
            'PILOT: Roger, PAL456\n'
            'ATC: PAL456, cleared ILS approach runway 24\n'
            'PILOT: Cleared ILS approach runway 24, PAL456'
        )

        analysis = analyze_dialogue(transcript)

        roger = [f for f in analysis.phraseologyFindings if f.issue.startswith('"ROGER" is inadequate')]
        assert roger[0].issue == '"ROGER" is inadequate - missing altitude readback'
        assert roger[0].line == 2
        assert roger[0].severity == Severity.HIGH
        assert roger[0].safetyImpact == SafetyImpact.SAFETY
        assert analysis.safetyMetrics.criticalIssues >= 1
        assert analysis.riskLevel == RiskLevel.HIGH
        assert [d.line for d in analysis.safetyMetrics.safetyCriticalPhrases] == [3, 4]

        feedback = analysis.contextInfo.exchangeAnalysis[0]
        assert feedback.issue == 'No proper readback for altitude instruction'
        assert feedback.dynamicFeedback.startswith('During approach/landing phase, altitude instructions')
        assert feedback.dynamicFeedback.endswith('This is a CRITICAL issue in the current context.')
        assert 'Critical flight phase - Extra attention to readbacks required' in (
            analysis.contextInfo.situationalFactors
        )

    def test_non_standard_phrase_frequency(self):
        transcript = 'ATC: PAL456, squawk 2416\nPILOT: PAL456 with you, squawk 2416'

        analysis = analyze_dialogue(transcript)

        language = [f for f in analysis.phraseologyFindings if f.category == FindingCategory.LANGUAGE]
        assert len(language) == 1
        assert language[0].line == 2
        assert language[0].suggestion == 'Use "on your frequency" instead of "with you"'
        assert analysis.nonStandardFreq == 100.0

    def test_number_pronunciation(self):
        transcript = (
            'ATC: PAL456, descend and maintain flight level one five zero\n'
            'PILOT: Descend and maintain flight level one five zero, PAL456'
        )

        analysis = analyze_dialogue(transcript)

        fife = [f for f in analysis.phraseologyFindings if f.suggestion == 'Use "fife" instead of "five"']
        assert [f.line for f in fife] == [1, 2]
        assert fife[0].category == FindingCategory.NUMBER

    def test_emergency_context(self):
        transcript = 'PILOT: Mayday mayday, PAL456 with you\nATC: PAL456, squawk 7700'

        analysis = analyze_dialogue(transcript)

        assert analysis.context.emergencyDeclared
        with_you = [f for f in analysis.phraseologyFindings if f.category == FindingCategory.LANGUAGE]
        assert with_you[0].severity == Severity.MEDIUM
        assert with_you[0].whyItMatters.startswith('EMERGENCY CONTEXT:')
        assert 'EMERGENCY DECLARED - All communications are safety-critical' in (
            analysis.contextInfo.situationalFactors
        )

    def test_corpus_type_selects_procedure_checks(self):
        transcript = 'ATC: PAL456, descend to 4000\nPILOT: Descending 4000, PAL456'

        app_dep = analyze_dialogue(transcript, CorpusType.APP_DEP)
        ground = analyze_dialogue(transcript, CorpusType.GND)

        assert 'Incomplete descent instruction' in [f.issue for f in app_dep.phraseologyFindings]
        assert 'Incomplete descent instruction' not in [f.issue for f in ground.phraseologyFindings]
        assert ground.corpusType == CorpusType.GND

    def test_blank_transcript_rejected(self):
        with pytest.raises(ValueError):
            analyze_dialogue('   ')
