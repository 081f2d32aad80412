"""
Tests for structured command parsing and validation.

Covers:
- Number normalization and callsign removal
- parse_structured_command: action, parameter, value, condition,
  constraint, immediacy
- validate_readback_against_command: roger substitution, wrong values,
  dropped conditions, conditional instructions executed now, constraints,
  runways and clearance confusion
- generate_expected_readback phonetics
"""

import pytest

from readback.models import ConditionType, ConstraintType, ErrorType, Severity
from readback.services.semantic import (
    extract_value,
    find_callsign,
    generate_expected_readback,
    is_safety_critical_instruction,
    normalize_to_digits,
    parse_structured_command,
    remove_callsign,
    to_phonetic,
    validate_readback_against_command,
)


def validate(atc: str, pilot: str):
    return validate_readback_against_command(parse_structured_command(atc), pilot)


def error_types(errors):
    return [e.type for e in errors]


class TestNormalization:
    """Tests for number normalization and callsign handling."""

    def test_icao_digits_are_joined(self):
        assert normalize_to_digits('flight level tree fife zero') == 'flight level 350'

    def test_compound_numbers(self):
        assert normalize_to_digits('Speed two twenty') == 'speed 220'

    def test_callsign_removed_before_extraction(self):
        assert remove_callsign('PAL456, squawk 2416') == ', squawk 2416'

    def test_flight_level_is_not_a_callsign(self):
        assert find_callsign('Climb FL350') is None

    def test_find_spaced_callsign(self):
        assert find_callsign('Squawk 2416, PAL 456') == 'PAL456'

    @pytest.mark.parametrize('text,parameter,expected', [
        ('PAL456, climb and maintain FL350', 'altitude', 'FL350'),
        ('PAL456, descend and maintain 5000', 'altitude', '5000'),
        ('PAL456, descend four thousand', 'altitude', '4000'),
        ('PAL456, turn left heading 90', 'heading', '090'),
        ('PAL456, reduce speed 180 knots', 'speed', '180'),
        ('PAL456, QNH 1013', 'altimeter', '1013'),
        ('PAL456, squawk 2416', 'squawk', '2416'),
        ('PAL456, contact approach 119 decimal 1', 'frequency', '119.1'),
    ])
    def test_extract_value(self, text, parameter, expected):
        assert extract_value(text, parameter) == expected


class TestParseStructuredCommand:
    """Tests for parse_structured_command()."""

    def test_altitude_command(self):
        command = parse_structured_command('PAL456, climb and maintain flight level 350')

        assert command.action == 'climb'
        assert command.parameter == 'altitude'
        assert command.value == 'FL350'
        assert command.modifier == 'and maintain'
        assert command.condition is None
        assert not command.is_immediate

    def test_conditional_command(self):
        command = parse_structured_command('PAL456, when passing FL250 turn right heading 090')

        assert command.condition is not None
        assert command.condition.type == ConditionType.WHEN
        assert command.condition.trigger_value == 'FL250'

    def test_constraint(self):
        command = parse_structured_command('PAL456, descend to 4000 at or above 3000')

        assert command.constraint is not None
        assert command.constraint.type == ConstraintType.AT_OR_ABOVE
        assert command.constraint.value == '3000'

    def test_immediate(self):
        assert parse_structured_command('PAL456, turn left heading 180 immediately').is_immediate

    def test_fix_parameter(self):
        command = parse_structured_command('PAL456, proceed direct LUBAN')

        assert command.parameter == 'fix'
        assert command.value == 'LUBAN'


class TestValidateReadback:
    """Tests for validate_readback_against_command()."""

    def test_correct_readback_has_no_errors(self):
        assert validate(
            'PAL456, climb and maintain flight level 350',
            'Climb and maintain flight level 350, PAL456',
        ) == []

    def test_roger_substitution(self):
        errors = validate('PAL456, cleared to land runway 24', 'Roger, PAL456')

        assert ErrorType.ROGER_SUBSTITUTION in error_types(errors)
        roger = errors[error_types(errors).index(ErrorType.ROGER_SUBSTITUTION)]
        assert roger.severity == Severity.CRITICAL
        assert roger.description.startswith('"Roger" cannot substitute')

    def test_safety_critical_instruction_detection(self):
        assert is_safety_critical_instruction('PAL456, squawk 2416')
        assert not is_safety_critical_instruction('PAL456, report field in sight')

    def test_wrong_altitude_value(self):
        errors = validate(
            'PAL456, descend and maintain flight level 250',
            'Descend and maintain flight level 150, PAL456',
        )

        assert error_types(errors) == [ErrorType.WRONG_VALUE]
        assert 'ATC said FL250' in errors[0].description

    def test_missing_value(self):
        errors = validate('PAL456, squawk 2416', 'Squawking, PAL456')

        assert error_types(errors) == [ErrorType.MISSING_ELEMENT]
        assert errors[0].severity == Severity.MEDIUM

    def test_condition_omitted(self):
        errors = validate(
            'PAL456, when passing FL250 turn right heading 090',
            'Right heading 090, PAL456',
        )

        assert ErrorType.CONDITION_OMITTED in error_types(errors)

    def test_condition_violated_by_now(self):
        errors = validate(
            'PAL456, when passing FL250 turn right heading 090',
            'Turning right heading 090 now, PAL456',
        )

        assert ErrorType.CONDITION_VIOLATED in error_types(errors)

    def test_constraint_missing(self):
        errors = validate(
            'PAL456, descend to 4000 at or above 3000',
            'Descend 4000, PAL456',
        )

        assert ErrorType.CONSTRAINT_MISSING in error_types(errors)

    def test_wrong_runway(self):
        errors = validate(
            'PAL456, runway 24 cleared for takeoff',
            'Runway 06 cleared for takeoff, PAL456',
        )

        assert ErrorType.WRONG_RUNWAY in error_types(errors)

    def test_missing_designator(self):
        errors = validate(
            'PAL456, cleared to land runway 24L',
            'Cleared to land runway 24, PAL456',
        )

        assert ErrorType.MISSING_DESIGNATOR in error_types(errors)

    def test_clearance_confusion(self):
        errors = validate(
            'PAL456, line up and wait runway 24',
            'Runway 24 cleared for takeoff, PAL456',
        )

        assert ErrorType.CRITICAL_CONFUSION in error_types(errors)
        confusion = errors[error_types(errors).index(ErrorType.CRITICAL_CONFUSION)]
        assert confusion.description == 'Clearance confusion: line up clearance read back as takeoff'


class TestExpectedReadback:
    """Tests for generate_expected_readback()."""

    def test_to_phonetic(self):
        assert to_phonetic('350') == 'tree fife zero'

    def test_squawk(self):
        assert generate_expected_readback('PAL456, squawk 2416', 'PAL456') == 'squawk two fower one six, PAL456'

    def test_flight_level_uses_callsign_from_text(self):
        assert generate_expected_readback('PAL456, climb and maintain FL350') == (
            'climb and maintain flight level tree fife zero, PAL456'
        )

    def test_altitude_in_thousands(self):
        assert generate_expected_readback('CEB789, descend and maintain 5000') == (
            'descend and maintain fife thousand, CEB789'
        )

    def test_heading_with_direction(self):
        assert generate_expected_readback('PAL456, turn left heading 270') == (
            'left heading two seven zero, PAL456'
        )

    def test_frequency(self):
        assert generate_expected_readback('PAL456, contact Manila Approach 119.1') == (
            'manila approach one one niner decimal one, PAL456'
        )

    def test_landing_clearance(self):
        assert generate_expected_readback('PAL456, cleared to land runway 24L') == (
            'cleared to land runway two fower left, PAL456'
        )

    def test_unknown_callsign_placeholder(self):
        assert generate_expected_readback('Squawk 2416') == 'squawk two fower one six, {callsign}'
