'''
Readback Analysis Engine Test Suite

Test Modules:
-------------
- test_parser.py: Transcript segmentation and speaker attribution
  - Quote normalization and the segment strategy cascade
  - Speaker labels and the ordered speaker heuristics

- test_pairing.py: Instruction classification and readback evaluation
  - Wrong values, turn direction, bare acknowledgments
  - Contextual severity and the pairing window

- test_context.py: Flight phase, callsigns, emergency flags and escalation

- test_semantic.py: Structured command parsing and validation
  - Roger substitution, conditions, constraints, runways
  - Phonetic expected readbacks

- test_errors.py: Weighted error engine
  - Transposition and magnitude detection
  - Confidence and severity rollup

- test_analyzer.py: Single-exchange analysis end to end

- test_learning.py: Adaptive learning rules and (de)serialization

- test_store.py: ModelStore and the memory/postgres state backends

- test_dialogue.py: Full-dialogue phraseology analysis

- test_api.py: HTTP contract of the FastAPI routes

Running Tests:
--------------
    pip install -e ".[test]"
    pytest readback/tests/ -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
