"""
Tests for the adaptive learning rules.

Covers:
- Effective learning rate
- apply_correction: false positives, false negatives, phase corrections,
  detection threshold and history bookkeeping
- Weight bounds over long correction sequences
- reinforce, update_config and reset
- get_stats and (de)serialization
"""

import pytest

from readback.models import ConfigUpdate, SessionResults, WeightUpdateReason
from readback.services import learning


class TestLearningRate:
    """Tests for effective_learning_rate()."""

    def test_default_rate_without_samples(self, default_state):
        assert learning.effective_learning_rate(default_state) == pytest.approx(0.1)

    def test_fixed_rate_when_adaptive_disabled(self, default_state):
        default_state.config.adaptiveRateEnabled = False
        default_state.config.learningRate = 0.2

        assert learning.effective_learning_rate(default_state) == 0.2

    def test_push_bounded_keeps_newest(self):
        assert learning.push_bounded([1, 2, 3], [4, 5], 3) == [3, 4, 5]


class TestApplyCorrection:
    """Tests for apply_correction()."""

    def test_false_positive_lowers_weight(self, default_state, correction_factory):
        correction = correction_factory(['missing_element'], [], predicted_correct=False, actually_correct=True)

        state, updates = learning.apply_correction(default_state, correction)

        assert state.weights.errorWeights['missing_element'] == pytest.approx(0.95)
        assert len(updates) == 1
        assert updates[0].pattern == 'error:missing_element'
        assert updates[0].reason == WeightUpdateReason.FALSE_POSITIVE
        assert updates[0].oldWeight == 1.0

    def test_false_negative_raises_weight(self, default_state, correction_factory):
        correction = correction_factory([], ['wrong_value'], predicted_correct=True, actually_correct=False)

        state, updates = learning.apply_correction(default_state, correction)

        assert state.weights.errorWeights['wrong_value'] == pytest.approx(1.2 * 1.05)
        assert updates[0].reason == WeightUpdateReason.FALSE_NEGATIVE

    def test_agreed_errors_are_untouched(self, default_state, correction_factory):
        correction = correction_factory(['wrong_value'], ['wrong_value'])

        state, updates = learning.apply_correction(default_state, correction)

        assert updates == []
        assert state.weights.errorWeights['wrong_value'] == 1.2

    def test_phase_correction(self, default_state, correction_factory):
        correction = correction_factory([], [], predicted_phase='cruise', actual_phase='approach')

        state, updates = learning.apply_correction(default_state, correction)

        assert state.weights.phaseWeights['cruise'] == pytest.approx(0.7 * 0.9)
        assert state.weights.phaseWeights['approach'] == pytest.approx(1.3 * 1.1)
        assert [u.pattern for u in updates] == ['phase:cruise', 'phase:approach']
        assert all(u.reason == WeightUpdateReason.PHASE_CORRECTION for u in updates)
        assert updates[1].oldWeight == 1.3
        assert updates[1].newWeight == pytest.approx(1.3 * 1.1)

    def test_lenient_verdict_raises_threshold(self, default_state, correction_factory):
        correction = correction_factory([], [], predicted_correct=True, actually_correct=False)

        state, _ = learning.apply_correction(default_state, correction)

        assert state.weights.thresholds.errorDetection == pytest.approx(0.655)

    def test_strict_verdict_lowers_threshold(self, default_state, correction_factory):
        correction = correction_factory([], [], predicted_correct=False, actually_correct=True)

        state, _ = learning.apply_correction(default_state, correction)

        assert state.weights.thresholds.errorDetection == pytest.approx(0.645)

    def test_history_is_recorded(self, default_state, correction_factory):
        correction = correction_factory(['missing_element'], [], predicted_correct=False, actually_correct=True)

        state, _ = learning.apply_correction(default_state, correction)

        history = state.history
        assert history.totalInteractions == 1
        assert history.incorrectPredictions == 1
        assert history.totalInteractions == history.correctPredictions + history.incorrectPredictions
        assert history.userCorrections[0].applied
        assert history.userCorrections[0].id == correction.id
        assert not correction.applied
        assert len(history.weightUpdates) == 1
        assert history.accuracyOverTime[-1].accuracy == 0.0

    @pytest.mark.slow
    def test_weights_stay_in_bounds(self, default_state, correction_factory):
        state = default_state
        for _ in range(200):
            state, _ = learning.apply_correction(
                state, correction_factory(['wrong_value'], ['transposition'], True, False, 'cruise', 'go_around')
            )

        assert state.weights.errorWeights['wrong_value'] == pytest.approx(0.1)
        assert state.weights.errorWeights['transposition'] == pytest.approx(3.0)
        assert state.weights.phaseWeights['cruise'] == pytest.approx(0.3)
        assert state.weights.phaseWeights['go_around'] == pytest.approx(2.0)
        assert state.weights.thresholds.errorDetection == pytest.approx(0.9)

    def test_correction_history_is_bounded(self, correction_factory):
        state = learning.create_default_state(3)

        for _ in range(5):
            state, _ = learning.apply_correction(state, correction_factory([], []))

        assert len(state.history.userCorrections) == 3
        assert state.history.totalInteractions == 5

    def test_batch_learn_applies_in_order(self, default_state, correction_factory):
        corrections = [
            correction_factory(['missing_element'], []),
            correction_factory([], ['wrong_value']),
        ]

        state, updates = learning.batch_learn(default_state, corrections)

        assert [u.pattern for u in updates] == ['error:missing_element', 'error:wrong_value']
        assert state.history.totalInteractions == 2


class TestReinforce:
    """Tests for reinforce()."""

    def test_good_session_rewards_phases(self, default_state):
        session = SessionResults(totalReadbacks=10, correctReadbacks=9, phases=['approach'])

        state = learning.reinforce(default_state, session)

        assert state.weights.phaseWeights['approach'] == pytest.approx(1.32)
        assert state.history.lastTrainingDate is not None

    def test_poor_session_penalizes_phases(self, default_state):
        session = SessionResults(totalReadbacks=10, correctReadbacks=2, phases=['cruise'])

        state = learning.reinforce(default_state, session)

        assert state.weights.phaseWeights['cruise'] == pytest.approx(0.68)

    def test_common_errors_are_boosted(self, default_state):
        session = SessionResults(totalReadbacks=10, correctReadbacks=6, commonErrors=['transposition'])

        state = learning.reinforce(default_state, session)

        assert state.weights.errorWeights['transposition'] == pytest.approx(1.3 * 1.03)

    def test_empty_session_rejected(self, default_state):
        with pytest.raises(ValueError):
            learning.reinforce(default_state, SessionResults(totalReadbacks=0))

    def test_disabled_reinforcement_is_a_no_op(self, default_state):
        default_state.config.reinforcementEnabled = False

        state = learning.reinforce(default_state, SessionResults(totalReadbacks=10, correctReadbacks=10, phases=['approach']))

        assert state.weights.phaseWeights['approach'] == 1.3
        assert state.history.lastTrainingDate is None


class TestConfigAndReset:
    """Tests for update_config() and reset()."""

    def test_values_are_clamped(self, default_state):
        state = learning.update_config(
            default_state, ConfigUpdate(learningRate=2.0, momentum=-1.0, minConfidence=0.1)
        )

        assert state.config.learningRate == 0.5
        assert state.config.momentum == 0.0
        assert state.config.minConfidence == 0.3

    def test_partial_update(self, default_state):
        state = learning.update_config(default_state, ConfigUpdate(adaptiveRateEnabled=False))

        assert not state.config.adaptiveRateEnabled
        assert state.config.learningRate == 0.1

    def test_reset_clears_history(self, default_state, correction_factory):
        state, _ = learning.apply_correction(default_state, correction_factory(['missing_element'], []))

        fresh = learning.reset(state)

        assert fresh.weights.errorWeights['missing_element'] == 1.0
        assert fresh.history.totalInteractions == 0

    def test_reset_can_preserve_history(self, default_state, correction_factory):
        state, _ = learning.apply_correction(default_state, correction_factory(['missing_element'], []))

        fresh = learning.reset(state, preserve_history=True)

        assert fresh.weights.errorWeights['missing_element'] == 1.0
        assert fresh.history.totalInteractions == 1


class TestStatsAndSerialization:
    """Tests for get_stats(), serialize() and deserialize()."""

    def test_stats_for_new_model(self, default_state):
        stats = learning.get_stats(default_state)

        assert stats.accuracy == 0.0
        assert stats.totalInteractions == 0
        assert stats.recentAccuracy == 0.5
        assert stats.topErrors == []
        assert stats.weightDistribution.min == 0.4
        assert stats.weightDistribution.max == 2.0
        assert not stats.learningProgress.improved

    def test_top_errors_come_from_corrections(self, default_state, correction_factory):
        state, _ = learning.batch_learn(default_state, [
            correction_factory([], ['wrong_value', 'transposition']),
            correction_factory([], ['wrong_value']),
        ])

        stats = learning.get_stats(state)

        assert [(e.error, e.count) for e in stats.topErrors] == [('wrong_value', 2), ('transposition', 1)]

    def test_serialized_document_shape(self, sample_model_document):
        assert set(sample_model_document) == {'version', 'createdAt', 'updatedAt', 'weights', 'history', 'config'}
        assert sample_model_document['version'] == learning.MODEL_VERSION

    def test_deserialize_restores_learned_weights(self, default_state, correction_factory):
        state, _ = learning.apply_correction(default_state, correction_factory(['missing_element'], []))

        restored = learning.deserialize(learning.serialize(state))

        assert restored.weights.errorWeights['missing_element'] == pytest.approx(0.95)
        assert restored.history.userCorrections[0].id == state.history.userCorrections[0].id

    def test_deserialize_accepts_json_text(self, default_state):
        restored = learning.deserialize(default_state.model_dump_json())

        assert restored.weights == default_state.weights

    def test_malformed_document_yields_default_state(self):
        restored = learning.deserialize({'version': '1.0', 'weights': 'not a mapping'})

        assert restored.version == learning.MODEL_VERSION
        assert restored.weights.errorWeights == learning.DEFAULT_ERROR_WEIGHTS

    @pytest.mark.parametrize('section,key,value', [
        ('errorWeights', 'wrong_value', 50.0),
        ('errorWeights', 'transposition', 0.05),
        ('phaseWeights', 'approach', 0.01),
        ('phaseWeights', 'landing', 2.5),
    ])
    def test_out_of_bounds_weights_yield_default_state(self, sample_model_document, section, key, value):
        sample_model_document['weights'][section][key] = value

        restored = learning.deserialize(sample_model_document)

        assert restored.weights.errorWeights == learning.DEFAULT_ERROR_WEIGHTS
        assert restored.weights.phaseWeights == learning.DEFAULT_PHASE_WEIGHTS

    @pytest.mark.parametrize('threshold', [0.2, 0.95])
    def test_out_of_bounds_threshold_yields_default_state(self, sample_model_document, threshold):
        sample_model_document['weights']['thresholds']['errorDetection'] = threshold

        restored = learning.deserialize(sample_model_document)

        assert restored.weights.thresholds.errorDetection == 0.65

    def test_inconsistent_counters_yield_default_state(self, sample_model_document):
        sample_model_document['history']['totalInteractions'] = 7

        restored = learning.deserialize(sample_model_document)

        assert restored.history.totalInteractions == 0
        assert restored.history.correctPredictions == 0

    def test_learned_weights_at_the_bounds_are_accepted(self, sample_model_document):
        sample_model_document['weights']['errorWeights']['wrong_value'] = 3.0
        sample_model_document['weights']['phaseWeights']['cruise'] = 0.3
        sample_model_document['weights']['thresholds']['errorDetection'] = 0.9

        restored = learning.deserialize(sample_model_document)

        assert restored.weights.errorWeights['wrong_value'] == 3.0
        assert restored.weights.phaseWeights['cruise'] == 0.3
