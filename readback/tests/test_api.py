"""
Tests for the HTTP API.

Uses FastAPI's TestClient with an in-memory model store attached to
app.state (see the client fixture in conftest.py).

Covers:
- Request validation (400) before the model is touched
- Single-exchange and dialogue analysis
- Model state, learning, config, reset, export and import endpoints
- 503 responses for a missing store and an unpersisted import
- Health and root endpoints
"""

from typing import Any, Dict

import pytest

from readback.services.store import ModelStore, PersistenceError


API = '/api/readback'


class FailingBackend:
    async def load(self):
        raise PersistenceError('database unreachable')

    async def save(self, document: Dict[str, Any]) -> None:
        raise PersistenceError('database unreachable')


def correction_body(predicted_errors, actual_errors) -> Dict[str, Any]:
    return {
        'original': {
            'atc': 'PAL456, descend and maintain flight level 250',
            'pilot': 'Descend flight level 250, PAL456',
            'predictedCorrect': False,
            'predictedErrors': predicted_errors,
            'predictedPhase': 'descent',
        },
        'corrected': {
            'isActuallyCorrect': False,
            'actualErrors': actual_errors,
            'actualPhase': 'descent',
        },
    }


# ============================================================
# ANALYSIS
# ============================================================

class TestAnalysisEndpoints:
    """Tests for /analyze and /analyze/dialogue."""

    def test_analyze_exchange(self, client):
        response = client.post(f'{API}/analyze', json={
            'atc': 'PAL456, squawk 2416',
            'pilot': 'Squawk 2416, PAL456',
        })

        assert response.status_code == 200
        body = response.json()
        assert body['isCorrect'] is True
        assert body['readbackQuality'] == 'complete'
        assert body['expectedReadback'] == 'squawk two fower one six, PAL456'

    def test_analyze_records_interaction(self, client):
        client.post(f'{API}/analyze', json={'atc': 'PAL456, squawk 2416', 'pilot': 'Squawk 2416, PAL456'})

        stats = client.get(f'{API}/model').json()['stats']

        assert stats['totalInteractions'] == 1

    @pytest.mark.parametrize('payload', [
        {'atc': 'PAL456, squawk 2416'},
        {'atc': '', 'pilot': 'Squawk 2416, PAL456'},
        {'atc': 'PAL456, squawk 2416', 'pilot': '   '},
    ])
    def test_analyze_requires_both_texts(self, client, payload):
        response = client.post(f'{API}/analyze', json=payload)

        assert response.status_code == 400
        assert client.get(f'{API}/model').json()['stats']['totalInteractions'] == 0

    def test_analyze_dialogue(self, client, labeled_transcript):
        response = client.post(f'{API}/analyze/dialogue', json={'text': labeled_transcript})

        assert response.status_code == 200
        body = response.json()
        assert body['corpusType'] == 'APP/DEP'
        assert body['totalExchanges'] == 2
        assert body['riskLevel'] == 'low'
        assert len(body['lines']) == 4

    def test_analyze_dialogue_ground_corpus(self, client, labeled_transcript):
        response = client.post(f'{API}/analyze/dialogue', json={'text': labeled_transcript, 'corpusType': 'GND'})

        assert response.status_code == 200
        assert response.json()['corpusType'] == 'GND'

    def test_analyze_dialogue_requires_text(self, client):
        response = client.post(f'{API}/analyze/dialogue', json={'text': '  '})

        assert response.status_code == 400


# ============================================================
# MODEL
# ============================================================

class TestModelEndpoints:
    """Tests for the /model endpoints."""

    def test_get_model(self, client):
        response = client.get(f'{API}/model')

        assert response.status_code == 200
        body = response.json()
        assert body['state']['version'] == '3.0.0-adaptive'
        assert body['stats']['recentAccuracy'] == 0.5
        assert body['persistenceError'] is None

    def test_correct(self, client):
        response = client.post(f'{API}/model/correct', json=correction_body(['missing_element'], []))

        assert response.status_code == 200
        body = response.json()
        assert [u['reason'] for u in body['updates']] == ['false_positive']
        assert body['stats']['totalInteractions'] == 1

    def test_correct_requires_both_halves(self, client):
        body = correction_body(['missing_element'], [])
        del body['corrected']

        response = client.post(f'{API}/model/correct', json=body)

        assert response.status_code == 400
        assert client.get(f'{API}/model').json()['stats']['totalInteractions'] == 0

    def test_batch_learn(self, client):
        response = client.post(f'{API}/model/batch-learn', json={'examples': [
            correction_body(['missing_element'], []),
            correction_body([], ['wrong_value']),
        ]})

        assert response.status_code == 200
        assert len(response.json()['updates']) == 2

    def test_batch_learn_requires_examples(self, client):
        response = client.post(f'{API}/model/batch-learn', json={'examples': []})

        assert response.status_code == 400

    def test_reinforce(self, client):
        response = client.post(f'{API}/model/reinforce', json={
            'totalReadbacks': 10,
            'correctReadbacks': 9,
            'phases': ['approach'],
        })

        assert response.status_code == 200
        assert response.json()['stats']['lastTrainingDate'] is not None

    def test_reinforce_rejects_empty_session(self, client):
        response = client.post(f'{API}/model/reinforce', json={'totalReadbacks': 0, 'correctReadbacks': 0})

        assert response.status_code == 400

    def test_config_is_clamped(self, client):
        response = client.post(f'{API}/model/config', json={'learningRate': 0.9, 'adaptiveRateEnabled': False})

        assert response.status_code == 200
        config = response.json()['state']['config']
        assert config['learningRate'] == 0.5
        assert config['adaptiveRateEnabled'] is False

    def test_reset_without_body(self, client):
        client.post(f'{API}/model/correct', json=correction_body(['missing_element'], []))

        response = client.post(f'{API}/model/reset')

        assert response.status_code == 200
        state = response.json()['state']
        assert state['weights']['errorWeights']['missing_element'] == 1.0
        assert state['history']['totalInteractions'] == 0

    def test_reset_preserving_history(self, client):
        client.post(f'{API}/model/correct', json=correction_body(['missing_element'], []))

        response = client.post(f'{API}/model/reset', json={'preserveHistory': True})

        state = response.json()['state']
        assert state['weights']['errorWeights']['missing_element'] == 1.0
        assert state['history']['totalInteractions'] == 1

    def test_export_import(self, client):
        document = client.get(f'{API}/model/export').json()
        assert set(document) == {'version', 'createdAt', 'updatedAt', 'weights', 'history', 'config'}

        document['weights']['errorWeights']['wrong_value'] = 2.0
        response = client.post(f'{API}/model/import', json=document)

        assert response.status_code == 200
        assert response.json()['state']['weights']['errorWeights']['wrong_value'] == 2.0

    def test_import_not_persisted(self, client):
        from readback.main import app

        document = client.get(f'{API}/model/export').json()
        app.state.model_store = ModelStore(FailingBackend(), max_history_size=1000)

        response = client.post(f'{API}/model/import', json=document)

        assert response.status_code == 503

    def test_missing_store(self, client):
        from readback.main import app

        app.state.model_store = None

        assert client.get(f'{API}/model').status_code == 503


# ============================================================
# SERVICE
# ============================================================

class TestServiceEndpoints:
    """Tests for /health and /."""

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.json() == {'status': 'healthy'}

    def test_root(self, client):
        body = client.get('/').json()

        assert body['docs'] == '/docs'
        assert 'version' in body
