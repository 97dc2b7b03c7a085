"""
Tests for the Claude distance estimator.
"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import anthropic
import pytest

from core.transport import TransportMode
from core.validation import Location
from services.claude_estimator import ClaudeDistanceEstimator, EstimateError

ORIGIN = Location(address='Paris')
DESTINATION = Location(lat=51.5074, lng=-0.1278)


def claude_reply(text):
    return SimpleNamespace(content=[SimpleNamespace(type='text', text=text)])


def make_estimator(reply=None, error=None):
    client = MagicMock()
    if error is not None:
        client.messages.create.side_effect = error
    else:
        client.messages.create.return_value = reply
    estimator = ClaudeDistanceEstimator('test-key', model='test-model', max_tokens=500, client=client)
    return estimator, client


class TestEstimate:
    def test_parses_json_reply(self):
        reply = claude_reply(json.dumps({
            'distanceKm': 344,
            'explanation': 'Straight line across the channel',
            'originFormatted': 'Paris, France',
            'destinationFormatted': 'London, UK',
        }))
        estimator, client = make_estimator(reply)

        result = estimator.estimate(ORIGIN, DESTINATION, TransportMode.PIGEON)

        assert result.distance_meters == pytest.approx(344000)
        assert result.distance_text == '344.0 km (estimated)'
        assert result.duration_seconds == pytest.approx(344 / 80 * 3600)
        assert result.origin == 'Paris, France'
        assert result.destination == 'London, UK'

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs['model'] == 'test-model'
        assert kwargs['max_tokens'] == 500
        prompt = kwargs['messages'][0]['content']
        assert 'Origin: Paris' in prompt
        assert 'Destination: 51.5074, -0.1278' in prompt

    def test_accepts_fenced_json(self):
        reply = claude_reply('Here you go:\n```json\n{"distanceKm": 12.4}\n```')
        estimator, _ = make_estimator(reply)

        result = estimator.estimate(ORIGIN, DESTINATION, TransportMode.WALKING)

        assert result.distance_text == "12.4 km (estimated)"
        assert result.origin == 'Paris'
        assert result.destination == '51.5074, -0.1278'

    def test_missing_key(self):
        estimator = ClaudeDistanceEstimator(None, model='test-model')
        with pytest.raises(EstimateError, match='not configured'):
            estimator.estimate(ORIGIN, DESTINATION, TransportMode.WALKING)

    def test_api_error(self):
        estimator, _ = make_estimator(error=anthropic.AnthropicError('overloaded'))
        with pytest.raises(EstimateError, match='Failed to estimate'):
            estimator.estimate(ORIGIN, DESTINATION, TransportMode.WALKING)

    def test_non_json_reply(self):
        estimator, _ = make_estimator(claude_reply('About 300 km, give or take.'))
        with pytest.raises(EstimateError, match='valid JSON'):
            estimator.estimate(ORIGIN, DESTINATION, TransportMode.WALKING)

    def test_missing_distance(self):
        estimator, _ = make_estimator(claude_reply('{"explanation": "no idea"}'))
        with pytest.raises(EstimateError, match='distanceKm'):
            estimator.estimate(ORIGIN, DESTINATION, TransportMode.WALKING)

    def test_negative_distance(self):
        estimator, _ = make_estimator(claude_reply('{"distanceKm": -5}'))
        with pytest.raises(EstimateError, match='negative'):
            estimator.estimate(ORIGIN, DESTINATION, TransportMode.WALKING)

    @pytest.mark.parametrize('distance', ['NaN', 'Infinity', '-Infinity'])
    def test_non_finite_distance(self, distance):
        estimator, _ = make_estimator(claude_reply(f'{{"distanceKm": {distance}}}'))
        with pytest.raises(EstimateError, match='non-finite'):
            estimator.estimate(ORIGIN, DESTINATION, TransportMode.WALKING)

    def test_no_text_block(self):
        estimator, _ = make_estimator(SimpleNamespace(content=[]))
        with pytest.raises(EstimateError):
            estimator.estimate(ORIGIN, DESTINATION, TransportMode.WALKING)
