"""
Tests for the distance API endpoints and app-level behaviour.
"""

from unittest.mock import Mock

import pytest

from core.transport import TransportMode
from services.claude_estimator import DistanceEstimate, EstimateError
from services.distance_calculator import DistanceCalculator
from services.google_maps import DistanceResult, MapsServiceError

ROUTE = {
    'origin': {'address': 'New York, NY'},
    'destination': {'lat': 34.0522, 'lng': -118.2437},
}


@pytest.fixture
def maps_client():
    client = Mock()
    client.calculate_distance_by_mode.return_value = DistanceResult(
        distance_meters=10000,
        distance_text='10 km',
        duration_seconds=7200,
        origin='New York, NY, USA',
        destination='Los Angeles, CA, USA',
    )
    return client


@pytest.fixture
def estimator():
    estimator = Mock()
    estimator.estimate.side_effect = EstimateError('Claude API key not configured')
    return estimator


@pytest.fixture
def api(app, client, maps_client, estimator):
    app.distance_calculator = DistanceCalculator(maps_client, estimator)
    return client


class TestCalculate:
    def test_walking(self, api):
        response = api.post('/api/distance/calculate', json=dict(ROUTE, mode='walking'))

        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        data = body['data']
        assert data['transportMode'] == 'walking'
        assert data['speedKmH'] == 5
        assert data['deliveryTimeSeconds'] == pytest.approx(7200)
        assert data['deliveryTimeText'] == '2 hours'
        assert data['method'] == 'google-maps'
        assert data['isEstimate'] is False

    def test_coordinates_are_passed_through(self, api, maps_client):
        api.post('/api/distance/calculate', json=dict(ROUTE, mode='pigeon'))

        origin, destination, mode = maps_client.calculate_distance_by_mode.call_args.args
        assert origin.address == 'New York, NY'
        assert (destination.lat, destination.lng) == (34.0522, -118.2437)
        assert mode is TransportMode.PIGEON

    def test_invalid_mode_lists_valid_modes(self, api, maps_client):
        response = api.post('/api/distance/calculate', json=dict(ROUTE, mode='flying'))

        assert response.status_code == 400
        body = response.get_json()
        assert body['success'] is False
        assert body['error'] == 'Invalid transport mode'
        for mode in ('walking', 'swimming', 'pigeon', 'rock-climbing'):
            assert mode in body['message']
        maps_client.calculate_distance_by_mode.assert_not_called()

    def test_mode_is_checked_before_locations(self, api):
        payload = {'origin': {'name': 'Berlin'}, 'destination': {}, 'mode': 'flying'}
        response = api.post('/api/distance/calculate', json=payload)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid transport mode'

    def test_missing_mode(self, api):
        response = api.post('/api/distance/calculate', json=ROUTE)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Missing transport mode'

    def test_missing_destination(self, api):
        response = api.post('/api/distance/calculate',
                            json={'origin': {'address': 'Berlin'}, 'mode': 'walking'})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Missing required fields'

    @pytest.mark.parametrize('location', [
        {'name': 'Berlin'},
        {'lat': 52.5},
        {'lat': 91, 'lng': 0},
        {'lat': '52.5', 'lng': '13.4'},
        {'lat': int('9' * 400), 'lng': 13.4},
        'Berlin',
    ])
    def test_invalid_location(self, api, location):
        payload = {'origin': location, 'destination': {'address': 'Potsdam'}, 'mode': 'walking'}
        response = api.post('/api/distance/calculate', json=payload)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid location format'

    def test_non_json_body(self, api):
        response = api.post('/api/distance/calculate', data='origin=Berlin',
                            content_type='text/plain')
        assert response.status_code == 400
        assert response.get_json()['success'] is False

    def test_both_services_failing_is_a_500(self, api, maps_client):
        maps_client.calculate_distance_by_mode.side_effect = MapsServiceError('REQUEST_DENIED')

        response = api.post('/api/distance/calculate', json=dict(ROUTE, mode='walking'))

        assert response.status_code == 500
        body = response.get_json()
        assert body['success'] is False
        assert body['error'] == 'Calculation failed'
        assert 'REQUEST_DENIED' not in body['message']

    def test_claude_fallback(self, api, maps_client, estimator):
        maps_client.calculate_distance_by_mode.side_effect = MapsServiceError('REQUEST_DENIED')
        estimator.estimate.side_effect = None
        estimator.estimate.return_value = DistanceEstimate(
            distance_meters=3000,
            distance_text='3.0 km (estimated)',
            duration_seconds=3600,
            origin='New York, NY',
            destination='34.0522, -118.2437',
        )

        response = api.post('/api/distance/calculate', json=dict(ROUTE, mode='swimming'))

        data = response.get_json()['data']
        assert data['method'] == 'claude-estimate'
        assert data['isEstimate'] is True
        assert data['deliveryTimeSeconds'] == pytest.approx(3600)


class TestCalculateAll:
    def test_returns_every_mode(self, api):
        response = api.post('/api/distance/calculate-all', json=ROUTE)

        assert response.status_code == 200
        data = response.get_json()['data']
        assert set(data) == {'walking', 'swimming', 'pigeon', 'rock-climbing'}
        assert data['pigeon']['deliveryTimeSeconds'] == pytest.approx(10 / 80 * 3600)
        assert data['rock-climbing']['deliveryTimeSeconds'] == pytest.approx(10 * 3600)

    def test_missing_origin(self, api):
        response = api.post('/api/distance/calculate-all',
                            json={'destination': {'address': 'Potsdam'}})
        assert response.status_code == 400

    def test_failure_is_a_500(self, api, maps_client):
        maps_client.calculate_distance_by_mode.side_effect = MapsServiceError('OVER_QUERY_LIMIT')
        response = api.post('/api/distance/calculate-all', json=ROUTE)
        assert response.status_code == 500
        assert response.get_json()['error'] == 'Calculation failed'


class TestServiceEndpoints:
    def test_modes(self, client):
        response = client.get('/api/distance/modes')

        data = response.get_json()['data']
        assert [entry['mode'] for entry in data] == ['walking', 'swimming', 'pigeon', 'rock-climbing']

    def test_distance_health(self, client):
        body = client.get('/api/distance/health').get_json()
        assert body['success'] is True
        assert 'timestamp' in body

    def test_root_health(self, client):
        body = client.get('/health').get_json()
        assert body['status'] == 'healthy'

    def test_index_lists_endpoints(self, client):
        body = client.get('/').get_json()
        assert body['message'] == 'SnailMail Backend API'
        assert 'calculateAll' in body['endpoints']

    def test_security_headers(self, client):
        response = client.get('/health')
        assert response.headers['X-Content-Type-Options'] == 'nosniff'
        assert response.headers['X-Frame-Options'] == 'DENY'

    def test_cors_allows_frontend(self, client):
        response = client.get('/health', headers={'Origin': 'http://localhost:5173'})
        assert response.headers['Access-Control-Allow-Origin'] == 'http://localhost:5173'

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/nowhere')
        assert response.status_code == 404
        body = response.get_json()
        assert body == {
            'success': False,
            'error': 'Not Found',
            'message': 'The requested resource was not found',
        }

    def test_wrong_method_is_json(self, client):
        response = client.get('/api/distance/calculate')
        assert response.status_code == 405
        assert response.get_json()['error'] == 'Method Not Allowed'
