"""Tests for app factory wiring, error handling and startup helpers."""
import pytest
from sqlalchemy import inspect, text

from tournament_api.app import _parse_allowed_origins, _run_lightweight_migrations, create_app, db


def test_parse_allowed_origins():
    assert _parse_allowed_origins('') == '*'
    assert _parse_allowed_origins(' * ') == '*'
    assert _parse_allowed_origins('https://a.example.com, https://b.example.com,') == [
        'https://a.example.com',
        'https://b.example.com',
    ]
    assert _parse_allowed_origins(['https://a.example.com', '']) == ['https://a.example.com']


def test_index_lists_endpoints(client):
    res = client.get('/')
    assert res.status_code == 200
    assert res.get_json()['endpoints']['tournaments'] == '/api/v1/tournaments'


def test_unknown_route_returns_json_404(client):
    res = client.get('/api/v1/nope')
    assert res.status_code == 404
    assert res.get_json()['path'] == '/api/v1/nope'


def test_wrong_method_returns_json_405(client):
    res = client.put('/api/v1/tournaments/view/1')
    assert res.status_code == 405
    assert res.get_json()['error'] == 'Method not allowed'


def test_invalid_json_body_is_rejected(client, auth_headers):
    res = client.post('/api/v1/tournaments/create', data='[1, 2]', headers=auth_headers)
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Invalid JSON payload'


def test_production_requires_secret_key(monkeypatch):
    from tournament_api.config import ProductionConfig
    monkeypatch.setattr(ProductionConfig, 'SECRET_KEY', 'dev-secret-key-change-in-prod')
    monkeypatch.setattr(ProductionConfig, 'SQLALCHEMY_DATABASE_URI', 'sqlite:///:memory:')
    with pytest.raises(RuntimeError, match='SECRET_KEY'):
        create_app('production')


def test_production_requires_explicit_cors(monkeypatch):
    from tournament_api.config import ProductionConfig
    monkeypatch.setattr(ProductionConfig, 'SECRET_KEY', 'a-real-secret')
    monkeypatch.setattr(ProductionConfig, 'CORS_ALLOWED_ORIGINS', '*')
    monkeypatch.setattr(ProductionConfig, 'SQLALCHEMY_DATABASE_URI', 'sqlite:///:memory:')
    with pytest.raises(RuntimeError, match='CORS_ALLOWED_ORIGINS'):
        create_app('production')


def test_migrations_keep_one_live_result_per_match(app):
    with db.engine.begin() as connection:
        connection.execute(text('DROP INDEX ux_match_result_active_match'))
        for score in (1, 2, 3):
            connection.execute(text(
                'INSERT INTO match_result (match_id, tournament_id, player1_score, player2_score, is_deleted) '
                'VALUES (1, 1, :score, 0, 0)'
            ), {'score': score})

    _run_lightweight_migrations()

    with db.engine.connect() as connection:
        live = connection.execute(text(
            'SELECT player1_score FROM match_result WHERE is_deleted = 0'
        )).scalars().all()
    assert live == [3]
    indexes = {index['name'] for index in inspect(db.engine).get_indexes('match_result')}
    assert 'ux_match_result_active_match' in indexes
