import pytest
from tournament_api.app import create_app, db


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def register_user(client, username, email=None, password='password123'):
    res = client.post('/api/v1/users/register', json={
        'username': username,
        'email': email or f'{username}@example.com',
        'password': password,
        'name': username.title(),
    })
    assert res.status_code == 201, res.get_json()
    data = res.get_json()
    return data['token'], data['user']['id']


def bearer(token):
    return {'Authorization': f'Bearer {token}', 'Content-Type': 'application/json'}


@pytest.fixture
def auth_headers(client):
    """Register the organizer and return auth headers."""
    token, _ = register_user(client, 'organizer', 'organizer@example.com')
    return bearer(token)


@pytest.fixture
def other_headers(client):
    """A second user who does not own any tournament."""
    token, _ = register_user(client, 'intruder', 'intruder@example.com')
    return bearer(token)


@pytest.fixture
def tournament(client, auth_headers):
    """Create a single-elimination tournament owned by the organizer."""
    res = client.post('/api/v1/tournaments/create', json={
        'name': 'Spring Open', 'max_players': 32,
    }, headers=auth_headers)
    assert res.status_code == 201
    return res.get_json()['tournament']
