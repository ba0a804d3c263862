"""Tests for tournament records, lifecycle and player registration."""
from conftest import bearer, register_user
from tournament_api.models import Match, MatchResult, TournamentBracket, TournamentEntry


def _create(client, headers, **fields):
    payload = {'name': 'Autumn Classic'}
    payload.update(fields)
    return client.post('/api/v1/tournaments/create', json=payload, headers=headers)


def test_create_tournament_defaults(client, auth_headers):
    res = _create(client, auth_headers, description='  Club night  ')
    assert res.status_code == 201
    tournament = res.get_json()['tournament']
    assert tournament['tournament_type'] == 'single_elimination'
    assert tournament['max_players'] == 16
    assert tournament['entry_fee'] == 0
    assert tournament['status'] == 'draft'
    assert tournament['description'] == 'Club night'
    assert tournament['created_by_username'] == 'organizer'


def test_create_requires_name(client, auth_headers):
    res = _create(client, auth_headers, name='   ')
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Tournament name is required'


def test_create_rejects_duplicate_name_for_same_owner(client, auth_headers, other_headers):
    assert _create(client, auth_headers).status_code == 201
    assert _create(client, auth_headers).status_code == 400
    assert _create(client, other_headers).status_code == 201


def test_create_validates_numbers(client, auth_headers):
    assert _create(client, auth_headers, max_players=1).status_code == 400
    assert _create(client, auth_headers, max_players='many').status_code == 400
    assert _create(client, auth_headers, entry_fee=-5).status_code == 400
    assert _create(client, auth_headers, tournament_type='swiss').status_code == 400
    res = _create(client, auth_headers, entry_fee='12.5')
    assert res.get_json()['tournament']['entry_fee'] == 12.5


def test_create_requires_auth(client):
    res = client.post('/api/v1/tournaments/create', json={'name': 'Nope'})
    assert res.status_code == 401
    assert res.get_json()['error'] == 'Authentication required'


def test_list_only_returns_own_tournaments(client, auth_headers, other_headers):
    _create(client, auth_headers, name='Mine')
    _create(client, other_headers, name='Theirs')
    res = client.get('/api/v1/tournaments/list', headers=auth_headers)
    data = res.get_json()
    assert data['count'] == 1
    assert data['tournaments'][0]['name'] == 'Mine'


def test_view_is_public(client, tournament):
    res = client.get(f'/api/v1/tournaments/view/{tournament["id"]}')
    assert res.status_code == 200
    assert res.get_json()['tournament']['name'] == 'Spring Open'
    assert client.get('/api/v1/tournaments/view/999').status_code == 404


def test_update_tournament(client, auth_headers, other_headers, tournament):
    url = f'/api/v1/tournaments/update/{tournament["id"]}'
    assert client.put(url, json={'name': 'Hacked'}, headers=other_headers).status_code == 403

    res = client.put(url, json={'name': 'Spring Open II', 'entry_fee': 5}, headers=auth_headers)
    assert res.status_code == 200
    updated = res.get_json()['tournament']
    assert updated['name'] == 'Spring Open II'
    assert updated['entry_fee'] == 5
    assert updated['max_players'] == 32


def test_update_cannot_shrink_below_entry_count(client, auth_headers, tournament):
    client.post(f'/api/v1/tournaments/bracket/{tournament["id"]}', json={
        'players': [{'name': n} for n in ('A', 'B', 'C', 'D')],
    }, headers=auth_headers)
    res = client.put(f'/api/v1/tournaments/update/{tournament["id"]}', json={
        'max_players': 2,
    }, headers=auth_headers)
    assert res.status_code == 400


def test_delete_cascades_soft_delete(client, auth_headers, tournament):
    tid = tournament['id']
    client.post(f'/api/v1/tournaments/bracket/{tid}', json={
        'players': [{'name': 'A'}, {'name': 'B'}, {'name': 'C'}, {'name': 'BYE'}],
    }, headers=auth_headers)

    res = client.delete(f'/api/v1/tournaments/delete/{tid}', headers=auth_headers)
    assert res.status_code == 200

    for model in (TournamentEntry, Match, MatchResult, TournamentBracket):
        assert model.query.filter_by(tournament_id=tid, is_deleted=False).count() == 0
        assert model.query.filter_by(tournament_id=tid).count() > 0
    assert client.get(f'/api/v1/tournaments/view/{tid}').status_code == 404
    assert client.get(f'/api/v1/tournaments/bracket/{tid}').status_code == 404


def test_delete_requires_owner(client, other_headers, tournament):
    res = client.delete(f'/api/v1/tournaments/delete/{tournament["id"]}', headers=other_headers)
    assert res.status_code == 403


def test_start_and_end_tournament(client, auth_headers, tournament):
    tid = tournament['id']
    started = client.post(f'/api/v1/tournaments/start/{tid}', headers=auth_headers).get_json()
    assert started['tournament']['status'] == 'active'
    assert started['tournament']['start_date'] is not None

    ended = client.post(f'/api/v1/tournaments/end/{tid}', headers=auth_headers).get_json()
    assert ended['tournament']['status'] == 'completed'
    assert ended['tournament']['end_date'] is not None

    res = client.post(f'/api/v1/tournaments/start/{tid}', headers=auth_headers)
    assert res.status_code == 400


def test_generate_share_url(client, auth_headers, tournament):
    tid = tournament['id']
    res = client.post(f'/api/v1/tournaments/generate-url/{tid}', headers=auth_headers)
    assert res.status_code == 200
    assert res.get_json()['url'] == f'http://frontend.test/bracket/{tid}'
    view = client.get(f'/api/v1/tournaments/view/{tid}').get_json()
    assert view['tournament']['share_url'] == f'http://frontend.test/bracket/{tid}'


def test_details_include_entries(client, auth_headers, tournament):
    tid = tournament['id']
    client.post(f'/api/v1/tournaments/players/{tid}', json={'name': 'Ada'}, headers=auth_headers)
    client.post(f'/api/v1/tournaments/players/{tid}', json={'name': 'Bo', 'seed': 9}, headers=auth_headers)
    res = client.get(f'/api/v1/tournaments/details/{tid}', headers=auth_headers)
    details = res.get_json()['tournament']
    assert details['entries_count'] == 2
    assert [(e['player_name'], e['seed_number']) for e in details['entries']] == [('Ada', 1), ('Bo', 9)]


def test_add_player_rules(client, auth_headers):
    token, _ = register_user(client, 'tiny_host')
    headers = bearer(token)
    tid = _create(client, headers, name='Tiny', max_players=2).get_json()['tournament']['id']
    url = f'/api/v1/tournaments/players/{tid}'

    assert client.post(url, json={'name': 'Ada'}, headers=headers).status_code == 201
    dup = client.post(url, json={'name': ' ADA '}, headers=headers)
    assert dup.status_code == 400
    assert dup.get_json()['error'] == 'Player already added'
    assert client.post(url, json={'name': 'BYE'}, headers=headers).status_code == 400
    assert client.post(url, json={'name': ''}, headers=headers).status_code == 400
    assert client.post(url, json={'name': 'Bo'}, headers=headers).status_code == 201
    full = client.post(url, json={'name': 'Cy'}, headers=headers)
    assert full.status_code == 400
    assert full.get_json()['error'] == 'Tournament is full'


def test_add_player_requires_owner(client, other_headers, tournament):
    res = client.post(f'/api/v1/tournaments/players/{tournament["id"]}', json={
        'name': 'Sneaky',
    }, headers=other_headers)
    assert res.status_code == 403
