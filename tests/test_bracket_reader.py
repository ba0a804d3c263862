"""Tests for the read-only bracket view."""
from types import SimpleNamespace

from tournament_api.services.bracket_reader import group_rounds


def _match(match_id, round_number, match_number, player1_id=None, player2_id=None):
    return SimpleNamespace(
        id=match_id,
        round_number=round_number,
        match_number=match_number,
        player1_id=player1_id,
        player2_id=player2_id,
    )


def test_group_rounds_without_matches_is_empty():
    assert group_rounds([], {}, {}) == []


def test_group_rounds_orders_by_match_number_and_fills_gaps():
    entries = {
        1: SimpleNamespace(id=1, player_name='A', seed_number=1),
        2: SimpleNamespace(id=2, player_name='B', seed_number=None),
    }
    results = {11: SimpleNamespace(player1_score=11, player2_score=4)}
    matches = [
        _match(12, 3, 1),
        _match(11, 1, 2, player1_id=1, player2_id=2),
        _match(10, 1, 1),
    ]
    rounds = group_rounds(matches, entries, results)

    assert [len(round_matches) for round_matches in rounds] == [2, 0, 1]
    assert rounds[0][0] == {
        'player1': {'name': 'BYE', 'seed': 0, 'id': None},
        'player2': {'name': 'BYE', 'seed': 0, 'id': None},
        'score1': 0,
        'score2': 0,
    }
    assert rounds[0][1] == {
        'player1': {'name': 'A', 'seed': 1, 'id': 1},
        'player2': {'name': 'B', 'seed': 0, 'id': 2},
        'score1': 11,
        'score2': 4,
    }


def test_bracket_is_empty_before_build(client, tournament):
    res = client.get(f'/api/v1/tournaments/bracket/{tournament["id"]}')
    assert res.status_code == 200
    data = res.get_json()
    assert data['bracket'] == []
    assert data['matches'] == []
    assert data['entries'] == []
    assert data['snapshot'] is None
    assert data['tournament']['name'] == 'Spring Open'


def test_bracket_is_public(client, auth_headers, tournament):
    client.post(f'/api/v1/tournaments/bracket/{tournament["id"]}', json={
        'players': [{'name': 'A', 'seed': 1}, {'name': 'B', 'seed': 2}],
    }, headers=auth_headers)
    res = client.get(f'/api/v1/tournaments/bracket/{tournament["id"]}')
    assert res.status_code == 200
    assert res.get_json()['entries'] == [
        {'id': 1, 'name': 'A', 'seed': 1},
        {'id': 2, 'name': 'B', 'seed': 2},
    ]


def test_bracket_for_unknown_tournament(client):
    res = client.get('/api/v1/tournaments/bracket/123')
    assert res.status_code == 404
    assert res.get_json()['error'] == 'Tournament not found'


def test_reader_ignores_entries_added_outside_matches(client, auth_headers, tournament):
    client.post(f'/api/v1/tournaments/players/{tournament["id"]}', json={
        'name': 'Walk-in',
    }, headers=auth_headers)
    data = client.get(f'/api/v1/tournaments/bracket/{tournament["id"]}').get_json()
    assert data['bracket'] == []
    assert [entry['name'] for entry in data['entries']] == ['Walk-in']
