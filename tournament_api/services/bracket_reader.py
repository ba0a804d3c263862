"""Bracket reader: rebuilds the round-by-round view from stored matches."""
from tournament_api.app import db
from tournament_api.errors import NotFoundError
from tournament_api.models import BYE, Match, MatchResult, TournamentBracket
from tournament_api.services.entries import active_entries
from tournament_api.services.tournaments import find_tournament


def _render_slot(entry):
    if entry is None:
        return {'name': BYE, 'seed': 0, 'id': None}
    return {'name': entry.player_name, 'seed': entry.seed_number or 0, 'id': entry.id}


def group_rounds(matches, entries_by_id, results_by_match):
    """Group matches into rounds 0..max_round, ordered by match number.

    Rounds with no stored matches come back as empty lists; no matches at
    all gives an empty list.
    """
    max_round = max((match.round_number - 1 for match in matches), default=-1)
    rounds = [[] for _ in range(max_round + 1)]
    for match in sorted(matches, key=lambda m: (m.round_number, m.match_number)):
        result = results_by_match.get(match.id)
        rounds[match.round_number - 1].append({
            'player1': _render_slot(entries_by_id.get(match.player1_id)),
            'player2': _render_slot(entries_by_id.get(match.player2_id)),
            'score1': result.player1_score if result else 0,
            'score2': result.player2_score if result else 0,
        })
    return rounds


def get_bracket(tournament_id):
    session = db.session
    tournament = find_tournament(session, tournament_id)
    if tournament is None:
        raise NotFoundError('Tournament not found')

    entries = active_entries(session, tournament.id)
    entries_by_id = {entry.id: entry for entry in entries}
    matches = session.query(Match).filter_by(
        tournament_id=tournament.id, is_deleted=False,
    ).order_by(Match.round_number.asc(), Match.match_number.asc()).all()
    results_by_match = {
        result.match_id: result
        for result in session.query(MatchResult).filter_by(
            tournament_id=tournament.id, is_deleted=False,
        )
    }
    snapshot = session.query(TournamentBracket).filter_by(
        tournament_id=tournament.id, is_deleted=False,
    ).first()

    raw_matches = []
    for match in matches:
        data = match.to_dict()
        result = results_by_match.get(match.id)
        player1 = entries_by_id.get(match.player1_id)
        player2 = entries_by_id.get(match.player2_id)
        data['player1_score'] = result.player1_score if result else 0
        data['player2_score'] = result.player2_score if result else 0
        data['player1_seed'] = player1.seed_number if player1 else None
        data['player2_seed'] = player2.seed_number if player2 else None
        raw_matches.append(data)

    return {
        'tournament': tournament.to_dict(),
        'entries': [entry.to_bracket_dict() for entry in entries],
        'bracket': group_rounds(matches, entries_by_id, results_by_match),
        'matches': raw_matches,
        'snapshot': snapshot.bracket() if snapshot else None,
    }
