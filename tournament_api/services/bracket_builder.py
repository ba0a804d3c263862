"""Bracket builder: validates a roster and rebuilds the full match skeleton.

A build replaces the tournament's bracket in one transaction. Everything the
previous build wrote (entries, matches, results, snapshot) is soft-deleted
first; rows with the same key are then reactivated and overwritten, so
replaying the same request leaves the same rows behind.

Round 1 must seat every roster player exactly once and hold as many BYE
slots as the roster has BYEs. A first-round BYE match is completed at build
time and its player is written into the next round, whether the shape was
generated or supplied. Other scores supplied with the shape are recorded but
never advance anyone; later rounds are taken as given.

Bracket shape, as exchanged with clients (rounds and matches zero-based by
list position)::

    [
        [  # round 1
            {'player1': {'name': 'A', 'seed': 1},
             'player2': {'name': 'D', 'seed': 4},
             'score1': 0, 'score2': 0},
            ...
        ],
        ...  # later rounds, unresolved slots named 'TBD' (or left empty)
    ]
"""
import json
import logging
import math
from collections import namedtuple

from sqlalchemy.exc import SQLAlchemyError

from tournament_api.database import transaction
from tournament_api.errors import ValidationError
from tournament_api.models import (
    BYE, TBD, Match, MatchResult, TournamentBracket, TournamentEntry,
)
from tournament_api.services.advancement import advance_winner, next_placement
from tournament_api.services.entries import (
    clean_player_name,
    find_or_create_entry,
    is_bye_name,
    is_placeholder_name,
    normalize_player_name,
    parse_seed,
)
from tournament_api.services.tournaments import owned_tournament

logger = logging.getLogger(__name__)

RosterPlayer = namedtuple('RosterPlayer', ['name', 'seed', 'is_bye'])
ShapeMatch = namedtuple('ShapeMatch', ['name1', 'name2', 'score1', 'score2'])


def is_power_of_two(value):
    if not isinstance(value, int) or value <= 0:
        return False
    return (value & (value - 1)) == 0


def total_rounds_for_size(bracket_size):
    if not is_power_of_two(bracket_size) or bracket_size < 2:
        return None
    return int(math.log2(bracket_size))


def validate_player_count(count, max_players):
    if count < 2:
        raise ValidationError('A bracket needs at least 2 players')
    if not is_power_of_two(count):
        raise ValidationError(
            'Single-elimination requires a power-of-two player count (2, 4, 8, 16, ...)'
        )
    if count > max_players:
        raise ValidationError(f'Tournament allows at most {max_players} players')


def parse_roster(players):
    """Turn the submitted player list into RosterPlayers.

    BYE placeholders are kept (they count toward the bracket size) but never
    become entries. Two names that normalize to the same key are rejected.
    """
    if not isinstance(players, list) or not players:
        raise ValidationError('Missing bracket or players data')
    roster = []
    seen_keys = set()
    for position, raw_player in enumerate(players, start=1):
        if not isinstance(raw_player, dict):
            raise ValidationError(f'Player {position} must be an object with a name')
        name = clean_player_name(raw_player.get('name'))
        if not name:
            raise ValidationError(f'Player {position} is missing a name')
        if is_bye_name(name):
            roster.append(RosterPlayer(BYE, 0, True))
            continue
        if name == TBD:
            raise ValidationError(f'"{TBD}" is reserved and cannot be used as a player name')
        name_key = normalize_player_name(name)
        if name_key in seen_keys:
            raise ValidationError(f'Duplicate player name: {name}')
        seen_keys.add(name_key)
        roster.append(RosterPlayer(name, parse_seed(raw_player.get('seed')), False))
    return roster


def _seed_order(bracket_size):
    """Standard bracket positions by seed, e.g. 8 -> [1, 8, 4, 5, 2, 7, 3, 6]."""
    if bracket_size == 2:
        return [1, 2]
    order = []
    for seed in _seed_order(bracket_size // 2):
        order.extend([seed, bracket_size + 1 - seed])
    return order


def _shape_slot(player=None):
    if player is None:
        return {'name': TBD, 'seed': 0}
    return {'name': player.name, 'seed': player.seed}


def generate_bracket_shape(roster):
    """Seed a roster into a first round and leave later rounds as TBD.

    Players are ranked by seed (unseeded players and BYEs last, ties in
    submission order) and placed in standard order so the top seed meets the
    lowest. A first-round BYE is resolved into the next round immediately.
    """
    size = len(roster)
    rounds = total_rounds_for_size(size)
    if rounds is None:
        raise ValidationError(
            'Single-elimination requires a power-of-two player count (2, 4, 8, 16, ...)'
        )

    ranked = [
        roster[index] for index in sorted(
            range(size),
            key=lambda i: (roster[i].is_bye, roster[i].seed <= 0, roster[i].seed, i),
        )
    ]
    shape = []
    match_count = size // 2
    for _ in range(rounds):
        shape.append([
            {'player1': _shape_slot(), 'player2': _shape_slot(), 'score1': 0, 'score2': 0}
            for _ in range(match_count)
        ])
        match_count //= 2

    order = _seed_order(size)
    for match_index in range(size // 2):
        player1 = ranked[order[2 * match_index] - 1]
        player2 = ranked[order[2 * match_index + 1] - 1]
        shape[0][match_index]['player1'] = _shape_slot(player1)
        shape[0][match_index]['player2'] = _shape_slot(player2)
        if player1.is_bye != player2.is_bye and rounds > 1:
            present = player2 if player1.is_bye else player1
            placement = next_placement(0, match_index)
            successor = shape[1][placement.match_number - 1]
            successor[f'player{placement.slot}'] = _shape_slot(present)
    return shape


def _parse_score(raw_score, label):
    if raw_score is None or raw_score == '':
        return 0
    if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)):
        raise ValidationError(f'Scores in {label} must be whole numbers')
    if isinstance(raw_score, float) and not raw_score.is_integer():
        raise ValidationError(f'Scores in {label} must be whole numbers')
    score = int(raw_score)
    if score < 0:
        raise ValidationError(f'Scores in {label} cannot be negative')
    return score


def _slot_name(raw_slot):
    if isinstance(raw_slot, dict):
        raw_slot = raw_slot.get('name')
    name = clean_player_name(raw_slot)
    if is_placeholder_name(name):
        return TBD
    return name


def parse_shape(bracket_shape, bracket_size):
    """Check the shape is log2(n) rounds of n/2, n/4, ..., 1 matches."""
    rounds = total_rounds_for_size(bracket_size)
    if not isinstance(bracket_shape, list) or len(bracket_shape) != rounds:
        raise ValidationError(f'Bracket must have {rounds} round(s) for {bracket_size} players')

    parsed = []
    expected = bracket_size // 2
    for round_index, round_matches in enumerate(bracket_shape):
        if not isinstance(round_matches, list) or len(round_matches) != expected:
            raise ValidationError(f'Round {round_index + 1} must have {expected} match(es)')
        parsed_round = []
        for match_index, raw_match in enumerate(round_matches):
            label = f'round {round_index + 1}, match {match_index + 1}'
            if not isinstance(raw_match, dict):
                raise ValidationError(f'Invalid match data in {label}')
            name1 = _slot_name(raw_match.get('player1'))
            name2 = _slot_name(raw_match.get('player2'))
            if name1 == BYE and name2 == BYE:
                raise ValidationError(f'Both slots are BYE in {label}')
            parsed_round.append(ShapeMatch(
                name1, name2,
                _parse_score(raw_match.get('score1'), label),
                _parse_score(raw_match.get('score2'), label),
            ))
        parsed.append(parsed_round)
        expected //= 2
    return parsed


def _retire_bracket_state(session, tournament_id):
    for model in (MatchResult, Match, TournamentEntry, TournamentBracket):
        session.query(model).filter_by(
            tournament_id=tournament_id, is_deleted=False,
        ).update({'is_deleted': True})


def _resolve_slot(name, entries_by_key, label):
    if name == BYE:
        return None, BYE
    if name == TBD:
        return None, TBD
    entry = entries_by_key.get(normalize_player_name(name))
    if entry is None:
        raise ValidationError(f'Unknown player "{name}" in {label}')
    return entry.id, entry.player_name


def _initial_scores(shape_match):
    """Scores to record at build time, or None when the match is unplayed."""
    if shape_match.name1 == BYE:
        return 0, shape_match.score2 or 1
    if shape_match.name2 == BYE:
        return shape_match.score1 or 1, 0
    if shape_match.score1 or shape_match.score2:
        return shape_match.score1, shape_match.score2
    return None


def _upsert_match(session, tournament_id, round_number, match_number, slot1, slot2, status):
    match = session.query(Match).filter_by(
        tournament_id=tournament_id,
        round_number=round_number,
        match_number=match_number,
    ).first()
    if match is None:
        match = Match(
            tournament_id=tournament_id,
            round_number=round_number,
            match_number=match_number,
        )
        session.add(match)
    match.player1_id, match.player1_name = slot1
    match.player2_id, match.player2_name = slot2
    match.status = status
    match.is_deleted = False
    session.flush()
    return match


def _write_snapshot(session, tournament_id, bracket_shape, user_id):
    snapshot = session.query(TournamentBracket).filter_by(tournament_id=tournament_id).first()
    if snapshot is None:
        snapshot = TournamentBracket(tournament_id=tournament_id)
        session.add(snapshot)
    snapshot.bracket_type = 'main'
    snapshot.bracket_data = json.dumps(bracket_shape)
    snapshot.last_updated_by = user_id
    snapshot.is_deleted = False


def build_bracket(tournament_id, bracket_shape, players, user_id):
    """Replace the tournament's bracket with the submitted one.

    ``bracket_shape`` may be None, in which case it is generated from the
    players' seeds. Returns ``{'success', 'bracket', 'matchesCreated'}``.
    """
    roster = parse_roster(players)
    try:
        with transaction() as session:
            tournament = owned_tournament(session, tournament_id, user_id, lock=True)
            if tournament.tournament_type != 'single_elimination':
                raise ValidationError('Only single_elimination brackets are supported')
            validate_player_count(len(roster), tournament.max_players)
            if bracket_shape is None:
                bracket_shape = generate_bracket_shape(roster)
            shape = parse_shape(bracket_shape, len(roster))

            _retire_bracket_state(session, tournament.id)

            entries_by_key = {}
            for player in roster:
                if player.is_bye:
                    continue
                entry, _ = find_or_create_entry(session, tournament.id, player.name, player.seed)
                entries_by_key[entry.name_key] = entry

            matches_created = 0
            first_round_ids = set()
            first_round_byes = 0
            bye_winners = []
            for round_index, round_matches in enumerate(shape):
                for match_index, shape_match in enumerate(round_matches):
                    label = f'round {round_index + 1}, match {match_index + 1}'
                    slot1 = _resolve_slot(shape_match.name1, entries_by_key, label)
                    slot2 = _resolve_slot(shape_match.name2, entries_by_key, label)
                    if round_index == 0:
                        for entry_id, name in (slot1, slot2):
                            if name == TBD:
                                raise ValidationError(f'{label} needs a player or BYE in both slots')
                            if name == BYE:
                                first_round_byes += 1
                                continue
                            if entry_id in first_round_ids:
                                raise ValidationError(f'{name} appears more than once in round 1')
                            first_round_ids.add(entry_id)
                        if slot1[1] == BYE or slot2[1] == BYE:
                            bye_winners.append((match_index, slot2 if slot1[1] == BYE else slot1))

                    scores = _initial_scores(shape_match)
                    decisive = scores is not None and scores[0] != scores[1]
                    match = _upsert_match(
                        session, tournament.id, round_index + 1, match_index + 1,
                        slot1, slot2, 'completed' if decisive else 'pending',
                    )
                    if scores is not None:
                        session.add(MatchResult(
                            match_id=match.id,
                            tournament_id=tournament.id,
                            player1_score=scores[0],
                            player2_score=scores[1],
                        ))
                    matches_created += 1

                if round_index == 0:
                    roster_ids = {entry.id for entry in entries_by_key.values()}
                    roster_byes = sum(1 for player in roster if player.is_bye)
                    if first_round_ids != roster_ids or first_round_byes != roster_byes:
                        raise ValidationError(
                            'Round 1 must place every registered player exactly once'
                        )

            for match_index, (entry_id, name) in bye_winners:
                advance_winner(session, tournament.id, 0, match_index, entry_id, name)

            _write_snapshot(session, tournament.id, bracket_shape, user_id)
    except SQLAlchemyError:
        logger.exception('Bracket build for tournament %s rolled back', tournament_id)
        raise

    logger.info(
        'Bracket saved for tournament %s by user %s: %s entries, %s matches',
        tournament_id, user_id, len(entries_by_key), matches_created,
    )
    return {'success': True, 'bracket': bracket_shape, 'matchesCreated': matches_created}
