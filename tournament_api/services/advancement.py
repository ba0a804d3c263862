"""Winner placement for single-elimination brackets.

Positions are zero-based at the API (round index, match index) and
one-based in storage (round_number, match_number). A decided match at
round index r, match index i feeds:

    round_number  r + 2
    match_number  i // 2 + 1
    slot          1 when i is even, 2 when i is odd

So matches 0 and 1 of a round feed match 0 of the next round, 2 and 3 feed
match 1, and so on. Placement is one hop only: the engine never creates the
next match and never checks that earlier rounds are finished.
"""
from collections import namedtuple

from tournament_api.models import Match

Placement = namedtuple('Placement', ['round_number', 'match_number', 'slot'])


def next_placement(round_index, match_index):
    return Placement(
        round_number=round_index + 2,
        match_number=match_index // 2 + 1,
        slot=1 if match_index % 2 == 0 else 2,
    )


def winner_of(match, score1, score2):
    """Return ``(entry_id, name)`` of the higher-scoring side, or None on a tie."""
    if score1 == score2:
        return None
    if score1 > score2:
        return match.player1_id, match.player1_name
    return match.player2_id, match.player2_name


def active_match_at(session, tournament_id, round_number, match_number):
    return session.query(Match).filter_by(
        tournament_id=tournament_id,
        round_number=round_number,
        match_number=match_number,
        is_deleted=False,
    ).first()


def advance_winner(session, tournament_id, round_index, match_index, winner_id, winner_name):
    """Write the winner into its successor slot.

    Returns the updated next-round match, or None when there is no successor
    (the final, or a next round that was never built).
    """
    placement = next_placement(round_index, match_index)
    next_match = active_match_at(
        session, tournament_id, placement.round_number, placement.match_number,
    )
    if next_match is None:
        return None
    if placement.slot == 1:
        next_match.player1_id = winner_id
        next_match.player1_name = winner_name
    else:
        next_match.player2_id = winner_id
        next_match.player2_name = winner_name
    return next_match
