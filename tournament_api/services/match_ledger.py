"""Match ledger: records per-match scores and hands winners to advancement."""
import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from tournament_api.database import transaction
from tournament_api.errors import NotFoundError, ValidationError
from tournament_api.models import TBD, Match, MatchResult
from tournament_api.services.advancement import active_match_at, advance_winner, winner_of
from tournament_api.services.tournaments import owned_tournament

logger = logging.getLogger(__name__)


def _parse_non_negative_int(raw_value, field_name):
    if isinstance(raw_value, bool):
        raise ValidationError(f'{field_name} must be a whole number')
    if isinstance(raw_value, float):
        if not raw_value.is_integer():
            raise ValidationError(f'{field_name} must be a whole number')
        raw_value = int(raw_value)
    if isinstance(raw_value, str) and raw_value.strip().isdigit():
        raw_value = int(raw_value.strip())
    if not isinstance(raw_value, int):
        raise ValidationError(f'{field_name} must be a whole number')
    if raw_value < 0:
        raise ValidationError(f'{field_name} cannot be negative')
    return raw_value


def _placeholder_match(session, tournament_id, round_number, match_number):
    """Create (or revive) a TBD-vs-TBD match at a position nobody built."""
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
    match.player1_id, match.player1_name = None, TBD
    match.player2_id, match.player2_name = None, TBD
    match.status = 'pending'
    match.is_deleted = False
    session.flush()
    return match


def submit_result(tournament_id, round_index, match_index, score1, score2, user_id):
    """Record the score of one match and advance a decisive winner.

    ``round_index`` and ``match_index`` are zero-based. A resubmission
    overwrites the live result row. Ties leave the match pending and advance
    nobody; a slot already filled by an earlier decisive result is left as is.
    Ownership is checked before the position or scores are validated.
    """
    round_number = match_number = None
    try:
        with transaction() as session:
            tournament = owned_tournament(session, tournament_id, user_id, lock=True)
            round_index = _parse_non_negative_int(round_index, 'round')
            match_index = _parse_non_negative_int(match_index, 'matchIndex')
            score1 = _parse_non_negative_int(score1, 'score1')
            score2 = _parse_non_negative_int(score2, 'score2')
            round_number = round_index + 1
            match_number = match_index + 1

            match = active_match_at(session, tournament.id, round_number, match_number)
            if match is None:
                if not current_app.config.get('LEDGER_CREATE_MISSING_MATCHES', True):
                    raise NotFoundError('Match not found')
                logger.warning(
                    'Tournament %s has no match at round %s, match %s; creating a placeholder',
                    tournament.id, round_number, match_number,
                )
                match = _placeholder_match(session, tournament.id, round_number, match_number)

            if match.has_bye():
                raise ValidationError('Cannot update scores for a BYE match')

            result = session.query(MatchResult).filter_by(
                match_id=match.id, is_deleted=False,
            ).first()
            if result is None:
                result = MatchResult(match_id=match.id, tournament_id=tournament.id)
                session.add(result)
            result.player1_score = score1
            result.player2_score = score2
            match.status = 'completed' if result.is_decisive() else 'pending'

            winner = winner_of(match, score1, score2)
            advanced_to = None
            if winner is not None and winner[1] != TBD:
                advanced_to = advance_winner(
                    session, tournament.id, round_index, match_index, *winner,
                )
            session.flush()

            payload = result.to_dict()
            payload['status'] = match.status
            payload['winner'] = winner[1] if winner else None
            payload['advanced_to'] = advanced_to.to_dict() if advanced_to else None
    except SQLAlchemyError:
        logger.exception(
            'Result for tournament %s round %s match %s rolled back',
            tournament_id, round_number, match_number,
        )
        raise

    logger.info(
        'Result %s-%s recorded for tournament %s round %s match %s by user %s',
        score1, score2, tournament_id, round_number, match_number, user_id,
    )
    return payload
