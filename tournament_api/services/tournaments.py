"""Tournament records: creation, ownership checks and lifecycle."""
import logging
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import func

from tournament_api.app import db
from tournament_api.database import transaction
from tournament_api.errors import ForbiddenError, NotFoundError, ValidationError
from tournament_api.models import (
    Match, MatchResult, Tournament, TournamentBracket, TournamentEntry,
    TOURNAMENT_TYPES,
)
from tournament_api.time_utils import utcnow_naive

logger = logging.getLogger(__name__)

_MAX_NAME_LENGTH = 255
_MAX_DESCRIPTION_LENGTH = 4000


def find_tournament(session, tournament_id, lock=False):
    query = session.query(Tournament).filter_by(id=tournament_id, is_deleted=False)
    if lock:
        # Serializes every bracket write for one tournament.
        query = query.with_for_update()
    return query.first()


def owned_tournament(session, tournament_id, user_id, lock=False):
    """Return the live tournament if ``user_id`` created it.

    Raises NotFoundError when it does not exist and ForbiddenError when the
    caller is not its creator.
    """
    tournament = find_tournament(session, tournament_id, lock=lock)
    if tournament is None:
        raise NotFoundError('Tournament not found')
    if tournament.created_by is None or int(tournament.created_by) != int(user_id):
        raise ForbiddenError('Not authorized to manage this tournament')
    return tournament


def _parse_max_players(raw_value):
    try:
        max_players = int(raw_value)
    except (TypeError, ValueError):
        raise ValidationError('max_players must be a number')
    limit = current_app.config.get('MAX_PLAYERS_LIMIT', 128)
    if max_players < 2 or max_players > limit:
        raise ValidationError(f'max_players must be between 2 and {limit}')
    return max_players


def _parse_entry_fee(raw_value):
    try:
        fee = Decimal(str(raw_value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError('entry_fee must be a number')
    if not fee.is_finite() or fee < 0:
        raise ValidationError('entry_fee must be zero or more')
    return fee.quantize(Decimal('0.01'))


def _clean_name(raw_value):
    name = str(raw_value or '').strip()
    if not name:
        raise ValidationError('Tournament name is required')
    return name[:_MAX_NAME_LENGTH]


def create_tournament(data, user_id):
    name = _clean_name(data.get('name'))
    tournament_type = str(data.get('tournament_type') or 'single_elimination').strip().lower()
    if tournament_type not in TOURNAMENT_TYPES:
        raise ValidationError('Invalid tournament_type')

    with transaction() as session:
        existing = session.query(Tournament.id).filter_by(
            name=name, created_by=user_id, is_deleted=False,
        ).first()
        if existing:
            raise ValidationError('Tournament with this name already exists')

        tournament = Tournament(
            name=name,
            description=str(data.get('description') or '').strip()[:_MAX_DESCRIPTION_LENGTH],
            tournament_type=tournament_type,
            max_players=_parse_max_players(data.get('max_players', 16)),
            entry_fee=_parse_entry_fee(data.get('entry_fee', 0)),
            status='draft',
            created_by=user_id,
        )
        session.add(tournament)
        session.flush()
        payload = tournament.to_dict()

    logger.info('Tournament %s (%s) created by user %s', payload['id'], name, user_id)
    return payload


def list_tournaments(user_id):
    tournaments = Tournament.query.filter_by(
        created_by=user_id, is_deleted=False,
    ).order_by(Tournament.created_on.desc(), Tournament.id.desc()).all()
    return [tournament.to_dict() for tournament in tournaments]


def get_tournament(tournament_id):
    tournament = find_tournament(db.session, tournament_id)
    if tournament is None:
        raise NotFoundError('Tournament not found')
    return tournament.to_dict()


def get_tournament_details(tournament_id):
    from tournament_api.services.entries import active_entries

    tournament = find_tournament(db.session, tournament_id)
    if tournament is None:
        raise NotFoundError('Tournament not found')
    entries = active_entries(db.session, tournament.id)
    data = tournament.to_dict()
    data['entries'] = [entry.to_dict() for entry in entries]
    data['entries_count'] = len(entries)
    return data


def update_tournament(tournament_id, data, user_id):
    with transaction() as session:
        tournament = owned_tournament(session, tournament_id, user_id)
        if 'name' in data:
            name = _clean_name(data.get('name'))
            clash = session.query(Tournament.id).filter(
                Tournament.name == name,
                Tournament.created_by == user_id,
                Tournament.is_deleted.is_(False),
                Tournament.id != tournament.id,
            ).first()
            if clash:
                raise ValidationError('Tournament with this name already exists')
            tournament.name = name
        if 'description' in data:
            tournament.description = str(data.get('description') or '').strip()[:_MAX_DESCRIPTION_LENGTH]
        if 'max_players' in data:
            max_players = _parse_max_players(data.get('max_players'))
            entry_count = session.query(func.count(TournamentEntry.id)).filter_by(
                tournament_id=tournament.id, is_deleted=False,
            ).scalar()
            if entry_count > max_players:
                raise ValidationError('max_players cannot be lower than the current entry count')
            tournament.max_players = max_players
        if 'entry_fee' in data:
            tournament.entry_fee = _parse_entry_fee(data.get('entry_fee'))
        session.flush()
        payload = tournament.to_dict()

    logger.info('Tournament %s updated by user %s', tournament_id, user_id)
    return payload


def delete_tournament(tournament_id, user_id):
    """Soft-delete a tournament together with everything it owns."""
    with transaction() as session:
        tournament = owned_tournament(session, tournament_id, user_id, lock=True)
        tournament.is_deleted = True
        for model in (TournamentEntry, Match, MatchResult, TournamentBracket):
            session.query(model).filter_by(
                tournament_id=tournament.id, is_deleted=False,
            ).update({'is_deleted': True})
        session.flush()
        payload = tournament.to_dict()

    logger.info('Tournament %s soft deleted by user %s', tournament_id, user_id)
    return payload


def start_tournament(tournament_id, user_id):
    with transaction() as session:
        tournament = owned_tournament(session, tournament_id, user_id)
        if tournament.status in {'completed', 'cancelled'}:
            raise ValidationError('Tournament has already ended')
        tournament.status = 'active'
        tournament.start_date = utcnow_naive()
        session.flush()
        payload = tournament.to_dict()

    logger.info('Tournament %s started by user %s', tournament_id, user_id)
    return payload


def end_tournament(tournament_id, user_id):
    with transaction() as session:
        tournament = owned_tournament(session, tournament_id, user_id)
        if tournament.status == 'cancelled':
            raise ValidationError('Tournament was cancelled')
        tournament.status = 'completed'
        tournament.end_date = utcnow_naive()
        session.flush()
        payload = tournament.to_dict()

    logger.info('Tournament %s ended by user %s', tournament_id, user_id)
    return payload


def generate_tournament_url(tournament_id, user_id):
    with transaction() as session:
        tournament = owned_tournament(session, tournament_id, user_id)
        base_url = str(current_app.config.get('FRONTEND_URL') or '').rstrip('/')
        url = f'{base_url}/bracket/{tournament.id}'
        tournament.share_url = url

    logger.info('Tournament URL generated for %s by user %s', tournament_id, user_id)
    return url
