"""Entry registry: player entries of a tournament, keyed by normalized name."""
import logging
import re

from sqlalchemy import func

from tournament_api.database import transaction
from tournament_api.errors import ValidationError
from tournament_api.models import BYE, TBD, TournamentEntry

logger = logging.getLogger(__name__)

_MAX_NAME_LENGTH = 100
_WHITESPACE_RE = re.compile(r'\s+')


def clean_player_name(raw_name):
    """Trim and collapse whitespace; this is the stored display name."""
    return _WHITESPACE_RE.sub(' ', str(raw_name or '').strip())[:_MAX_NAME_LENGTH]


def normalize_player_name(raw_name):
    """Key used to match a name against existing entries of a tournament."""
    return clean_player_name(raw_name).casefold()


def is_bye_name(raw_name):
    return clean_player_name(raw_name) == BYE


def is_placeholder_name(raw_name):
    name = clean_player_name(raw_name)
    return not name or name == TBD


def parse_seed(raw_seed):
    if raw_seed is None or raw_seed == '':
        return 0
    if isinstance(raw_seed, bool):
        raise ValidationError('Seed must be a whole number')
    try:
        seed = int(raw_seed)
    except (TypeError, ValueError):
        raise ValidationError('Seed must be a whole number')
    if seed < 0 or (isinstance(raw_seed, float) and raw_seed != seed):
        raise ValidationError('Seed must be a whole number')
    return seed


def active_entries(session, tournament_id):
    return session.query(TournamentEntry).filter_by(
        tournament_id=tournament_id, is_deleted=False,
    ).order_by(
        TournamentEntry.seed_number.is_(None),
        TournamentEntry.seed_number.asc(),
        TournamentEntry.id.asc(),
    ).all()


def player_count(session, tournament_id):
    return session.query(func.count(TournamentEntry.id)).filter_by(
        tournament_id=tournament_id, is_deleted=False,
    ).scalar() or 0


def find_or_create_entry(session, tournament_id, raw_name, seed):
    """Return ``(entry, created)`` for ``raw_name`` in this tournament.

    An existing row with the same normalized name is reused even when it was
    soft-deleted: it is reactivated and its seed and display name overwritten.
    """
    name = clean_player_name(raw_name)
    if not name:
        raise ValidationError('Player name is required')
    name_key = normalize_player_name(name)
    entry = session.query(TournamentEntry).filter_by(
        tournament_id=tournament_id, name_key=name_key,
    ).first()
    if entry is None:
        entry = TournamentEntry(
            tournament_id=tournament_id,
            player_name=name,
            name_key=name_key,
            seed_number=seed,
        )
        session.add(entry)
        session.flush()
        return entry, True

    entry.player_name = name
    entry.seed_number = seed
    entry.is_deleted = False
    return entry, False


def add_player(tournament_id, player_data, user_id):
    """Register one player outside of a bracket build."""
    from tournament_api.services.tournaments import owned_tournament

    name = clean_player_name(player_data.get('name'))
    if not name:
        raise ValidationError('Player name is required')
    if is_bye_name(name) or name == TBD:
        raise ValidationError(f'"{name}" is reserved and cannot be used as a player name')

    with transaction() as session:
        tournament = owned_tournament(session, tournament_id, user_id, lock=True)
        existing = session.query(TournamentEntry.id).filter_by(
            tournament_id=tournament.id,
            name_key=normalize_player_name(name),
            is_deleted=False,
        ).first()
        if existing:
            raise ValidationError('Player already added')
        count = player_count(session, tournament.id)
        if count >= tournament.max_players:
            raise ValidationError('Tournament is full')
        seed = parse_seed(player_data.get('seed')) or count + 1
        entry, _ = find_or_create_entry(session, tournament.id, name, seed)
        session.flush()
        payload = entry.to_dict()

    logger.info('Player %s added to tournament %s by user %s', name, tournament_id, user_id)
    return payload
