import json
from tournament_api.app import db
from tournament_api.time_utils import utcnow_naive

# Slot sentinels stored in match.player{1,2}_name when the slot has no entry.
BYE = 'BYE'
TBD = 'TBD'

TOURNAMENT_TYPES = {'single_elimination', 'double_elimination', 'round_robin'}


def _safe_json(raw_value, fallback=None):
    if fallback is None:
        fallback = {}
    if not raw_value:
        return fallback
    try:
        return json.loads(raw_value)
    except (TypeError, ValueError):
        return fallback


def _isoformat(value):
    return value.isoformat() if value else None


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True)
    password_hash = db.Column(db.String(256), nullable=True)
    name = db.Column(db.String(100), default='')
    google_uid = db.Column(db.String(255), nullable=True)
    profile_picture = db.Column(db.Text, default='')
    role = db.Column(db.String(20), default='user', nullable=False)  # user, admin
    last_login = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_deleted = db.Column(db.Boolean, default=False, nullable=False)
    created_on = db.Column(db.DateTime, default=lambda: utcnow_naive())
    modified_on = db.Column(db.DateTime, default=lambda: utcnow_naive(), onupdate=lambda: utcnow_naive())

    @property
    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        return {
            'id': self.id, 'username': self.username, 'email': self.email,
            'name': self.name, 'profile_picture': self.profile_picture,
            'role': self.role, 'is_admin': self.is_admin,
            'last_login': _isoformat(self.last_login),
            'created_on': _isoformat(self.created_on),
        }


class UserRefreshToken(db.Model):
    """Latest refresh token per user; logging out deletes the row."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), unique=True, nullable=False)
    token = db.Column(db.Text, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_on = db.Column(db.DateTime, default=lambda: utcnow_naive())
    modified_on = db.Column(db.DateTime, default=lambda: utcnow_naive(), onupdate=lambda: utcnow_naive())

    user = db.relationship('User', backref=db.backref('refresh_token', uselist=False))


class Tournament(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default='')
    tournament_type = db.Column(db.String(50), default='single_elimination', nullable=False)
    max_players = db.Column(db.Integer, default=16, nullable=False)
    entry_fee = db.Column(db.Numeric(10, 2), default=0)
    status = db.Column(db.String(20), default='draft', nullable=False)
    # draft, registration, active, completed, cancelled
    start_date = db.Column(db.DateTime, nullable=True)
    end_date = db.Column(db.DateTime, nullable=True)
    share_url = db.Column(db.String(500), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    is_deleted = db.Column(db.Boolean, default=False, nullable=False)
    created_on = db.Column(db.DateTime, default=lambda: utcnow_naive())
    modified_on = db.Column(db.DateTime, default=lambda: utcnow_naive(), onupdate=lambda: utcnow_naive())

    __table_args__ = (
        db.CheckConstraint('max_players > 0', name='ck_tournament_max_players'),
        db.CheckConstraint('entry_fee >= 0', name='ck_tournament_entry_fee'),
        db.Index('ix_tournament_created_by_deleted', 'created_by', 'is_deleted'),
    )

    creator = db.relationship('User', foreign_keys=[created_by], backref='tournaments')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'tournament_type': self.tournament_type,
            'max_players': self.max_players,
            'entry_fee': float(self.entry_fee or 0),
            'status': self.status,
            'start_date': _isoformat(self.start_date),
            'end_date': _isoformat(self.end_date),
            'share_url': self.share_url,
            'created_by': self.created_by,
            'created_by_username': self.creator.username if self.creator else None,
            'created_on': _isoformat(self.created_on),
            'modified_on': _isoformat(self.modified_on),
        }


class TournamentEntry(db.Model):
    """A named player registered in one tournament.

    ``name_key`` is the normalized form of ``player_name``; rebuilding a
    bracket finds entries by it and reactivates soft-deleted rows instead of
    inserting duplicates.
    """
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    player_name = db.Column(db.String(100), nullable=False)
    name_key = db.Column(db.String(100), nullable=False)
    seed_number = db.Column(db.Integer, nullable=True)
    is_deleted = db.Column(db.Boolean, default=False, nullable=False)
    created_on = db.Column(db.DateTime, default=lambda: utcnow_naive())
    modified_on = db.Column(db.DateTime, default=lambda: utcnow_naive(), onupdate=lambda: utcnow_naive())

    __table_args__ = (
        db.UniqueConstraint('tournament_id', 'name_key', name='uq_tournament_entry_name'),
        db.Index('ix_tournament_entry_tournament_deleted', 'tournament_id', 'is_deleted'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'player_name': self.player_name,
            'seed_number': self.seed_number,
            'created_on': _isoformat(self.created_on),
        }

    def to_bracket_dict(self):
        return {'id': self.id, 'name': self.player_name, 'seed': self.seed_number or 0}


class Match(db.Model):
    """One slot pair of the bracket; a NULL player id is a BYE or TBD slot."""
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    round_number = db.Column(db.Integer, nullable=False)
    match_number = db.Column(db.Integer, nullable=False)
    player1_id = db.Column(db.Integer, db.ForeignKey('tournament_entry.id'), nullable=True)
    player2_id = db.Column(db.Integer, db.ForeignKey('tournament_entry.id'), nullable=True)
    player1_name = db.Column(db.String(100), nullable=True)
    player2_name = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(20), default='pending', nullable=False)
    # pending, in_progress, completed, cancelled, bye
    is_deleted = db.Column(db.Boolean, default=False, nullable=False)
    created_on = db.Column(db.DateTime, default=lambda: utcnow_naive())
    modified_on = db.Column(db.DateTime, default=lambda: utcnow_naive(), onupdate=lambda: utcnow_naive())

    __table_args__ = (
        db.UniqueConstraint('tournament_id', 'round_number', 'match_number', name='uq_match_position'),
        db.CheckConstraint('round_number > 0', name='ck_match_round_number'),
        db.CheckConstraint('match_number > 0', name='ck_match_match_number'),
        db.Index('ix_match_tournament_deleted_round', 'tournament_id', 'is_deleted', 'round_number'),
    )

    def has_bye(self):
        return self.player1_name == BYE or self.player2_name == BYE

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'round_number': self.round_number,
            'match_number': self.match_number,
            'player1_id': self.player1_id,
            'player2_id': self.player2_id,
            'player1_name': self.player1_name,
            'player2_name': self.player2_name,
            'status': self.status,
            'created_on': _isoformat(self.created_on),
            'modified_on': _isoformat(self.modified_on),
        }


class MatchResult(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False)
    player1_score = db.Column(db.Integer, default=0, nullable=False)
    player2_score = db.Column(db.Integer, default=0, nullable=False)
    is_deleted = db.Column(db.Boolean, default=False, nullable=False)
    created_on = db.Column(db.DateTime, default=lambda: utcnow_naive())
    modified_on = db.Column(db.DateTime, default=lambda: utcnow_naive(), onupdate=lambda: utcnow_naive())

    __table_args__ = (
        db.CheckConstraint('player1_score >= 0', name='ck_match_result_player1_score'),
        db.CheckConstraint('player2_score >= 0', name='ck_match_result_player2_score'),
        # At most one live result per match; soft-deleted history is unbounded.
        db.Index(
            'ux_match_result_active_match', 'match_id',
            unique=True,
            sqlite_where=db.text('is_deleted = 0'),
            postgresql_where=db.text('NOT is_deleted'),
        ),
        db.Index('ix_match_result_tournament_deleted', 'tournament_id', 'is_deleted'),
    )

    def is_decisive(self):
        return self.player1_score != self.player2_score

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'tournament_id': self.tournament_id,
            'player1_score': self.player1_score,
            'player2_score': self.player2_score,
            'created_on': _isoformat(self.created_on),
            'modified_on': _isoformat(self.modified_on),
        }


class TournamentBracket(db.Model):
    """Denormalized copy of the last submitted bracket shape (audit only)."""
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), unique=True, nullable=False)
    bracket_type = db.Column(db.String(20), default='main', nullable=False)
    bracket_data = db.Column(db.Text, default='[]', nullable=False)
    last_updated_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    is_deleted = db.Column(db.Boolean, default=False, nullable=False)
    created_on = db.Column(db.DateTime, default=lambda: utcnow_naive())
    modified_on = db.Column(db.DateTime, default=lambda: utcnow_naive(), onupdate=lambda: utcnow_naive())

    def bracket(self):
        return _safe_json(self.bracket_data, fallback=[])

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'bracket_type': self.bracket_type,
            'bracket_data': self.bracket(),
            'last_updated_by': self.last_updated_by,
            'modified_on': _isoformat(self.modified_on),
        }
