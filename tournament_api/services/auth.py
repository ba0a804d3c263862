"""Single sign-on and refresh-token sessions."""
import logging
import re
import secrets

from flask import current_app

from tournament_api.app import db
from tournament_api.auth_utils import decode_refresh_token, generate_refresh_token, generate_token
from tournament_api.database import transaction
from tournament_api.errors import NotFoundError, UnauthorizedError, ValidationError
from tournament_api.models import User, UserRefreshToken
from tournament_api.time_utils import has_expired, naive_utc_in, utcnow_naive

logger = logging.getLogger(__name__)


def _normalize_username_base(raw_value):
    cleaned = re.sub(r'[^a-zA-Z0-9_]+', '', str(raw_value or '').strip().lower())
    if not cleaned:
        cleaned = f'user{secrets.randbelow(100000):05d}'
    if cleaned[0].isdigit():
        cleaned = f'u_{cleaned}'
    return cleaned[:70]


def _build_unique_username(session, raw_value):
    base = _normalize_username_base(raw_value)
    candidate = base
    suffix = 1
    while session.query(User.id).filter_by(username=candidate).first():
        suffix += 1
        candidate = f'{base[:max(1, 79 - len(str(suffix)))]}{suffix}'
    return candidate


def _store_refresh_token(session, user):
    """Issue a refresh token; each user keeps only the latest one."""
    token = generate_refresh_token(user)
    expires_at = naive_utc_in(days=current_app.config.get('REFRESH_TOKEN_EXPIRATION_DAYS', 7))
    row = session.query(UserRefreshToken).filter_by(user_id=user.id).first()
    if row is None:
        row = UserRefreshToken(user_id=user.id)
        session.add(row)
    row.token = token
    row.expires_at = expires_at
    return token


def sso_login(data):
    uid = str(data.get('user_id') or '').strip()
    email = str(data.get('email') or '').strip().lower()
    name = str(data.get('name') or '').strip()[:100]
    picture = str(data.get('image_url') or '').strip()
    if not uid or not email or not name:
        raise ValidationError('Missing required fields: user_id, email, name')

    with transaction() as session:
        user = session.query(User).filter_by(email=email, is_deleted=False).first()
        created = user is None
        if created:
            user = User(
                username=_build_unique_username(session, name),
                email=email,
                role='user',
            )
            session.add(user)
        elif not user.is_active:
            raise UnauthorizedError('User not found or inactive')
        user.name = name
        user.profile_picture = picture
        user.google_uid = uid
        user.last_login = utcnow_naive()
        session.flush()

        refresh = _store_refresh_token(session, user)
        payload = {
            'user': user.to_dict(),
            'token': generate_token(user),
            'refreshToken': refresh,
        }

    logger.info('SSO login for user %s (%s)', payload['user']['id'], 'new' if created else 'existing')
    return payload


def refresh_token(raw_token):
    token = str(raw_token or '').strip()
    if not token:
        raise ValidationError('Refresh token is required')
    claims = decode_refresh_token(token)
    if claims is None:
        raise UnauthorizedError('Invalid or expired refresh token')

    row = db.session.query(UserRefreshToken).filter_by(
        user_id=claims.get('user_id'), token=token,
    ).first()
    if row is None or has_expired(row.expires_at):
        raise UnauthorizedError('Invalid or expired refresh token')
    user = row.user
    if user is None or user.is_deleted or not user.is_active:
        raise UnauthorizedError('Invalid or expired refresh token')

    logger.info('Access token refreshed for user %s', user.id)
    return {'user': user.to_dict(), 'token': generate_token(user)}


def logout(user_id):
    with transaction() as session:
        session.query(UserRefreshToken).filter_by(user_id=user_id).delete()
    logger.info('User %s logged out', user_id)


def verify_user(user_id):
    user = db.session.query(User).filter_by(
        id=user_id, is_deleted=False, is_active=True,
    ).first()
    if user is None:
        raise NotFoundError('User not found')
    return user.to_dict()
