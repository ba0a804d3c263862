"""User accounts: registration, password and admin login, profile management."""
import hmac
import logging
import re

from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

from tournament_api.app import db
from tournament_api.auth_utils import generate_token
from tournament_api.database import transaction
from tournament_api.errors import ForbiddenError, NotFoundError, UnauthorizedError, ValidationError
from tournament_api.models import User
from tournament_api.time_utils import utcnow_naive

logger = logging.getLogger(__name__)

ADMIN_USERNAME = 'admin'
_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def _password_complexity_error(raw_password):
    password = str(raw_password or '')
    if len(password) < 8:
        return 'Password must be at least 8 characters long'
    if not re.search(r'[A-Za-z]', password) or not re.search(r'\d', password):
        return 'Password must include at least one letter and one number'
    return None


def _clean_username(raw_value):
    username = str(raw_value or '').strip()
    if len(username) > 100:
        raise ValidationError('Username must be 100 characters or fewer')
    return username


def _clean_email(raw_value):
    email = str(raw_value or '').strip().lower()
    if email and not _EMAIL_RE.match(email):
        raise ValidationError('Invalid email address')
    return email


def register(data):
    username = _clean_username(data.get('username'))
    email = _clean_email(data.get('email'))
    password = data.get('password')
    if not username or not email or not password:
        raise ValidationError('Username, email, and password are required')
    password_error = _password_complexity_error(password)
    if password_error:
        raise ValidationError(password_error)

    with transaction() as session:
        if session.query(User.id).filter(
            (User.username == username) | (User.email == email)
        ).first():
            raise ValidationError('User already exists')
        user = User(
            username=username,
            email=email,
            password_hash=generate_password_hash(password),
            name=str(data.get('name') or '').strip()[:100],
            role='user',
        )
        session.add(user)
        session.flush()
        payload = {'user': user.to_dict(), 'token': generate_token(user)}

    logger.info('User %s (%s) registered', payload['user']['id'], username)
    return payload


def login(username, password):
    username = str(username or '').strip()
    if not username or not password:
        raise ValidationError('Username and password are required')

    with transaction() as session:
        user = session.query(User).filter_by(
            username=username, is_deleted=False, is_active=True,
        ).first()
        if not user or not user.password_hash or not check_password_hash(user.password_hash, password):
            raise UnauthorizedError('Invalid credentials')
        user.last_login = utcnow_naive()
        payload = {'user': user.to_dict(), 'token': generate_token(user)}

    logger.info('User %s (%s) logged in', payload['user']['id'], username)
    return payload


def admin_login(password):
    """Exchange the configured admin password for an admin user's token.

    The admin account is created on first use so its id can own tournaments.
    """
    expected = str(current_app.config.get('ADMIN_PASSWORD') or '')
    if not expected or not hmac.compare_digest(str(password or ''), expected):
        raise UnauthorizedError('Invalid admin credentials')

    with transaction() as session:
        user = session.query(User).filter_by(username=ADMIN_USERNAME).first()
        if user is None:
            user = User(username=ADMIN_USERNAME, name='Administrator', role='admin')
            session.add(user)
        user.role = 'admin'
        user.is_active = True
        user.is_deleted = False
        user.last_login = utcnow_naive()
        session.flush()
        payload = {'user': user.to_dict(), 'token': generate_token(user)}

    logger.info('Admin logged in')
    return payload


def get_user_by_id(user_id):
    user = db.session.query(User).filter_by(id=user_id, is_deleted=False).first()
    if user is None:
        raise NotFoundError('User not found')
    return user.to_dict()


def get_all_users():
    users = User.query.filter_by(is_deleted=False).order_by(
        User.created_on.desc(), User.id.desc(),
    ).all()
    return [user.to_dict() for user in users]


def _check_can_manage(requester, user_id):
    if requester.id != user_id and not requester.is_admin:
        raise ForbiddenError('Not authorized to manage this user')


def update_user(user_id, data, requester):
    _check_can_manage(requester, user_id)
    with transaction() as session:
        user = session.query(User).filter_by(id=user_id, is_deleted=False).first()
        if user is None:
            raise NotFoundError('User not found')
        if 'username' in data:
            username = _clean_username(data.get('username'))
            if not username:
                raise ValidationError('Username cannot be empty')
            if session.query(User.id).filter(User.username == username, User.id != user.id).first():
                raise ValidationError('Username already taken')
            user.username = username
        if 'email' in data:
            email = _clean_email(data.get('email'))
            if not email:
                raise ValidationError('Email cannot be empty')
            if session.query(User.id).filter(User.email == email, User.id != user.id).first():
                raise ValidationError('Email already registered')
            user.email = email
        if 'name' in data:
            user.name = str(data.get('name') or '').strip()[:100]
        session.flush()
        payload = user.to_dict()

    logger.info('User %s updated by user %s', user_id, requester.id)
    return payload


def delete_user(user_id, requester):
    _check_can_manage(requester, user_id)
    with transaction() as session:
        user = session.query(User).filter_by(id=user_id, is_deleted=False).first()
        if user is None:
            raise NotFoundError('User not found')
        user.is_deleted = True
        if user.refresh_token is not None:
            session.delete(user.refresh_token)
        payload = {'id': user.id, 'username': user.username}

    logger.info('User %s soft deleted by user %s', user_id, requester.id)
    return payload
