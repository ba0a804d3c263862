from datetime import datetime, timedelta, timezone
from functools import wraps
from flask import request, jsonify, current_app
import jwt
from tournament_api.app import db
from tournament_api.models import User


def _refresh_secret():
    return current_app.config.get('JWT_REFRESH_SECRET') or current_app.config['SECRET_KEY']


def generate_token(user):
    """Generate a short-lived JWT access token for a user."""
    payload = {
        'user_id': user.id,
        'username': user.username,
        'role': user.role,
        'exp': datetime.now(timezone.utc) + timedelta(
            hours=current_app.config.get('JWT_EXPIRATION_HOURS', 24)
        ),
    }
    return jwt.encode(payload, current_app.config['SECRET_KEY'], algorithm='HS256')


def generate_refresh_token(user):
    payload = {
        'user_id': user.id,
        'type': 'refresh',
        'exp': datetime.now(timezone.utc) + timedelta(
            days=current_app.config.get('REFRESH_TOKEN_EXPIRATION_DAYS', 7)
        ),
    }
    return jwt.encode(payload, _refresh_secret(), algorithm='HS256')


def decode_refresh_token(token):
    """Return the refresh token payload, or None when it is invalid or expired."""
    try:
        payload = jwt.decode(token, _refresh_secret(), algorithms=['HS256'])
    except jwt.InvalidTokenError:
        return None
    if payload.get('type') != 'refresh':
        return None
    return payload


def _normalize_bearer_token(raw_token):
    token = str(raw_token or '').strip()
    if token.startswith('Bearer '):
        token = token.split(' ', 1)[1].strip()
    return token


def _decode_user_from_token(token):
    normalized = _normalize_bearer_token(token)
    if not normalized:
        return None, 'Authentication required'
    try:
        payload = jwt.decode(
            normalized, current_app.config['SECRET_KEY'], algorithms=['HS256']
        )
    except jwt.ExpiredSignatureError:
        return None, 'Token expired'
    except jwt.InvalidTokenError:
        return None, 'Invalid token'
    user_id = payload.get('user_id')
    user = db.session.get(User, user_id) if user_id is not None else None
    if not user or user.is_deleted or not user.is_active:
        return None, 'User not found or inactive'
    return user, None


def login_required(f):
    """Decorator to require authentication on a route."""
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get('Authorization', '')
        user, error = _decode_user_from_token(auth_header)
        if error:
            return jsonify({'error': error}), 401
        request.current_user = user
        return f(*args, **kwargs)
    return decorated


def admin_required(f):
    """Decorator to require an authenticated admin user on a route."""
    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not request.current_user.is_admin:
            return jsonify({'error': 'Admin access required'}), 403
        return f(*args, **kwargs)
    return decorated
