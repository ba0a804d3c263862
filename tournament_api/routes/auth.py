from flask import Blueprint, request, jsonify

from tournament_api.auth_utils import login_required
from tournament_api.services import auth as auth_service

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/sso', methods=['POST'])
def sso_login():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({'error': 'Invalid JSON payload'}), 400
    result = auth_service.sso_login(data)
    return jsonify({'success': True, 'message': 'SSO login successful', **result})


@auth_bp.route('/refresh-token', methods=['POST'])
def refresh_token():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({'error': 'Invalid JSON payload'}), 400
    result = auth_service.refresh_token(data.get('refreshToken'))
    return jsonify({'success': True, 'message': 'Token refreshed successfully', **result})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    auth_service.logout(request.current_user.id)
    return jsonify({'success': True, 'message': 'Logged out successfully'})


@auth_bp.route('/profile', methods=['GET'])
@login_required
def profile():
    user = auth_service.verify_user(request.current_user.id)
    return jsonify({'success': True, 'user': user})
