from flask import Blueprint, request, jsonify

from tournament_api.auth_utils import admin_required, login_required
from tournament_api.services import users as users_service

users_bp = Blueprint('users', __name__)


def _json_payload():
    data = request.get_json(silent=True) or {}
    return data if isinstance(data, dict) else None


@users_bp.route('/register', methods=['POST'])
def register():
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    result = users_service.register(data)
    return jsonify({'success': True, 'message': 'User registered successfully', **result}), 201


@users_bp.route('/login', methods=['POST'])
def login():
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    result = users_service.login(data.get('username'), data.get('password'))
    return jsonify({'success': True, 'message': 'Login successful', **result})


@users_bp.route('/admin-login', methods=['POST'])
def admin_login():
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    result = users_service.admin_login(data.get('password'))
    return jsonify({'success': True, 'message': 'Admin login successful', **result})


@users_bp.route('/profile', methods=['GET'])
@login_required
def profile():
    return jsonify({'success': True, 'user': users_service.get_user_by_id(request.current_user.id)})


@users_bp.route('/update/<int:user_id>', methods=['PUT'])
@login_required
def update_user(user_id):
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    user = users_service.update_user(user_id, data, request.current_user)
    return jsonify({'success': True, 'message': 'User updated successfully', 'user': user})


@users_bp.route('/delete/<int:user_id>', methods=['DELETE'])
@login_required
def delete_user(user_id):
    user = users_service.delete_user(user_id, request.current_user)
    return jsonify({'success': True, 'message': 'User deleted successfully', 'user': user})


@users_bp.route('/list', methods=['GET'])
@admin_required
def list_users():
    users = users_service.get_all_users()
    return jsonify({'success': True, 'users': users, 'count': len(users)})
