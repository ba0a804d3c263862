from flask import Blueprint, request, jsonify

from tournament_api.auth_utils import login_required
from tournament_api.services import tournaments as tournament_service
from tournament_api.services.bracket_builder import build_bracket
from tournament_api.services.bracket_reader import get_bracket
from tournament_api.services.entries import add_player
from tournament_api.services.match_ledger import submit_result

tournaments_bp = Blueprint('tournaments', __name__)


def _json_payload():
    data = request.get_json(silent=True) or {}
    return data if isinstance(data, dict) else None


# Public

@tournaments_bp.route('/view/<int:tournament_id>', methods=['GET'])
def view_tournament(tournament_id):
    return jsonify({'success': True, 'tournament': tournament_service.get_tournament(tournament_id)})


@tournaments_bp.route('/bracket/<int:tournament_id>', methods=['GET'])
def tournament_bracket(tournament_id):
    return jsonify({'success': True, **get_bracket(tournament_id)})


# Owner

@tournaments_bp.route('/create', methods=['POST'])
@login_required
def create_tournament():
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    tournament = tournament_service.create_tournament(data, request.current_user.id)
    return jsonify({
        'success': True,
        'message': 'Tournament created successfully',
        'tournament': tournament,
    }), 201


@tournaments_bp.route('/list', methods=['GET'])
@login_required
def list_tournaments():
    tournaments = tournament_service.list_tournaments(request.current_user.id)
    return jsonify({'success': True, 'tournaments': tournaments, 'count': len(tournaments)})


@tournaments_bp.route('/details/<int:tournament_id>', methods=['GET'])
@login_required
def tournament_details(tournament_id):
    details = tournament_service.get_tournament_details(tournament_id)
    return jsonify({'success': True, 'tournament': details})


@tournaments_bp.route('/update/<int:tournament_id>', methods=['PUT'])
@login_required
def update_tournament(tournament_id):
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    tournament = tournament_service.update_tournament(tournament_id, data, request.current_user.id)
    return jsonify({
        'success': True,
        'message': 'Tournament updated successfully',
        'tournament': tournament,
    })


@tournaments_bp.route('/delete/<int:tournament_id>', methods=['DELETE'])
@login_required
def delete_tournament(tournament_id):
    tournament = tournament_service.delete_tournament(tournament_id, request.current_user.id)
    return jsonify({
        'success': True,
        'message': 'Tournament deleted successfully',
        'tournament': tournament,
    })


@tournaments_bp.route('/start/<int:tournament_id>', methods=['POST'])
@login_required
def start_tournament(tournament_id):
    tournament = tournament_service.start_tournament(tournament_id, request.current_user.id)
    return jsonify({
        'success': True,
        'message': 'Tournament started successfully',
        'tournament': tournament,
    })


@tournaments_bp.route('/end/<int:tournament_id>', methods=['POST'])
@login_required
def end_tournament(tournament_id):
    tournament = tournament_service.end_tournament(tournament_id, request.current_user.id)
    return jsonify({
        'success': True,
        'message': 'Tournament ended successfully',
        'tournament': tournament,
    })


@tournaments_bp.route('/generate-url/<int:tournament_id>', methods=['POST'])
@login_required
def generate_url(tournament_id):
    url = tournament_service.generate_tournament_url(tournament_id, request.current_user.id)
    return jsonify({'success': True, 'url': url})


@tournaments_bp.route('/bracket/<int:tournament_id>', methods=['POST'])
@login_required
def save_bracket(tournament_id):
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    result = build_bracket(
        tournament_id,
        data.get('bracket'),
        data.get('players'),
        request.current_user.id,
    )
    return jsonify({'message': 'Bracket saved successfully', **result})


@tournaments_bp.route('/match-result/<int:tournament_id>', methods=['POST'])
@login_required
def match_result(tournament_id):
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    missing = [field for field in ('round', 'matchIndex', 'score1', 'score2') if data.get(field) is None]
    if missing:
        return jsonify({'error': f'Missing required fields: {", ".join(missing)}'}), 400
    result = submit_result(
        tournament_id,
        data['round'],
        data['matchIndex'],
        data['score1'],
        data['score2'],
        request.current_user.id,
    )
    return jsonify({'success': True, 'message': 'Match result updated successfully', 'result': result})


@tournaments_bp.route('/players/<int:tournament_id>', methods=['POST'])
@login_required
def add_tournament_player(tournament_id):
    data = _json_payload()
    if data is None:
        return jsonify({'error': 'Invalid JSON payload'}), 400
    entry = add_player(tournament_id, data, request.current_user.id)
    return jsonify({'success': True, 'message': 'Player added successfully', 'entry': entry}), 201
