from flask import Blueprint, jsonify, request

from geoquiz.api import current_user_id, team_session_id
from geoquiz.services.games import teams as team_service


teams = Blueprint('teams', __name__)


@teams.route('/join', methods=['POST'])
def join_team():
    data = request.get_json(silent=True) or {}
    team, rejoined = team_service.join_team(
        data.get('join_code'),
        data.get('team_name'),
        team_session_id(create=True),
        user_id=current_user_id(),
    )
    return jsonify({
        'team_id': team.id,
        'game_id': team.game_id,
        'rejoined': rejoined,
    }), 200 if rejoined else 201


@teams.route('/<int:team_id>', methods=['PATCH'])
def rename_team(team_id):
    data = request.get_json(silent=True) or {}
    team = team_service.rename_team(team_id, team_session_id(), data.get('name'))
    return jsonify(team.to_dict())


@teams.route('/<int:team_id>/heartbeat', methods=['POST'])
def heartbeat(team_id):
    team_service.heartbeat(team_id, team_session_id())
    return jsonify({'success': True})


@teams.route('/<int:team_id>/leave', methods=['POST'])
def leave(team_id):
    team_service.set_inactive(team_id, team_session_id())
    return jsonify({'success': True})


@teams.route('/<int:team_id>', methods=['DELETE'])
def remove_team(team_id):
    team_service.remove_team(team_id, current_user_id())
    return jsonify({'success': True})
