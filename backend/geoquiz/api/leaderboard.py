from flask import Blueprint, jsonify, request

from geoquiz.api import current_user_id, team_session_id
from geoquiz.services.games import leaderboard as leaderboard_service
from geoquiz.services.games.errors import ValidationError


leaderboard = Blueprint('leaderboard', __name__)


@leaderboard.route('/<int:game_id>/leaderboard', methods=['GET'])
def get_leaderboard(game_id):
    limit = request.args.get('limit')
    if limit is not None:
        try:
            limit = int(limit)
        except ValueError:
            raise ValidationError('limit must be an integer')
    return jsonify(leaderboard_service.get_leaderboard(game_id, current_user_id(), team_session_id(), limit=limit))


@leaderboard.route('/<int:game_id>/leaderboard/teams/<int:team_id>', methods=['GET'])
def get_team_position(game_id, team_id):
    return jsonify(leaderboard_service.get_team_position(game_id, team_id, current_user_id(), team_session_id()))


@leaderboard.route('/<int:game_id>/leaderboard/teams/<int:team_id>/breakdown', methods=['GET'])
def get_team_breakdown(game_id, team_id):
    return jsonify(leaderboard_service.get_team_breakdown(game_id, team_id, current_user_id(), team_session_id()))
