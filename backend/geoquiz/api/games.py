from flask import Blueprint, jsonify, request

from geoquiz.api import current_user_id, team_session_id
from geoquiz.services.games import lifecycle, rounds as round_service, teams as team_service


games = Blueprint('games', __name__)


@games.route('', methods=['POST'])
def create_game():
    data = request.get_json(silent=True) or {}
    game = lifecycle.create_game(current_user_id(), data.get('name'), data.get('default_time_limit'))
    return jsonify({
        'game_id': game.id,
        'join_code': game.join_code,
    }), 201


@games.route('/mine', methods=['GET'])
def list_my_games():
    return jsonify([g.to_dict() for g in lifecycle.list_games_for_moderator(current_user_id())])


@games.route('/<int:game_id>', methods=['GET'])
def get_game(game_id):
    return jsonify(lifecycle.game_summary(lifecycle.get_game(game_id)))


@games.route('/code/<string:join_code>', methods=['GET'])
def get_game_by_code(join_code):
    game = lifecycle.get_game_by_code(join_code)
    payload = game.to_dict()
    payload['team_count'] = game.teams.filter_by(is_active=True).count()
    return jsonify(payload)


@games.route('/<int:game_id>/locations', methods=['POST'])
def import_locations(game_id):
    data = request.get_json(silent=True) or {}
    result = lifecycle.import_locations(game_id, current_user_id(), data.get('locations'), data.get('modes'))
    return jsonify(result), 201


@games.route('/<int:game_id>/start', methods=['POST'])
def start_game(game_id):
    return jsonify(lifecycle.start_game(game_id, current_user_id()).to_dict())


@games.route('/<int:game_id>/pause', methods=['POST'])
def pause_game(game_id):
    return jsonify(lifecycle.pause_game(game_id, current_user_id()).to_dict())


@games.route('/<int:game_id>/resume', methods=['POST'])
def resume_game(game_id):
    return jsonify(lifecycle.resume_game(game_id, current_user_id()).to_dict())


@games.route('/<int:game_id>/finish', methods=['POST'])
def finish_game(game_id):
    return jsonify(lifecycle.finish_game(game_id, current_user_id()).to_dict())


# Round lifecycle, always acting on the game's current round

@games.route('/<int:game_id>/round', methods=['GET'])
def get_current_round(game_id):
    return jsonify(round_service.get_current_round(game_id))


@games.route('/<int:game_id>/rounds', methods=['GET'])
def list_rounds(game_id):
    return jsonify([r.to_dict() for r in round_service.list_rounds(game_id)])


@games.route('/<int:game_id>/round/start', methods=['POST'])
def start_round(game_id):
    round_ = round_service.start_round(game_id, current_user_id())
    return jsonify({'round_id': round_.id, 'status': round_.status})


@games.route('/<int:game_id>/round/countdown', methods=['POST'])
def start_countdown(game_id):
    round_ = round_service.start_countdown(game_id, current_user_id())
    return jsonify({'round_id': round_.id, 'status': round_.status, 'countdown_ends_at': round_.countdown_ends_at})


@games.route('/<int:game_id>/round/reveal', methods=['POST'])
def reveal_round(game_id):
    round_ = round_service.reveal_round(game_id, current_user_id())
    return jsonify({'round_id': round_.id, 'status': round_.status})


@games.route('/<int:game_id>/round/complete', methods=['POST'])
def complete_round(game_id):
    return jsonify(round_service.complete_round(game_id, current_user_id()))


# Teams of a game

@games.route('/<int:game_id>/teams', methods=['GET'])
def list_teams(game_id):
    return jsonify([t.to_dict() for t in team_service.list_teams(game_id)])


@games.route('/<int:game_id>/teams/me', methods=['GET'])
def get_my_team(game_id):
    lifecycle.get_game(game_id)
    team = team_service.team_for_session(game_id, team_session_id())
    return jsonify(team.to_dict() if team else None)


@games.route('/<int:game_id>/teams/active-count', methods=['GET'])
def get_active_count(game_id):
    return jsonify({'count': team_service.active_team_count(game_id)})

