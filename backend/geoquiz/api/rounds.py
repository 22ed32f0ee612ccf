from flask import Blueprint, jsonify, request

from geoquiz.api import current_user_id, team_session_id
from geoquiz.services.games import guesses as guess_service, rounds as round_service


rounds = Blueprint('rounds', __name__)


@rounds.route('/<int:round_id>', methods=['PATCH'])
def update_round(round_id):
    data = request.get_json(silent=True) or {}
    round_ = round_service.update_time_limit(round_id, current_user_id(), data.get('time_limit'))
    return jsonify(round_.to_dict())


@rounds.route('/<int:round_id>/guesses', methods=['POST'])
def submit_guess(round_id):
    """Admit a guess. Only the id comes back; results wait for the reveal."""
    data = request.get_json(silent=True) or {}
    guess = guess_service.submit_guess(round_id, team_session_id(), data)
    return jsonify({'guess_id': guess.id}), 201


@rounds.route('/<int:round_id>/guesses', methods=['GET'])
def get_round_guesses(round_id):
    return jsonify(guess_service.guesses_for_round(round_id, current_user_id(), team_session_id()))


@rounds.route('/<int:round_id>/guesses/mine', methods=['GET'])
def get_my_guess(round_id):
    return jsonify(guess_service.my_guess(round_id, team_session_id()))
