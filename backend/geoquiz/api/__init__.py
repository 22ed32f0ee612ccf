import secrets

from flask import current_app, jsonify, session
from flask_login import current_user

from geoquiz import db
from geoquiz.services.games.errors import GameError

SESSION_KEY = 'team_session'


def current_user_id():
    """Id of the logged-in moderator, or None."""
    if current_user.is_authenticated:
        return current_user.id
    return None


def team_session_id(create=False):
    """Anonymous identity stored in the signed session cookie.

    Teams are bound to this value; it is minted on first join.
    """
    sid = session.get(SESSION_KEY)
    if not sid and create:
        sid = secrets.token_urlsafe(24)
        session[SESSION_KEY] = sid
        session.permanent = True
    return sid


def handle_game_error(exc):
    db.session.rollback()
    current_app.logger.info(f"[rejected] kind={exc.kind} message={exc.message}")
    return jsonify(exc.to_dict()), exc.status_code


def register_api(flask_app):
    from geoquiz.api.games import games
    from geoquiz.api.rounds import rounds
    from geoquiz.api.teams import teams
    from geoquiz.api.leaderboard import leaderboard

    flask_app.register_blueprint(games, url_prefix='/api/games')
    flask_app.register_blueprint(leaderboard, url_prefix='/api/games')
    flask_app.register_blueprint(rounds, url_prefix='/api/rounds')
    flask_app.register_blueprint(teams, url_prefix='/api/teams')
    flask_app.register_error_handler(GameError, handle_game_error)
