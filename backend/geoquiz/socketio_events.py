from flask import current_app, request, session
from flask_socketio import join_room, leave_room, emit
from typing import Dict, Any

from geoquiz import socketio, db
from geoquiz.api import SESSION_KEY
from geoquiz.models import Game, Team
from geoquiz.services.games.notify import NAMESPACE, game_room
from geoquiz.services.games.teams import mark_inactive

# socket id -> {'game_code': ..., 'team_id': ...}
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(*_args):
    """A team whose socket drops is marked inactive, never deleted."""
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx or not ctx.get('team_id'):
        return
    team = db.session.get(Team, ctx['team_id'])
    if team and team.is_active:
        mark_inactive(team)
        current_app.logger.info(f"[disconnect] team={team.id} game_code={ctx.get('game_code')}")


def handle_join_game(data):
    game_code = (data or {}).get('game_code')
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    game_code = game_code.upper()
    ctx = {'game_code': game_code, 'team_id': None}

    team_id = (data or {}).get('team_id')
    if team_id is not None:
        game = Game.query.filter_by(join_code=game_code).first()
        team = db.session.get(Team, team_id) if game else None
        if not team or team.game_id != game.id:
            emit('error', {'message': 'team not found in this game'})
            return
        # Only the session that owns the team may speak for it
        if not session.get(SESSION_KEY) or session.get(SESSION_KEY) != team.session_id:
            emit('error', {'message': 'not your team'})
            return
        ctx['team_id'] = team.id

    room = game_room(game_code)
    join_room(room)
    _sid_to_ctx[_get_sid()] = ctx
    emit('joined', {'room': room})


def handle_leave_game(data):
    game_code = (data or {}).get('game_code')
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = game_room(game_code)
    leave_room(room)
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx.get('game_code') == game_code.upper():
        _sid_to_ctx.pop(_get_sid(), None)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_game', handle_join_game, namespace=namespace)
        socketio.on_event('leave_game', handle_leave_game, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
