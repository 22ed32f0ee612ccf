from geoquiz import socketio

NAMESPACE = '/ws'


def game_room(join_code: str) -> str:
    return f"game:{join_code.upper()}"


def emit_state_update(game) -> None:
    """Tell every client watching ``game`` to re-read its state."""
    socketio.emit('state_update', {'game_code': game.join_code, 'game_id': game.id},
                  to=game_room(game.join_code), namespace=NAMESPACE)
