"""Round lifecycle: pending -> showing -> guessing -> reveal -> completed.

Transitions act on the game's current round, are reserved for the game's
moderator and only run while the game is ``playing``. Each status change is
a compare-and-set ``UPDATE ... WHERE status IN (...)``, so a repeated or
concurrent command finds no matching row and fails with ``InvalidState``
instead of applying its effects twice.
"""

from flask import current_app

from geoquiz import db
from geoquiz.models import Game, Guess, Round, Team
from . import clock
from .errors import InvalidState, NotFound
from .geo import format_bearing, format_bearing_full
from .lifecycle import get_game, require_moderator, validate_time_limit
from .notify import emit_state_update

# status -> statuses it may be entered from
TRANSITIONS = {
    'showing': ('pending',),
    'guessing': ('showing',),
    'reveal': ('showing', 'guessing'),
    'completed': ('reveal',),
}


def current_round(game: Game):
    return Round.query.filter_by(game_id=game.id, round_number=game.current_round_index + 1).first()


def _command_round(game_id, user_id, verb):
    game = get_game(game_id)
    require_moderator(game, user_id)
    if game.status != 'playing':
        raise InvalidState('Game must be playing')
    round_ = current_round(game)
    if not round_:
        raise InvalidState(f'No current round to {verb}')
    return game, round_


def _advance(round_, new_status, **values):
    allowed_from = TRANSITIONS[new_status]
    if round_.status not in allowed_from:
        raise InvalidState(
            f'Round {round_.round_number} is {round_.status}; '
            f'must be {" or ".join(allowed_from)} to move to {new_status}'
        )
    updated = (
        Round.query
        .filter(Round.id == round_.id, Round.status.in_(allowed_from))
        .update({'status': new_status, **values}, synchronize_session='fetch')
    )
    if updated != 1:
        db.session.rollback()
        raise InvalidState(f'Round {round_.round_number} changed concurrently')


def start_round(game_id, user_id) -> Round:
    game, round_ = _command_round(game_id, user_id, 'start')
    _advance(round_, 'showing', started_at=clock.now_ms())
    db.session.commit()
    current_app.logger.info(f"[round-start] game={game.id} round={round_.round_number} mode={round_.mode}")
    emit_state_update(game)
    return round_


def start_countdown(game_id, user_id) -> Round:
    game, round_ = _command_round(game_id, user_id, 'start countdown')
    deadline = clock.now_ms() + round_.time_limit * 1000
    _advance(round_, 'guessing', countdown_ends_at=deadline)
    db.session.commit()
    current_app.logger.info(
        f"[round-countdown] game={game.id} round={round_.round_number} deadline={deadline}"
    )
    emit_state_update(game)
    return round_


def reveal_round(game_id, user_id) -> Round:
    """Reveal the round and credit each guess's stored score to its team."""
    game, round_ = _command_round(game_id, user_id, 'reveal')
    _advance(round_, 'reveal', revealed_at=clock.now_ms())
    guesses = Guess.query.filter_by(round_id=round_.id).all()
    for guess in guesses:
        Team.query.filter_by(id=guess.team_id).update(
            {Team.score: Team.score + guess.score}, synchronize_session=False
        )
    db.session.commit()
    current_app.logger.info(
        f"[round-reveal] game={game.id} round={round_.round_number} credited_guesses={len(guesses)}"
    )
    emit_state_update(game)
    return round_


def complete_round(game_id, user_id) -> dict:
    game, round_ = _command_round(game_id, user_id, 'complete')
    index = game.current_round_index
    now = clock.now_ms()
    _advance(round_, 'completed', completed_at=now)

    has_next = Round.query.filter_by(game_id=game.id, round_number=round_.round_number + 1).first() is not None
    if has_next:
        values = {'current_round_index': index + 1}
    else:
        values = {'status': 'finished', 'finished_at': now}
    updated = (
        Game.query
        .filter(Game.id == game.id, Game.status == 'playing', Game.current_round_index == index)
        .update(values, synchronize_session='fetch')
    )
    if updated != 1:
        db.session.rollback()
        raise InvalidState('Game changed concurrently')
    db.session.commit()

    if has_next:
        current_app.logger.info(f"[next_round] game={game.id} advance round {index + 1} -> {index + 2}")
    else:
        current_app.logger.info(f"[finish] game={game.id} finished at round={round_.round_number}")
    emit_state_update(game)
    result = {'round_id': round_.id, 'has_next_round': has_next}
    if has_next:
        result['next_round_number'] = round_.round_number + 1
    return result


def update_time_limit(round_id, user_id, seconds) -> Round:
    round_ = db.session.get(Round, round_id)
    if not round_:
        raise NotFound('Round not found')
    game = get_game(round_.game_id)
    require_moderator(game, user_id)
    if round_.status not in ('pending', 'showing'):
        raise InvalidState('Cannot change time limit after countdown started')
    round_.time_limit = validate_time_limit(seconds)
    db.session.commit()
    current_app.logger.info(f"[round-time-limit] round={round_.id} time_limit={round_.time_limit}")
    emit_state_update(game)
    return round_


def list_rounds(game_id):
    game = get_game(game_id)
    return Round.query.filter_by(game_id=game.id).order_by(Round.round_number).all()


def _location_view(round_: Round) -> dict:
    location = round_.location
    revealed = round_.is_revealed
    view = {
        'id': location.id,
        'hint': location.hint,
        'difficulty': location.difficulty,
        'category': location.category,
    }
    # The name is the answer in multiple choice
    if round_.mode != 'multipleChoice' or revealed:
        view['name'] = location.name
    if revealed:
        view.update({
            'latitude': location.latitude,
            'longitude': location.longitude,
            'utm_zone': location.utm_zone,
            'utm_easting': location.utm_easting,
            'utm_northing': location.utm_northing,
        })

    if round_.mode in ('imageToUtm', 'multipleChoice'):
        view['image_urls'] = location.images
    if round_.mode == 'utmToLocation':
        view.update({
            'utm_zone': location.utm_zone,
            'utm_easting': location.utm_easting,
            'utm_northing': location.utm_northing,
        })
    if round_.mode == 'directionDistance':
        view.update({
            'bearing_degrees': location.bearing_degrees,
            'bearing_label': format_bearing(location.bearing_degrees),
            'bearing_label_full': format_bearing_full(location.bearing_degrees),
            'distance_meters': location.distance_meters,
            'start_point_name': location.start_point_name,
            'start_point_image_urls': location.start_point_images,
            'start_point_latitude': location.start_point_latitude,
            'start_point_longitude': location.start_point_longitude,
        })
    if round_.mode == 'multipleChoice':
        view['mc_options'] = round_.shuffled_options
        if revealed:
            view['mc_correct_index'] = round_.mc_correct_index
    return view


def round_view(round_: Round) -> dict:
    guess_count = round_.guesses.count()
    total_teams = Team.query.filter_by(game_id=round_.game_id, is_active=True).count()
    payload = round_.to_dict()
    payload.update({
        'location': _location_view(round_) if round_.location else None,
        'guess_count': guess_count,
        'total_teams': total_teams,
        'all_teams_guessed': guess_count >= total_teams,
    })
    return payload


def get_current_round(game_id):
    game = get_game(game_id)
    round_ = current_round(game)
    return round_view(round_) if round_ else None
