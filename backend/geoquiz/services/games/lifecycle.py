"""Game-level lifecycle: creation, bulk import, start/pause/resume/finish.

Every mutation here runs as one unit: validate everything, write, then
commit once. Raising a ``GameError`` before the commit leaves the database
untouched.
"""

import json
import math

from flask import current_app

from geoquiz import db
from geoquiz.models import Game, Location, Round, Team, ROUND_MODES, DIFFICULTIES
from . import clock
from .errors import InvalidState, NotFound, Unauthenticated, Unauthorized, ValidationError
from .geo import is_valid_bearing, parse_utm_zone
from .notify import emit_state_update
from .shuffle import build_mc_options

MC_WRONG_OPTION_COUNT = 3


def get_game(game_id) -> Game:
    game = db.session.get(Game, game_id)
    if not game:
        raise NotFound('Game not found')
    return game


def get_game_by_code(join_code: str) -> Game:
    game = Game.query.filter_by(join_code=(join_code or '').strip().upper()).first()
    if not game:
        raise NotFound('Game not found')
    return game


def require_moderator(game: Game, user_id) -> None:
    """The single capability check shared by every moderator command."""
    if user_id is None:
        raise Unauthenticated()
    if game.moderator_id != user_id:
        raise Unauthorized('Only the moderator can do this')


def require_game_access(game: Game, user_id, session_id) -> None:
    """Readers of results must be the moderator or a team of the game."""
    if user_id is not None and game.moderator_id == user_id:
        return
    if session_id and Team.query.filter_by(game_id=game.id, session_id=session_id).first():
        return
    if user_id is None and not session_id:
        raise Unauthenticated()
    raise Unauthorized('Only the moderator or teams of this game can see this')


def validate_time_limit(value) -> int:
    cfg = current_app.config
    low = int(cfg.get('MIN_TIME_LIMIT_SEC', 5))
    high = int(cfg.get('MAX_TIME_LIMIT_SEC', 300))
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError('Time limit must be a number of seconds')
    try:
        seconds = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError('Time limit must be a number of seconds')
    if isinstance(value, bool) or seconds != value or not low <= seconds <= high:
        raise ValidationError(f'Time limit must be between {low} and {high} seconds')
    return seconds


def create_game(user_id, name, default_time_limit=None) -> Game:
    if user_id is None:
        raise Unauthenticated('Must be logged in to create a game')
    name = (name or '').strip()
    if not name:
        raise ValidationError('Game name is required')
    if default_time_limit is None:
        default_time_limit = current_app.config.get('DEFAULT_TIME_LIMIT_SEC', 30)
    time_limit = validate_time_limit(default_time_limit)

    game = Game(name=name, moderator_id=user_id, default_time_limit=time_limit)
    db.session.add(game)
    db.session.commit()
    current_app.logger.info(f"[game-create] game={game.id} code={game.join_code} moderator={user_id}")
    return game


def list_games_for_moderator(user_id):
    if user_id is None:
        return []
    return Game.query.filter_by(moderator_id=user_id).order_by(Game.created_at.desc(), Game.id.desc()).all()


def _number(loc, key, required=True):
    value = loc.get(key)
    if value is None:
        if required:
            raise ValidationError(f'Location "{loc.get("name", "?")}": {key} is required')
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f'Location "{loc.get("name", "?")}": {key} must be a finite number')
    return float(value)


def _string_list(loc, key):
    value = loc.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f'Location "{loc.get("name", "?")}": {key} must be a list of strings')
    return value


def _validate_location(loc, modes):
    if not isinstance(loc, dict):
        raise ValidationError('Each location must be an object')
    name = loc.get('name')
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('Each location needs a name')

    lat = _number(loc, 'latitude')
    lng = _number(loc, 'longitude')
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError(f'Location "{name}": latitude/longitude out of range')
    try:
        if not isinstance(loc.get('utm_zone'), str):
            raise ValueError(loc.get('utm_zone'))
        parse_utm_zone(loc['utm_zone'])
    except ValueError:
        raise ValidationError(f'Location "{name}": invalid utm_zone')
    _number(loc, 'utm_easting')
    _number(loc, 'utm_northing')
    _string_list(loc, 'image_urls')
    difficulty = loc.get('difficulty', 'medium')
    if difficulty not in DIFFICULTIES:
        raise ValidationError(f'Location "{name}": difficulty must be one of {", ".join(DIFFICULTIES)}')

    for mode in modes:
        if mode == 'directionDistance':
            bearing = _number(loc, 'bearing_degrees', required=False)
            distance = _number(loc, 'distance_meters', required=False)
            if bearing is None or distance is None:
                raise ValidationError(
                    f'Location "{name}": directionDistance mode requires bearing_degrees and distance_meters'
                )
            if not is_valid_bearing(bearing):
                raise ValidationError(f'Location "{name}": bearing_degrees must be 0-359')
            if distance <= 0:
                raise ValidationError(f'Location "{name}": distance_meters must be positive')
        if mode == 'multipleChoice':
            options = loc.get('mc_options')
            if not isinstance(options, list) or len(options) != MC_WRONG_OPTION_COUNT:
                raise ValidationError(
                    f'Location "{name}": multipleChoice mode requires exactly {MC_WRONG_OPTION_COUNT} wrong options in mc_options'
                )
            if not all(isinstance(o, str) and o.strip() for o in options) or name in options:
                raise ValidationError(f'Location "{name}": mc_options must be distinct non-empty names')


def import_locations(game_id, user_id, locations, modes):
    """Create the game's locations and one round per (location, mode).

    Rounds are numbered contiguously from 1 in location order, modes varying
    fastest. Everything is validated before the first insert.
    """
    game = get_game(game_id)
    require_moderator(game, user_id)
    if game.status != 'lobby':
        raise InvalidState('Can only import locations in lobby status')
    if not isinstance(locations, list) or not locations:
        raise ValidationError('At least one location is required')
    if not isinstance(modes, list) or not modes:
        raise ValidationError('At least one mode is required')
    for mode in modes:
        if mode not in ROUND_MODES:
            raise ValidationError(f'Unknown game mode: {mode}')
    for loc in locations:
        _validate_location(loc, modes)

    # Continue numbering after any earlier import
    last = db.session.query(db.func.max(Round.round_number)).filter(Round.game_id == game.id).scalar() or 0
    order_offset = Location.query.filter_by(game_id=game.id).count()
    round_number = last + 1
    created_rounds = []
    for i, loc in enumerate(locations):
        location = Location(
            game_id=game.id,
            name=loc['name'].strip(),
            latitude=float(loc['latitude']),
            longitude=float(loc['longitude']),
            utm_zone=loc['utm_zone'].strip().upper(),
            utm_easting=float(loc['utm_easting']),
            utm_northing=float(loc['utm_northing']),
            image_urls=json.dumps(loc.get('image_urls') or []),
            hint=loc.get('hint'),
            difficulty=loc.get('difficulty', 'medium'),
            category=loc.get('category'),
            order_index=order_offset + i,
            bearing_degrees=loc.get('bearing_degrees'),
            distance_meters=loc.get('distance_meters'),
            start_point_name=loc.get('start_point_name'),
            start_point_image_urls=json.dumps(loc['start_point_image_urls']) if loc.get('start_point_image_urls') else None,
            start_point_latitude=loc.get('start_point_latitude'),
            start_point_longitude=loc.get('start_point_longitude'),
            mc_options=json.dumps(loc['mc_options']) if loc.get('mc_options') else None,
        )
        db.session.add(location)
        db.session.flush()
        for mode in modes:
            round_ = Round(
                game_id=game.id,
                location_id=location.id,
                round_number=round_number,
                mode=mode,
                status='pending',
                time_limit=game.default_time_limit,
            )
            db.session.add(round_)
            created_rounds.append((round_, location))
            round_number += 1

    db.session.flush()
    for round_, location in created_rounds:
        if round_.mode == 'multipleChoice':
            options = build_mc_options(location.name, location.wrong_options, str(round_.id))
            round_.mc_shuffled_options = json.dumps(options)
            round_.mc_correct_index = options.index(location.name)

    db.session.commit()
    current_app.logger.info(
        f"[import] game={game.id} locations={len(locations)} rounds={len(created_rounds)}"
    )
    emit_state_update(game)
    return {'location_count': len(locations), 'round_count': len(created_rounds)}


def start_game(game_id, user_id) -> Game:
    game = get_game(game_id)
    require_moderator(game, user_id)
    if game.status != 'lobby':
        raise InvalidState('Game must be in lobby status to start')
    if not Round.query.filter_by(game_id=game.id, round_number=1).first():
        raise InvalidState('Game must have at least one round')
    min_teams = int(current_app.config.get('MIN_TEAMS', 1))
    active_teams = Team.query.filter_by(game_id=game.id, is_active=True).count()
    if active_teams < min_teams:
        raise InvalidState(f'At least {min_teams} active team(s) required to start')

    _set_game_status(game, ('lobby',), 'playing', started_at=clock.now_ms(), current_round_index=0)
    current_app.logger.info(f"[game-start] game={game.id} teams={active_teams}")
    return game


def pause_game(game_id, user_id) -> Game:
    game = get_game(game_id)
    require_moderator(game, user_id)
    if game.status != 'playing':
        raise InvalidState('Game must be playing to pause')
    _set_game_status(game, ('playing',), 'paused')
    current_app.logger.info(f"[game-pause] game={game.id}")
    return game


def resume_game(game_id, user_id) -> Game:
    game = get_game(game_id)
    require_moderator(game, user_id)
    if game.status != 'paused':
        raise InvalidState('Game must be paused to resume')
    _set_game_status(game, ('paused',), 'playing')
    current_app.logger.info(f"[game-resume] game={game.id}")
    return game


def finish_game(game_id, user_id) -> Game:
    game = get_game(game_id)
    require_moderator(game, user_id)
    if game.status == 'finished':
        raise InvalidState('Game has already ended')
    _set_game_status(game, ('lobby', 'playing', 'paused'), 'finished', finished_at=clock.now_ms())
    current_app.logger.info(f"[game-finish] game={game.id} forced=True")
    return game


def _set_game_status(game, allowed_from, new_status, **values):
    """Compare-and-set the game status; a lost race raises ``InvalidState``."""
    updated = (
        Game.query
        .filter(Game.id == game.id, Game.status.in_(allowed_from))
        .update({'status': new_status, **values}, synchronize_session='fetch')
    )
    if updated != 1:
        db.session.rollback()
        raise InvalidState(f'Game status changed concurrently; expected one of {", ".join(allowed_from)}')
    db.session.commit()
    emit_state_update(game)


def game_summary(game: Game) -> dict:
    payload = game.to_dict()
    payload['total_rounds'] = game.rounds.count()
    payload['team_count'] = game.teams.filter_by(is_active=True).count()
    return payload
