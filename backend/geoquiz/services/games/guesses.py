"""Guess submission gate.

A guess is scored the moment it is admitted, but its score, distance and
the team total stay hidden until the moderator reveals the round.
"""

import math

from flask import current_app
from sqlalchemy.exc import IntegrityError

from geoquiz import db
from geoquiz.models import Guess, Round, Team
from . import clock
from .errors import (
    DeadlineExpired, DuplicateGuess, InvalidState, NotFound, Unauthenticated,
    Unauthorized, ValidationError,
)
from .geo import UtmCoordinate, haversine_distance, parse_utm_zone, utm_distance
from .lifecycle import get_game, require_game_access
from .notify import emit_state_update
from .scoring import MC_CORRECT_SCORE, distance_score, time_bonus, total_score
from .teams import team_for_session


def _coordinate(payload, key, low=None, high=None) -> float:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f'{key} is required for this mode')
    if (low is not None and value < low) or (high is not None and value > high):
        raise ValidationError(f'{key} out of range')
    return float(value)


def _existing_guess(round_id, team_id):
    return Guess.query.filter_by(round_id=round_id, team_id=team_id).first()


def response_time_ms(round_: Round, now: int) -> int:
    """Milliseconds since the countdown started, or 0 without a countdown."""
    if not round_.countdown_ends_at:
        return 0
    started = round_.countdown_ends_at - round_.time_limit * 1000
    return max(0, now - started)


def _score_guess(round_: Round, payload: dict, elapsed_ms: int) -> dict:
    """Validate the mode-specific payload and compute distance and points."""
    location = round_.location
    bonus_enabled = bool(current_app.config.get('TIME_BONUS_ENABLED', False))
    fields = {}

    if round_.mode == 'imageToUtm':
        easting = _coordinate(payload, 'utm_easting')
        northing = _coordinate(payload, 'utm_northing')
        zone_text = payload.get('utm_zone') or location.utm_zone
        try:
            if not isinstance(zone_text, str):
                raise ValueError(zone_text)
            zone, hemisphere = parse_utm_zone(zone_text)
        except ValueError:
            raise ValidationError('utm_zone is not a valid UTM zone')
        target_zone, target_hemisphere = parse_utm_zone(location.utm_zone)
        distance = utm_distance(
            UtmCoordinate(target_zone, target_hemisphere, location.utm_easting, location.utm_northing),
            UtmCoordinate(zone, hemisphere, easting, northing),
        )
        fields.update(
            guessed_utm_zone=zone_text.strip().upper(),
            guessed_utm_easting=easting,
            guessed_utm_northing=northing,
        )
        points = distance_score(distance)
        bonus = time_bonus(elapsed_ms, round_.time_limit) if bonus_enabled else 0

    elif round_.mode in ('utmToLocation', 'directionDistance'):
        lat = _coordinate(payload, 'latitude', -90, 90)
        lng = _coordinate(payload, 'longitude', -180, 180)
        distance = haversine_distance(location.latitude, location.longitude, lat, lng)
        fields.update(guessed_latitude=lat, guessed_longitude=lng)
        points = distance_score(distance)
        bonus = time_bonus(elapsed_ms, round_.time_limit) if bonus_enabled else 0

    elif round_.mode == 'multipleChoice':
        options = round_.shuffled_options
        index = payload.get('option_index')
        name = payload.get('option_name')
        if isinstance(index, bool) or not isinstance(index, int) or not isinstance(name, str):
            raise ValidationError('Option selection required for this mode')
        if not 0 <= index < len(options):
            raise ValidationError(f'Invalid option index (must be 0-{len(options) - 1})')
        if options[index] != name:
            raise ValidationError('Invalid submission: option index does not match name')
        correct = index == round_.mc_correct_index
        distance = 0
        fields.update(guessed_option_index=index, guessed_option_name=name)
        points = MC_CORRECT_SCORE if correct else 0
        bonus = time_bonus(elapsed_ms, round_.time_limit) if (bonus_enabled and correct) else 0

    else:
        raise ValidationError(f'Unknown game mode: {round_.mode}')

    fields.update(
        distance_meters=int(round(distance)),
        distance_score=points,
        time_bonus=bonus,
        score=total_score(points, bonus),
    )
    return fields


def submit_guess(round_id, session_id, payload) -> Guess:
    if not session_id:
        raise Unauthenticated('Must be authenticated')
    # Row lock serializes with the reveal UPDATE on backends that support it
    round_ = Round.query.filter_by(id=round_id).with_for_update().first()
    if not round_:
        raise NotFound('Round not found')
    team = team_for_session(round_.game_id, session_id)
    if not team:
        raise Unauthorized('Team not found - must join the game first')

    if round_.status != 'guessing':
        raise InvalidState('Round is not accepting guesses')
    now = clock.now_ms()
    if round_.countdown_ends_at is not None and now > round_.countdown_ends_at:
        raise DeadlineExpired()
    if _existing_guess(round_.id, team.id):
        raise DuplicateGuess()

    elapsed = response_time_ms(round_, now)
    fields = _score_guess(round_, payload or {}, elapsed)
    guess = Guess(
        round_id=round_.id,
        team_id=team.id,
        response_time_ms=elapsed,
        submitted_at=now,
        **fields,
    )
    db.session.add(guess)
    try:
        db.session.flush()
    except IntegrityError:
        # A concurrent submission for the same (round, team) won the race
        db.session.rollback()
        raise DuplicateGuess()
    # The round must still be open once the guess row exists, or reveal
    # would have credited totals without it
    status = db.session.query(Round.status).filter(Round.id == round_.id).scalar()
    if status != 'guessing':
        db.session.rollback()
        raise InvalidState('Round is not accepting guesses')
    db.session.commit()

    current_app.logger.info(
        f"[guess] game={round_.game_id} round={round_.round_number} team={team.id} guess={guess.id}"
    )
    emit_state_update(round_.game)
    return guess


def guesses_for_round(round_id, user_id, session_id):
    """All guesses of a round, best first; empty until the round is revealed."""
    round_ = db.session.get(Round, round_id)
    if not round_:
        raise NotFound('Round not found')
    require_game_access(get_game(round_.game_id), user_id, session_id)
    if not round_.is_revealed:
        return []
    rows = (
        db.session.query(Guess, Team.name)
        .join(Team, Team.id == Guess.team_id)
        .filter(Guess.round_id == round_.id)
        .all()
    )
    results = []
    for guess, team_name in rows:
        data = guess.to_dict()
        data['team_name'] = team_name
        results.append(data)
    results.sort(key=lambda g: (-g['score'], g['submitted_at']))
    return results


def my_guess(round_id, session_id):
    round_ = db.session.get(Round, round_id)
    if not round_:
        raise NotFound('Round not found')
    team = team_for_session(round_.game_id, session_id)
    if not team:
        return None
    guess = _existing_guess(round_.id, team.id)
    if not guess:
        return None
    data = guess.to_dict(reveal=round_.is_revealed)
    data['has_submitted'] = True
    return data
