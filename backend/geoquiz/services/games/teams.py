"""Team membership keyed by the anonymous session identity."""

from flask import current_app
from sqlalchemy.exc import IntegrityError

from geoquiz import db
from geoquiz.models import Guess, Team
from . import clock
from .errors import InvalidState, NameConflict, NotFound, Unauthenticated, Unauthorized, ValidationError
from .lifecycle import get_game, get_game_by_code, require_moderator
from .notify import emit_state_update


def clean_team_name(name) -> str:
    max_len = int(current_app.config.get('TEAM_NAME_MAX_LENGTH', 50))
    if name is not None and not isinstance(name, str):
        raise ValidationError('Team name must be text')
    trimmed = (name or '').strip()
    if not trimmed:
        raise ValidationError('Team name cannot be empty')
    if len(trimmed) > max_len:
        raise ValidationError(f'Team name must be {max_len} characters or less')
    return trimmed


def _name_taken(game_id, name, exclude_team_id=None) -> bool:
    query = Team.query.filter_by(game_id=game_id, name=name)
    if exclude_team_id is not None:
        query = query.filter(Team.id != exclude_team_id)
    return query.first() is not None


def _commit_name_change():
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise NameConflict()


def team_for_session(game_id, session_id):
    if not session_id:
        return None
    return Team.query.filter_by(game_id=game_id, session_id=session_id).first()


def join_team(join_code, team_name, session_id, user_id=None):
    """Join a game, or rejoin it when this session already owns a team.

    Returns ``(team, rejoined)``.
    """
    name = clean_team_name(team_name)
    if not session_id:
        raise Unauthenticated('Must be authenticated (anonymous or logged in)')
    game = get_game_by_code(join_code)
    if game.status == 'finished':
        raise InvalidState('Game has already ended')

    now = clock.now_ms()
    existing = team_for_session(game.id, session_id)
    if existing:
        if _name_taken(game.id, name, exclude_team_id=existing.id):
            raise NameConflict()
        existing.name = name
        existing.is_active = True
        existing.last_seen_at = now
        _commit_name_change()
        current_app.logger.info(f"[team-rejoin] game={game.id} team={existing.id} name={name!r}")
        emit_state_update(game)
        return existing, True

    if _name_taken(game.id, name):
        raise NameConflict()
    team = Team(
        game_id=game.id,
        name=name,
        session_id=session_id,
        user_id=user_id,
        score=0,
        is_active=True,
        joined_at=now,
        last_seen_at=now,
    )
    db.session.add(team)
    _commit_name_change()
    current_app.logger.info(f"[team-join] game={game.id} team={team.id} name={name!r}")
    emit_state_update(game)
    return team, False


def _own_team(team_id, session_id) -> Team:
    if not session_id:
        raise Unauthenticated('Must be authenticated')
    team = db.session.get(Team, team_id)
    if not team:
        raise NotFound('Team not found')
    if team.session_id != session_id:
        raise Unauthorized('Not your team')
    return team


def rename_team(team_id, session_id, new_name) -> Team:
    name = clean_team_name(new_name)
    team = _own_team(team_id, session_id)
    if _name_taken(team.game_id, name, exclude_team_id=team.id):
        raise NameConflict()
    team.name = name
    team.last_seen_at = clock.now_ms()
    _commit_name_change()
    emit_state_update(team.game)
    return team


def heartbeat(team_id, session_id) -> Team:
    team = _own_team(team_id, session_id)
    was_active = team.is_active
    team.last_seen_at = clock.now_ms()
    team.is_active = True
    db.session.commit()
    if not was_active:
        emit_state_update(team.game)
    return team


def set_inactive(team_id, session_id) -> Team:
    team = _own_team(team_id, session_id)
    mark_inactive(team)
    return team


def mark_inactive(team: Team) -> None:
    team.is_active = False
    team.last_seen_at = clock.now_ms()
    db.session.commit()
    current_app.logger.info(f"[team-inactive] game={team.game_id} team={team.id}")
    emit_state_update(team.game)


def remove_team(team_id, user_id) -> None:
    """Moderator-only hard delete; the team's guesses go with it."""
    team = db.session.get(Team, team_id)
    if not team:
        raise NotFound('Team not found')
    game = get_game(team.game_id)
    require_moderator(game, user_id)
    deleted = Guess.query.filter_by(team_id=team.id).delete(synchronize_session=False)
    db.session.delete(team)
    db.session.commit()
    current_app.logger.info(f"[team-remove] game={game.id} team={team_id} guesses_deleted={deleted}")
    emit_state_update(game)


def list_teams(game_id):
    game = get_game(game_id)
    return Team.query.filter_by(game_id=game.id).order_by(Team.score.desc(), Team.joined_at, Team.id).all()


def active_team_count(game_id) -> int:
    game = get_game(game_id)
    return Team.query.filter_by(game_id=game.id, is_active=True).count()
