"""Leaderboard, recomputed from teams, rounds and guesses on every read.

Per-round scores only include rounds that have been revealed, so the
leaderboard never leaks results early.
"""

from collections import defaultdict

from geoquiz import db
from geoquiz.models import Guess, Round, Team
from .errors import NotFound
from .lifecycle import get_game, require_game_access
from .scoring import rank_teams


def _build(game_id):
    teams = Team.query.filter_by(game_id=game_id).order_by(Team.id).all()
    rows = (
        db.session.query(Guess, Round.round_number)
        .join(Round, Round.id == Guess.round_id)
        .filter(Round.game_id == game_id, Round.status.in_(('reveal', 'completed')))
        .all()
    )
    history = defaultdict(list)
    for guess, round_number in rows:
        history[guess.team_id].append({
            'round_number': round_number,
            'score': guess.score,
            'distance_meters': guess.distance_meters,
        })

    entries = []
    for team, rank in rank_teams(teams):
        entries.append({
            'team_id': team.id,
            'team_name': team.name,
            'score': team.score,
            'rank': rank,
            'is_active': team.is_active,
            'round_scores': sorted(history[team.id], key=lambda r: r['round_number']),
        })
    return entries


def get_leaderboard(game_id, user_id, session_id, limit=None):
    game = get_game(game_id)
    require_game_access(game, user_id, session_id)
    entries = _build(game.id)
    if limit is not None:
        entries = entries[:max(0, int(limit))]
    return entries


def get_team_position(game_id, team_id, user_id, session_id):
    game = get_game(game_id)
    require_game_access(game, user_id, session_id)
    entries = _build(game.id)
    for index, entry in enumerate(entries):
        if entry['team_id'] == team_id:
            break
    else:
        raise NotFound('Team not found')

    def neighbour(i):
        if 0 <= i < len(entries):
            other = entries[i]
            return {'team_name': other['team_name'], 'score': other['score'], 'rank': other['rank']}
        return None

    return {
        **entry,
        'position': index + 1,
        'total_teams': len(entries),
        'team_above': neighbour(index - 1),
        'team_below': neighbour(index + 1),
    }


def get_team_breakdown(game_id, team_id, user_id, session_id):
    game = get_game(game_id)
    require_game_access(game, user_id, session_id)
    team = Team.query.filter_by(id=team_id, game_id=game.id).first()
    if not team:
        raise NotFound('Team not found')

    rounds = Round.query.filter_by(game_id=game.id).order_by(Round.round_number).all()
    guesses = {g.round_id: g for g in Guess.query.filter_by(team_id=team.id).all()}
    breakdown = []
    for round_ in rounds:
        guess = guesses.get(round_.id)
        item = {
            'round_number': round_.round_number,
            'mode': round_.mode,
            'status': round_.status,
            'guess': None,
        }
        if guess and round_.is_revealed:
            item['guess'] = {
                'score': guess.score,
                'distance_meters': guess.distance_meters,
                'response_time_ms': guess.response_time_ms,
            }
        elif guess:
            item['guess'] = {'submitted': True}
        breakdown.append(item)

    return {
        'team_id': team.id,
        'team_name': team.name,
        'total_score': team.score,
        'round_breakdown': breakdown,
    }
