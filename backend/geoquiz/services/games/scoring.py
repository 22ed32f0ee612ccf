"""Point values for guesses and ranking of teams."""

import math
from typing import Iterable, List, Tuple

MAX_POINTS = 1000
PERFECT_RADIUS_M = 10
ZERO_RADIUS_M = 5000
DECAY_RATE = 5

MAX_TIME_BONUS = 200
TIME_BONUS_WINDOW_SEC = 30

MC_CORRECT_SCORE = 1000

DISTANCE_RATINGS = (
    (10, 'perfect'),
    (50, 'excellent'),
    (200, 'good'),
    (500, 'fair'),
    (2000, 'poor'),
)


def distance_score(distance_meters: float) -> int:
    """Bounded exponential decay from a flat perfect plateau to a hard floor.

    - within 10m: full 1000 points
    - 5km and beyond: 0 points
    - in between: ``1000 * e^(-5 * d')`` with ``d'`` normalized to [0, 1)
    """
    if distance_meters <= PERFECT_RADIUS_M:
        return MAX_POINTS
    if distance_meters >= ZERO_RADIUS_M:
        return 0
    normalized = (distance_meters - PERFECT_RADIUS_M) / (ZERO_RADIUS_M - PERFECT_RADIUS_M)
    return int(round(MAX_POINTS * math.exp(-DECAY_RATE * normalized)))


def time_bonus(response_time_ms: float, limit_seconds: float) -> int:
    """Speed bonus in [0, 200], decaying linearly to 0 over a fixed 30s window.

    The response time is clamped to the round's limit first so clock skew
    can neither push it negative nor past the countdown.
    """
    limit_ms = max(0, limit_seconds) * 1000
    capped = min(max(0, response_time_ms), limit_ms)
    window_ms = TIME_BONUS_WINDOW_SEC * 1000
    bonus = int(round(MAX_TIME_BONUS * (1 - capped / window_ms)))
    return max(0, min(MAX_TIME_BONUS, bonus))


def total_score(distance_points: int, bonus: int) -> int:
    return distance_points + bonus


def distance_rating(distance_meters: float) -> str:
    for limit, label in DISTANCE_RATINGS:
        if distance_meters <= limit:
            return label
    return 'miss'


def sort_for_ranking(teams: Iterable) -> list:
    """Score descending; equal scores go to the team that joined first."""
    return sorted(teams, key=lambda t: (-t.score, t.joined_at))


def rank_teams(teams: Iterable) -> List[Tuple[object, int]]:
    """Return ``(team, rank)`` pairs using competition ranking.

    Equal scores share a rank and the next distinct score skips by the size
    of the tie group, e.g. scores [1000, 1000, 500] rank as [1, 1, 3].
    Items need ``score`` and ``joined_at`` attributes.
    """
    ranked = []
    current_rank = 0
    previous_score = None
    for position, team in enumerate(sort_for_ranking(teams), start=1):
        if team.score != previous_score:
            current_rank = position
            previous_score = team.score
        ranked.append((team, current_rank))
    return ranked
