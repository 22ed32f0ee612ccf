import geoquiz.services.games.clock as clock
import geoquiz.services.games.guesses as guess_service
from conftest import advance, make_location

HIT = {'utm_easting': 477003.0, 'utm_northing': 5524004.0}  # 5m off
MISS = {'utm_easting': 483000.0, 'utm_northing': 5524000.0}  # 6km off


def _round_id(moderator, game_id):
    return moderator.get(f'/api/games/{game_id}/round').get_json()['id']


def _submit(team_client, round_id, payload):
    return team_client.post(f'/api/rounds/{round_id}/guesses', json=payload)


def test_two_team_scenario(moderator, playing_game):
    game_id = playing_game['game_id']
    team_a, team_a_id = playing_game['teams']['A']
    team_b, team_b_id = playing_game['teams']['B']
    advance(moderator, game_id, 'start', 'countdown')
    round_id = _round_id(moderator, game_id)

    assert _submit(team_a, round_id, HIT).status_code == 201
    assert _submit(team_b, round_id, MISS).status_code == 201

    # nothing leaks before the reveal
    assert team_a.get(f'/api/rounds/{round_id}/guesses').get_json() == []
    board = team_a.get(f'/api/games/{game_id}/leaderboard').get_json()
    assert [entry['score'] for entry in board] == [0, 0]

    advance(moderator, game_id, 'reveal')
    guesses = team_a.get(f'/api/rounds/{round_id}/guesses').get_json()
    assert [(g['team_name'], g['distance_meters'], g['score']) for g in guesses] == [
        ('Alpha', 5, 1000),
        ('Bravo', 6000, 0),
    ]

    board = moderator.get(f'/api/games/{game_id}/leaderboard').get_json()
    assert [(e['team_id'], e['score'], e['rank']) for e in board] == [
        (team_a_id, 1000, 1),
        (team_b_id, 0, 2),
    ]

    res = advance(moderator, game_id, 'complete')
    assert res.get_json()['has_next_round'] is False
    assert moderator.get(f'/api/games/{game_id}').get_json()['status'] == 'finished'
    final = team_b.get(f'/api/games/{game_id}/leaderboard').get_json()
    assert [(e['team_id'], e['score'], e['rank']) for e in final] == [
        (team_a_id, 1000, 1),
        (team_b_id, 0, 2),
    ]


def test_gate_rejects_unknown_session(client, moderator, playing_game):
    game_id = playing_game['game_id']
    advance(moderator, game_id, 'start', 'countdown')
    res = _submit(client, _round_id(moderator, game_id), HIT)
    assert res.status_code == 401
    assert res.get_json()['kind'] == 'unauthenticated'


def test_gate_rejects_session_without_team(flask_app, moderator, make_game, join_team, playing_game):
    other = make_game(name='other')
    outsider, _ = join_team(other['join_code'], 'Outsider')
    game_id = playing_game['game_id']
    advance(moderator, game_id, 'start', 'countdown')
    res = _submit(outsider, _round_id(moderator, game_id), HIT)
    assert res.status_code == 403
    assert res.get_json()['kind'] == 'unauthorized'


def test_gate_requires_guessing_status(moderator, playing_game):
    game_id = playing_game['game_id']
    team_a, _ = playing_game['teams']['A']
    round_id = _round_id(moderator, game_id)

    for step in (None, 'start'):
        if step:
            advance(moderator, game_id, step)
        res = _submit(team_a, round_id, HIT)
        assert res.status_code == 409
        assert res.get_json()['kind'] == 'invalid_state'

    advance(moderator, game_id, 'reveal')
    assert _submit(team_a, round_id, HIT).get_json()['kind'] == 'invalid_state'


def test_gate_enforces_deadline(moderator, playing_game, monkeypatch):
    game_id = playing_game['game_id']
    team_a, _ = playing_game['teams']['A']
    team_b, _ = playing_game['teams']['B']
    monkeypatch.setattr(clock, 'now_ms', lambda: 1_000_000)
    advance(moderator, game_id, 'start', 'countdown')
    round_id = _round_id(moderator, game_id)
    deadline = 1_000_000 + 30 * 1000

    # exactly on the deadline is still in time
    monkeypatch.setattr(clock, 'now_ms', lambda: deadline)
    assert _submit(team_a, round_id, HIT).status_code == 201

    monkeypatch.setattr(clock, 'now_ms', lambda: deadline + 1)
    res = _submit(team_b, round_id, HIT)
    assert res.status_code == 409
    assert res.get_json() == {'error': "Time's up!", 'kind': 'deadline_expired'}


def test_deadline_checked_before_duplicate(moderator, playing_game, monkeypatch):
    game_id = playing_game['game_id']
    team_a, _ = playing_game['teams']['A']
    monkeypatch.setattr(clock, 'now_ms', lambda: 1_000_000)
    advance(moderator, game_id, 'start', 'countdown')
    round_id = _round_id(moderator, game_id)
    assert _submit(team_a, round_id, HIT).status_code == 201

    monkeypatch.setattr(clock, 'now_ms', lambda: 1_000_000 + 31 * 1000)
    assert _submit(team_a, round_id, HIT).get_json()['kind'] == 'deadline_expired'


def test_second_guess_is_duplicate(moderator, playing_game):
    game_id = playing_game['game_id']
    team_a, _ = playing_game['teams']['A']
    advance(moderator, game_id, 'start', 'countdown')
    round_id = _round_id(moderator, game_id)
    assert _submit(team_a, round_id, HIT).status_code == 201

    res = _submit(team_a, round_id, MISS)
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'duplicate_guess'

    advance(moderator, game_id, 'reveal')
    mine = team_a.get(f'/api/rounds/{round_id}/guesses/mine').get_json()
    assert mine['score'] == 1000


def test_unique_constraint_catches_racing_duplicate(moderator, playing_game, monkeypatch):
    game_id = playing_game['game_id']
    team_a, _ = playing_game['teams']['A']
    advance(moderator, game_id, 'start', 'countdown')
    round_id = _round_id(moderator, game_id)
    assert _submit(team_a, round_id, HIT).status_code == 201

    # simulate a concurrent request that passed the lookup before the first insert landed
    monkeypatch.setattr(guess_service, '_existing_guess', lambda round_id, team_id: None)
    res = _submit(team_a, round_id, MISS)
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'duplicate_guess'
    count = moderator.get(f'/api/games/{game_id}/round').get_json()['guess_count']
    assert count == 1


def test_payload_validation(moderator, playing_game):
    game_id = playing_game['game_id']
    team_a, _ = playing_game['teams']['A']
    advance(moderator, game_id, 'start', 'countdown')
    round_id = _round_id(moderator, game_id)

    bad_payloads = [
        {},
        {'utm_easting': 477000.0},
        {'utm_easting': 'east', 'utm_northing': 5524000.0},
        {'utm_easting': True, 'utm_northing': 5524000.0},
        {**HIT, 'utm_zone': 'nonsense'},
    ]
    for payload in bad_payloads:
        res = _submit(team_a, round_id, payload)
        assert res.status_code == 400, payload
        assert res.get_json()['kind'] == 'validation_error'

    # a rejected payload does not use up the team's guess
    assert _submit(team_a, round_id, HIT).status_code == 201


def test_guess_in_other_zone_uses_great_circle(moderator, playing_game):
    game_id = playing_game['game_id']
    team_a, _ = playing_game['teams']['A']
    advance(moderator, game_id, 'start', 'countdown')
    round_id = _round_id(moderator, game_id)
    res = _submit(team_a, round_id, {'utm_zone': '33U', 'utm_easting': 500000.0, 'utm_northing': 5524000.0})
    assert res.status_code == 201
    advance(moderator, game_id, 'reveal')
    mine = team_a.get(f'/api/rounds/{round_id}/guesses/mine').get_json()
    assert mine['guessed_utm_zone'] == '33U'
    assert mine['distance_meters'] > 100000
    assert mine['score'] == 0


def test_my_guess_hides_result_until_reveal(moderator, playing_game):
    game_id = playing_game['game_id']
    team_a, _ = playing_game['teams']['A']
    team_b, _ = playing_game['teams']['B']
    advance(moderator, game_id, 'start', 'countdown')
    round_id = _round_id(moderator, game_id)
    _submit(team_a, round_id, HIT)

    mine = team_a.get(f'/api/rounds/{round_id}/guesses/mine').get_json()
    assert mine['has_submitted'] is True
    assert mine['guessed_utm_easting'] == 477003.0
    for hidden in ('score', 'distance_meters', 'distance_score', 'time_bonus'):
        assert mine[hidden] is None
    assert team_b.get(f'/api/rounds/{round_id}/guesses/mine').get_json() is None


def test_guess_list_requires_membership(client, other_moderator, moderator, playing_game):
    game_id = playing_game['game_id']
    advance(moderator, game_id, 'start', 'reveal')
    round_id = _round_id(moderator, game_id)
    assert client.get(f'/api/rounds/{round_id}/guesses').status_code == 401
    assert other_moderator.get(f'/api/rounds/{round_id}/guesses').status_code == 403
    assert moderator.get(f'/api/rounds/{round_id}/guesses').get_json() == []


def test_location_mode_scores_by_great_circle(moderator, make_game, join_team):
    created = make_game(locations=[make_location('Marktplatz')], modes=['utmToLocation'])
    team, _ = join_team(created['join_code'], 'Alpha')
    game_id = created['game_id']
    moderator.post(f'/api/games/{game_id}/start')
    advance(moderator, game_id, 'start', 'countdown')
    round_id = _round_id(moderator, game_id)

    assert _submit(team, round_id, {'latitude': 91, 'longitude': 8.6}).status_code == 400
    res = _submit(team, round_id, {'latitude': 49.87284, 'longitude': 8.6512})
    assert res.status_code == 201
    advance(moderator, game_id, 'reveal')
    mine = team.get(f'/api/rounds/{round_id}/guesses/mine').get_json()
    assert mine['distance_meters'] <= 10
    assert mine['score'] == 1000


def test_multiple_choice_guess(moderator, make_game, join_team):
    loc = make_location('Marktplatz', mc_options=['Luisenplatz', 'Herrngarten', 'Schloss'])
    created = make_game(locations=[loc], modes=['multipleChoice'])
    right, _ = join_team(created['join_code'], 'Right')
    wrong, _ = join_team(created['join_code'], 'Wrong')
    game_id = created['game_id']
    moderator.post(f'/api/games/{game_id}/start')
    advance(moderator, game_id, 'start', 'countdown')
    current = moderator.get(f'/api/games/{game_id}/round').get_json()
    options = current['location']['mc_options']
    correct = options.index('Marktplatz')
    other = (correct + 1) % len(options)

    res = _submit(right, current['id'], {'option_index': correct, 'option_name': options[other]})
    assert res.status_code == 400
    res = _submit(right, current['id'], {'option_index': 7, 'option_name': 'Marktplatz'})
    assert res.status_code == 400

    assert _submit(right, current['id'], {'option_index': correct, 'option_name': 'Marktplatz'}).status_code == 201
    assert _submit(wrong, current['id'], {'option_index': other, 'option_name': options[other]}).status_code == 201

    advance(moderator, game_id, 'reveal')
    scores = {g['team_name']: g['score'] for g in moderator.get(f"/api/rounds/{current['id']}/guesses").get_json()}
    assert scores == {'Right': 1000, 'Wrong': 0}


def test_time_bonus_when_enabled(flask_app, moderator, playing_game, monkeypatch):
    flask_app.config['TIME_BONUS_ENABLED'] = True
    game_id = playing_game['game_id']
    team_a, _ = playing_game['teams']['A']
    monkeypatch.setattr(clock, 'now_ms', lambda: 1_000_000)
    advance(moderator, game_id, 'start', 'countdown')
    round_id = _round_id(moderator, game_id)

    monkeypatch.setattr(clock, 'now_ms', lambda: 1_000_000 + 15000)
    assert _submit(team_a, round_id, HIT).status_code == 201
    advance(moderator, game_id, 'reveal')
    mine = team_a.get(f'/api/rounds/{round_id}/guesses/mine').get_json()
    assert mine['response_time_ms'] == 15000
    assert mine['distance_score'] == 1000
    assert mine['time_bonus'] == 100
    assert mine['score'] == 1100


def test_reveal_landing_mid_submission_rejects_the_guess(moderator, playing_game, monkeypatch):
    game_id = playing_game['game_id']
    team_a, team_a_id = playing_game['teams']['A']
    advance(moderator, game_id, 'start', 'countdown')
    round_id = _round_id(moderator, game_id)

    original = guess_service.response_time_ms

    def reveal_then_time(round_, now):
        # the moderator's reveal commits after the gate checks passed
        advance(moderator, game_id, 'reveal')
        return original(round_, now)

    monkeypatch.setattr(guess_service, 'response_time_ms', reveal_then_time)
    res = _submit(team_a, round_id, HIT)
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'invalid_state'

    assert moderator.get(f'/api/rounds/{round_id}/guesses').get_json() == []
    board = moderator.get(f'/api/games/{game_id}/leaderboard').get_json()
    entry = next(e for e in board if e['team_id'] == team_a_id)
    assert entry['score'] == 0
    assert entry['round_scores'] == []
