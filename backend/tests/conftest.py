import os
import sys
import pytest

# Ensure the backend root (containing the `geoquiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from geoquiz import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    DEFAULT_TIME_LIMIT_SEC = 30
    MIN_TIME_LIMIT_SEC = 5
    MAX_TIME_LIMIT_SEC = 300
    MIN_TEAMS = 1
    TEAM_NAME_MAX_LENGTH = 50
    TIME_BONUS_ENABLED = False
    LOG_LEVEL = 'INFO'


# Target used by most tests: Darmstadt market square, zone 32U
TARGET = {
    'name': 'Marktplatz',
    'latitude': 49.8728,
    'longitude': 8.6512,
    'utm_zone': '32U',
    'utm_easting': 477000.0,
    'utm_northing': 5524000.0,
    'image_urls': ['https://example.org/marktplatz.jpg'],
    'difficulty': 'easy',
    'category': 'Innenstadt',
    'hint': 'Near the castle',
}


def make_location(name, **overrides):
    loc = dict(TARGET, name=name)
    loc.update(overrides)
    return loc


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import geoquiz.models  # noqa: F401
        db.create_all()
    # Yield outside the app context so each request gets its own `g`
    # (Flask-Login caches the current user there).
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def moderator(flask_app):
    """A test client logged in as a freshly registered moderator."""
    mod = flask_app.test_client()
    res = mod.post('/register', json={'username': 'mod', 'password': 'secret'})
    assert res.status_code == 201
    return mod


@pytest.fixture()
def other_moderator(flask_app):
    mod = flask_app.test_client()
    res = mod.post('/register', json={'username': 'intruder', 'password': 'secret'})
    assert res.status_code == 201
    return mod


@pytest.fixture()
def make_game(moderator):
    """Create a game, optionally import locations for the given modes."""
    def _make(locations=None, modes=None, name='Stadtrallye', time_limit=30):
        res = moderator.post('/api/games', json={'name': name, 'default_time_limit': time_limit})
        assert res.status_code == 201
        created = res.get_json()
        if locations:
            res = moderator.post(
                f"/api/games/{created['game_id']}/locations",
                json={'locations': locations, 'modes': modes or ['imageToUtm']},
            )
            assert res.status_code == 201, res.get_json()
        return created
    return _make


@pytest.fixture()
def join_team(flask_app):
    """Join with a fresh cookie jar; returns (client, team_id)."""
    def _join(join_code, name):
        team_client = flask_app.test_client()
        res = team_client.post('/api/teams/join', json={'join_code': join_code, 'team_name': name})
        assert res.status_code == 201, res.get_json()
        return team_client, res.get_json()['team_id']
    return _join


@pytest.fixture()
def playing_game(make_game, join_team, moderator):
    """One imageToUtm round, two teams, game started."""
    created = make_game(locations=[make_location('Marktplatz')], modes=['imageToUtm'])
    team_a, team_a_id = join_team(created['join_code'], 'Alpha')
    team_b, team_b_id = join_team(created['join_code'], 'Bravo')
    assert moderator.post(f"/api/games/{created['game_id']}/start").status_code == 200
    return {
        'game_id': created['game_id'],
        'join_code': created['join_code'],
        'teams': {'A': (team_a, team_a_id), 'B': (team_b, team_b_id)},
    }


def advance(moderator, game_id, *actions):
    """Run round commands in order, asserting each succeeds."""
    for action in actions:
        res = moderator.post(f'/api/games/{game_id}/round/{action}')
        assert res.status_code == 200, (action, res.get_json())
    return res


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
