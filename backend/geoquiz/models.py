from geoquiz import db, bcrypt
from flask_login import UserMixin
import json
import random

from geoquiz.services.games.clock import now_ms

JOIN_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'  # no I, O, 0, 1
JOIN_CODE_LENGTH = 6

GAME_STATUSES = ('lobby', 'playing', 'paused', 'finished')
ROUND_STATUSES = ('pending', 'showing', 'guessing', 'reveal', 'completed')
ROUND_MODES = ('imageToUtm', 'utmToLocation', 'directionDistance', 'multipleChoice')
DIFFICULTIES = ('easy', 'medium', 'hard')


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


def generate_join_code(length=JOIN_CODE_LENGTH):
    """Generate a join code not used by any existing game."""
    while True:
        code = ''.join(random.choices(JOIN_CODE_ALPHABET, k=length))
        if not Game.query.filter_by(join_code=code).first():
            return code


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    join_code = db.Column(db.String(JOIN_CODE_LENGTH), unique=True, nullable=False, index=True)
    moderator_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default='lobby')  # lobby, playing, paused, finished
    current_round_index = db.Column(db.Integer, nullable=False, default=0)  # 0-based; round_number = index + 1
    default_time_limit = db.Column(db.Integer, nullable=False, default=30)
    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)
    started_at = db.Column(db.BigInteger, nullable=True)
    finished_at = db.Column(db.BigInteger, nullable=True)

    moderator = db.relationship('User')
    rounds = db.relationship('Round', back_populates='game', lazy='dynamic')
    teams = db.relationship('Team', back_populates='game', lazy='dynamic')

    def __init__(self, **kwargs):
        super(Game, self).__init__(**kwargs)
        if not self.join_code:
            self.join_code = generate_join_code()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'join_code': self.join_code,
            'moderator_id': self.moderator_id,
            'status': self.status,
            'current_round_index': self.current_round_index,
            'default_time_limit': self.default_time_limit,
            'created_at': self.created_at,
            'started_at': self.started_at,
            'finished_at': self.finished_at,
        }


class Location(db.Model):
    __tablename__ = 'location'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    utm_zone = db.Column(db.String(4), nullable=False)  # e.g. "32U"
    utm_easting = db.Column(db.Float, nullable=False)
    utm_northing = db.Column(db.Float, nullable=False)
    image_urls = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list
    hint = db.Column(db.Text, nullable=True)
    difficulty = db.Column(db.String(16), nullable=False, default='medium')
    category = db.Column(db.String(64), nullable=True)
    order_index = db.Column(db.Integer, nullable=False)
    # Direction & distance mode
    bearing_degrees = db.Column(db.Float, nullable=True)
    distance_meters = db.Column(db.Float, nullable=True)
    start_point_name = db.Column(db.String(128), nullable=True)
    start_point_image_urls = db.Column(db.Text, nullable=True)  # JSON-encoded list
    start_point_latitude = db.Column(db.Float, nullable=True)
    start_point_longitude = db.Column(db.Float, nullable=True)
    # Multiple choice mode: the wrong answers
    mc_options = db.Column(db.Text, nullable=True)  # JSON-encoded list

    @property
    def images(self):
        return json.loads(self.image_urls) if self.image_urls else []

    @property
    def start_point_images(self):
        return json.loads(self.start_point_image_urls) if self.start_point_image_urls else []

    @property
    def wrong_options(self):
        return json.loads(self.mc_options) if self.mc_options else []

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'name': self.name,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'utm_zone': self.utm_zone,
            'utm_easting': self.utm_easting,
            'utm_northing': self.utm_northing,
            'image_urls': self.images,
            'hint': self.hint,
            'difficulty': self.difficulty,
            'category': self.category,
            'order_index': self.order_index,
            'bearing_degrees': self.bearing_degrees,
            'distance_meters': self.distance_meters,
            'start_point_name': self.start_point_name,
            'start_point_image_urls': self.start_point_images,
            'start_point_latitude': self.start_point_latitude,
            'start_point_longitude': self.start_point_longitude,
        }


class Round(db.Model):
    __tablename__ = 'round'
    __table_args__ = (
        db.UniqueConstraint('game_id', 'round_number', name='uq_round_game_number'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey('location.id'), nullable=False)
    round_number = db.Column(db.Integer, nullable=False)  # 1-based
    mode = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default='pending')
    time_limit = db.Column(db.Integer, nullable=False)  # seconds
    countdown_ends_at = db.Column(db.BigInteger, nullable=True)
    started_at = db.Column(db.BigInteger, nullable=True)
    revealed_at = db.Column(db.BigInteger, nullable=True)
    completed_at = db.Column(db.BigInteger, nullable=True)
    # Multiple choice: option order fixed at import time
    mc_shuffled_options = db.Column(db.Text, nullable=True)  # JSON-encoded list
    mc_correct_index = db.Column(db.Integer, nullable=True)

    game = db.relationship('Game', back_populates='rounds')
    location = db.relationship('Location')
    guesses = db.relationship('Guess', back_populates='round', lazy='dynamic')

    @property
    def is_revealed(self):
        return self.status in ('reveal', 'completed')

    @property
    def shuffled_options(self):
        return json.loads(self.mc_shuffled_options) if self.mc_shuffled_options else []

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'location_id': self.location_id,
            'round_number': self.round_number,
            'mode': self.mode,
            'status': self.status,
            'time_limit': self.time_limit,
            'countdown_ends_at': self.countdown_ends_at,
            'started_at': self.started_at,
            'revealed_at': self.revealed_at,
            'completed_at': self.completed_at,
        }


class Team(db.Model):
    __tablename__ = 'team'
    __table_args__ = (
        db.UniqueConstraint('game_id', 'name', name='uq_team_game_name'),
        db.UniqueConstraint('game_id', 'session_id', name='uq_team_game_session'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    session_id = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    score = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    joined_at = db.Column(db.BigInteger, nullable=False, default=now_ms)
    last_seen_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    game = db.relationship('Game', back_populates='teams')

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'name': self.name,
            'score': self.score,
            'is_active': self.is_active,
            'joined_at': self.joined_at,
            'last_seen_at': self.last_seen_at,
        }


class Guess(db.Model):
    __tablename__ = 'guess'
    __table_args__ = (
        db.UniqueConstraint('round_id', 'team_id', name='uq_guess_round_team'),
    )
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False, index=True)
    guessed_utm_zone = db.Column(db.String(4), nullable=True)
    guessed_utm_easting = db.Column(db.Float, nullable=True)
    guessed_utm_northing = db.Column(db.Float, nullable=True)
    guessed_latitude = db.Column(db.Float, nullable=True)
    guessed_longitude = db.Column(db.Float, nullable=True)
    guessed_option_index = db.Column(db.Integer, nullable=True)
    guessed_option_name = db.Column(db.String(128), nullable=True)
    distance_meters = db.Column(db.Integer, nullable=False, default=0)
    distance_score = db.Column(db.Integer, nullable=False, default=0)
    time_bonus = db.Column(db.Integer, nullable=False, default=0)
    score = db.Column(db.Integer, nullable=False, default=0)
    response_time_ms = db.Column(db.Integer, nullable=False, default=0)
    submitted_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    round = db.relationship('Round', back_populates='guesses')
    team = db.relationship('Team')

    def to_dict(self, reveal=True):
        data = {
            'id': self.id,
            'round_id': self.round_id,
            'team_id': self.team_id,
            'guessed_utm_zone': self.guessed_utm_zone,
            'guessed_utm_easting': self.guessed_utm_easting,
            'guessed_utm_northing': self.guessed_utm_northing,
            'guessed_latitude': self.guessed_latitude,
            'guessed_longitude': self.guessed_longitude,
            'guessed_option_index': self.guessed_option_index,
            'guessed_option_name': self.guessed_option_name,
            'response_time_ms': self.response_time_ms,
            'submitted_at': self.submitted_at,
        }
        # Results stay hidden until the moderator reveals the round
        for key in ('distance_meters', 'distance_score', 'time_bonus', 'score'):
            data[key] = getattr(self, key) if reveal else None
        return data
