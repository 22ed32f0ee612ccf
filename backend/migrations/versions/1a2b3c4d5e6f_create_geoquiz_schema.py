"""create geoquiz schema: user, game, location, round, team, guess

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a2b3c4d5e6f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('join_code', sa.String(length=6), nullable=False),
        sa.Column('moderator_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('current_round_index', sa.Integer(), nullable=False),
        sa.Column('default_time_limit', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('started_at', sa.BigInteger(), nullable=True),
        sa.Column('finished_at', sa.BigInteger(), nullable=True),
    )
    op.create_index('ix_game_join_code', 'game', ['join_code'], unique=True)
    op.create_index('ix_game_moderator_id', 'game', ['moderator_id'])

    op.create_table(
        'location',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('utm_zone', sa.String(length=4), nullable=False),
        sa.Column('utm_easting', sa.Float(), nullable=False),
        sa.Column('utm_northing', sa.Float(), nullable=False),
        sa.Column('image_urls', sa.Text(), nullable=False),
        sa.Column('hint', sa.Text(), nullable=True),
        sa.Column('difficulty', sa.String(length=16), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.Column('bearing_degrees', sa.Float(), nullable=True),
        sa.Column('distance_meters', sa.Float(), nullable=True),
        sa.Column('start_point_name', sa.String(length=128), nullable=True),
        sa.Column('start_point_image_urls', sa.Text(), nullable=True),
        sa.Column('start_point_latitude', sa.Float(), nullable=True),
        sa.Column('start_point_longitude', sa.Float(), nullable=True),
        sa.Column('mc_options', sa.Text(), nullable=True),
    )
    op.create_index('ix_location_game_id', 'location', ['game_id'])

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('location.id'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('mode', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('time_limit', sa.Integer(), nullable=False),
        sa.Column('countdown_ends_at', sa.BigInteger(), nullable=True),
        sa.Column('started_at', sa.BigInteger(), nullable=True),
        sa.Column('revealed_at', sa.BigInteger(), nullable=True),
        sa.Column('completed_at', sa.BigInteger(), nullable=True),
        sa.Column('mc_shuffled_options', sa.Text(), nullable=True),
        sa.Column('mc_correct_index', sa.Integer(), nullable=True),
        sa.UniqueConstraint('game_id', 'round_number', name='uq_round_game_number'),
    )
    op.create_index('ix_round_game_id', 'round', ['game_id'])

    op.create_table(
        'team',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('session_id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('joined_at', sa.BigInteger(), nullable=False),
        sa.Column('last_seen_at', sa.BigInteger(), nullable=False),
        sa.UniqueConstraint('game_id', 'name', name='uq_team_game_name'),
        sa.UniqueConstraint('game_id', 'session_id', name='uq_team_game_session'),
    )
    op.create_index('ix_team_game_id', 'team', ['game_id'])

    op.create_table(
        'guess',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('round_id', sa.Integer(), sa.ForeignKey('round.id'), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id'), nullable=False),
        sa.Column('guessed_utm_zone', sa.String(length=4), nullable=True),
        sa.Column('guessed_utm_easting', sa.Float(), nullable=True),
        sa.Column('guessed_utm_northing', sa.Float(), nullable=True),
        sa.Column('guessed_latitude', sa.Float(), nullable=True),
        sa.Column('guessed_longitude', sa.Float(), nullable=True),
        sa.Column('guessed_option_index', sa.Integer(), nullable=True),
        sa.Column('guessed_option_name', sa.String(length=128), nullable=True),
        sa.Column('distance_meters', sa.Integer(), nullable=False),
        sa.Column('distance_score', sa.Integer(), nullable=False),
        sa.Column('time_bonus', sa.Integer(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('response_time_ms', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.BigInteger(), nullable=False),
        sa.UniqueConstraint('round_id', 'team_id', name='uq_guess_round_team'),
    )
    op.create_index('ix_guess_round_id', 'guess', ['round_id'])
    op.create_index('ix_guess_team_id', 'guess', ['team_id'])


def downgrade():
    op.drop_table('guess')
    op.drop_table('team')
    op.drop_table('round')
    op.drop_table('location')
    op.drop_table('game')
    op.drop_table('user')
