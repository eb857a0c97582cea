"""create game, player, round, submission, vote and category tables

Revision ID: 5c2e9a7b1f30
Revises:
Create Date: 2025-09-02 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a7b1f30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())
    # Databases created with `flask db-reset` already have the schema
    if 'game' in existing_tables:
        return

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('room_code', sa.String(length=4), nullable=False),
        sa.Column('gm_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=True),
        sa.Column('total_rounds', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('game') as batch_op:
        batch_op.create_index(batch_op.f('ix_game_room_code'), ['room_code'], unique=False)

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('player_uid', sa.String(length=36), nullable=False),
        sa.Column('connection_id', sa.String(length=64), nullable=True),
        sa.Column('nickname', sa.String(length=64), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('final_score', sa.Integer(), nullable=False),
        sa.Column('is_connected', sa.Boolean(), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=True),
        sa.Column('left_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('player') as batch_op:
        batch_op.create_index(batch_op.f('ix_player_player_uid'), ['player_uid'], unique=True)
        batch_op.create_index(batch_op.f('ix_player_game_id'), ['game_id'], unique=False)

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('submission_ended_at', sa.DateTime(), nullable=True),
        sa.Column('voting_ended_at', sa.DateTime(), nullable=True),
        sa.Column('results_shown_at', sa.DateTime(), nullable=True),
        sa.Column('total_submissions', sa.Integer(), nullable=True),
        sa.Column('total_votes', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_id', 'round_number'),
    )
    with op.batch_alter_table('round') as batch_op:
        batch_op.create_index(batch_op.f('ix_round_game_id'), ['game_id'], unique=False)

    op.create_table(
        'submission',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('exemplar', sa.Text(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('points_earned', sa.Integer(), nullable=True),
        sa.Column('yes_votes', sa.Integer(), nullable=True),
        sa.Column('no_votes', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['player_id'], ['player.id']),
        sa.ForeignKeyConstraint(['round_id'], ['round.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('round_id', 'player_id'),
    )
    with op.batch_alter_table('submission') as batch_op:
        batch_op.create_index(batch_op.f('ix_submission_round_id'), ['round_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_submission_player_id'), ['player_id'], unique=False)

    op.create_table(
        'vote',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('voter_player_id', sa.Integer(), nullable=False),
        sa.Column('vote', sa.Boolean(), nullable=False),
        sa.Column('voted_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['submission_id'], ['submission.id']),
        sa.ForeignKeyConstraint(['voter_player_id'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('submission_id', 'voter_player_id'),
    )
    with op.batch_alter_table('vote') as batch_op:
        batch_op.create_index(batch_op.f('ix_vote_submission_id'), ['submission_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_vote_voter_player_id'), ['voter_player_id'], unique=False)

    op.create_table(
        'category',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('submitted_by_player_id', sa.Integer(), nullable=True),
        sa.Column('category_text', sa.String(length=64), nullable=False),
        sa.Column('is_preset', sa.Boolean(), nullable=False),
        sa.Column('was_used', sa.Boolean(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['submitted_by_player_id'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('category') as batch_op:
        batch_op.create_index(batch_op.f('ix_category_game_id'), ['game_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_category_was_used'), ['was_used'], unique=False)


def downgrade():
    op.drop_table('category')
    op.drop_table('vote')
    op.drop_table('submission')
    op.drop_table('round')
    op.drop_table('player')
    op.drop_table('game')
