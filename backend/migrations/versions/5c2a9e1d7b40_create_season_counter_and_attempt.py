"""create season_counter and attempt

Revision ID: 5c2a9e1d7b40
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e1d7b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'season_counter' not in existing_tables:
        op.create_table(
            'season_counter',
            sa.Column('key', sa.String(length=32), primary_key=True),
            sa.Column('season', sa.Integer(), nullable=False),
        )
        # The counter row is created on first read, at INITIAL_SEASON

    if 'attempt' not in existing_tables:
        op.create_table(
            'attempt',
            sa.Column('key', sa.String(length=160), primary_key=True),
            sa.Column('uid', sa.String(length=128), nullable=False),
            sa.Column('name', sa.String(length=128), nullable=True),
            sa.Column('email', sa.String(length=256), nullable=True),
            sa.Column('score', sa.Integer(), nullable=False),
            sa.Column('season', sa.Integer(), nullable=False),
            sa.Column('submitted_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
            sa.UniqueConstraint('uid', 'season', name='uq_attempt_uid_season'),
        )
        op.create_index('ix_attempt_uid', 'attempt', ['uid'])
        op.create_index('ix_attempt_season', 'attempt', ['season'])


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'attempt' in existing_tables:
        op.drop_index('ix_attempt_season', table_name='attempt')
        op.drop_index('ix_attempt_uid', table_name='attempt')
        op.drop_table('attempt')
    if 'season_counter' in existing_tables:
        op.drop_table('season_counter')
