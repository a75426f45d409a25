"""add row_version to user and session, widen counters to bigint

Revision ID: b61d4e2a9c07
Revises: 3a7c9e1f0b2d
Create Date: 2026-10-19 12:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b61d4e2a9c07'
down_revision = '3a7c9e1f0b2d'
branch_labels = None
depends_on = None

USER_COUNTERS = ('best_score', 'current_score', 'saved_points_total', 'hay_balance', 'total_achievements')
SESSION_COUNTERS = ('points', 'points_awarded')


def upgrade():
    with op.batch_alter_table('user') as batch_op:
        batch_op.add_column(sa.Column('row_version', sa.Integer(), nullable=False, server_default='1'))
        for name in USER_COUNTERS:
            batch_op.alter_column(name, existing_type=sa.Integer(), type_=sa.BigInteger(), existing_nullable=False)

    with op.batch_alter_table('session') as batch_op:
        batch_op.add_column(sa.Column('row_version', sa.Integer(), nullable=False, server_default='1'))
        for name in SESSION_COUNTERS:
            batch_op.alter_column(name, existing_type=sa.Integer(), type_=sa.BigInteger(), existing_nullable=True)


def downgrade():
    with op.batch_alter_table('session') as batch_op:
        for name in SESSION_COUNTERS:
            batch_op.alter_column(name, existing_type=sa.BigInteger(), type_=sa.Integer(), existing_nullable=True)
        batch_op.drop_column('row_version')

    with op.batch_alter_table('user') as batch_op:
        for name in USER_COUNTERS:
            batch_op.alter_column(name, existing_type=sa.BigInteger(), type_=sa.Integer(), existing_nullable=False)
        batch_op.drop_column('row_version')
