"""create user, session and withdrawal_notification tables

Revision ID: 3a7c9e1f0b2d
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3a7c9e1f0b2d'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('wallet_address', sa.String(length=128), primary_key=True),
        sa.Column('best_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('saved_points_total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('hay_balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_achievements', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_withdrawal_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
    )
    op.create_index('ix_user_created_at', 'user', ['created_at'])

    op.create_table(
        'session',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        # challenge variant
        sa.Column('expires_at', sa.BigInteger(), nullable=True),
        # play session variant
        sa.Column('wallet_address', sa.String(length=128), sa.ForeignKey('user.wallet_address'), nullable=True),
        sa.Column('started_at', sa.BigInteger(), nullable=True),
        sa.Column('last_heartbeat_at', sa.BigInteger(), nullable=True),
        sa.Column('elapsed_ms', sa.BigInteger(), nullable=True),
        sa.Column('is_alive', sa.Boolean(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=True),
        sa.Column('points_awarded', sa.Integer(), nullable=True),
        sa.Column('ended_at', sa.BigInteger(), nullable=True),
    )
    op.create_index('ix_session_type', 'session', ['type'])
    op.create_index('ix_session_wallet_address', 'session', ['wallet_address'])
    op.create_index('ix_session_last_heartbeat_at', 'session', ['last_heartbeat_at'])

    op.create_table(
        'withdrawal_notification',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('wallet_address', sa.String(length=128), sa.ForeignKey('user.wallet_address'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('claimed_at', sa.BigInteger(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_withdrawal_notification_wallet_address', 'withdrawal_notification', ['wallet_address'])
    op.create_index('ix_withdrawal_notification_status', 'withdrawal_notification', ['status'])


def downgrade():
    op.drop_table('withdrawal_notification')
    op.drop_table('session')
    op.drop_table('user')
