"""initial

Revision ID: 0001
Revises: 
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_REQUEST_PREDICATE = "status = 'pending' OR (status = 'approved' AND connection_status <> 'rejected')"

def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(150), nullable=True),
        sa.Column('last_name', sa.String(150), nullable=True),
        sa.Column('profile_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('id_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_table('connection_requests',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('sender_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receiver_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pair_low', sa.Integer, nullable=False),
        sa.Column('pair_high', sa.Integer, nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='pending'),
        sa.Column('connection_status', sa.String(32), nullable=False, server_default='pending'),
        sa.Column('initial_message', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now())
    )
    op.create_index('ix_connection_requests_sender_id', 'connection_requests', ['sender_id'])
    op.create_index('ix_connection_requests_receiver_id', 'connection_requests', ['receiver_id'])
    op.create_index('ix_connection_requests_created_at', 'connection_requests', ['created_at'])
    op.create_index('ix_connection_requests_pair', 'connection_requests', ['pair_low', 'pair_high'])
    op.create_index(
        'uix_connection_requests_active_pair',
        'connection_requests',
        ['pair_low', 'pair_high'],
        unique=True,
        postgresql_where=sa.text(ACTIVE_REQUEST_PREDICATE),
        sqlite_where=sa.text(ACTIVE_REQUEST_PREDICATE),
    )
    op.create_table('messages',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('sender_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receiver_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())
    )
    op.create_index('ix_messages_sender_id', 'messages', ['sender_id'])
    op.create_index('ix_messages_receiver_id', 'messages', ['receiver_id'])
    op.create_index('ix_messages_created_at', 'messages', ['created_at'])
    op.create_index('ix_messages_unread', 'messages', ['receiver_id', 'sender_id', 'is_read'])
    op.create_table('notifications',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('link', sa.String(255), nullable=True),
        sa.Column('payload', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('dedupe_key', sa.String(128), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'dedupe_key', name='uix_notification_dedupe')
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

def downgrade():
    op.drop_table('notifications')
    op.drop_table('messages')
    op.drop_table('connection_requests')
    op.drop_table('users')
