"""001 Booking lifecycle - bookings, status history, email dedup ledger

Revision ID: 001_booking_lifecycle
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_booking_lifecycle'
down_revision = None
branch_labels = None
depends_on = None

BOOKING_STATUSES = (
    'pending', 'pending_deposit', 'paid_deposit', 'accepted',
    'rejected', 'postponed', 'cancelled', 'finished',
)


def upgrade():
    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=True),
        sa.Column('start_date', sa.BigInteger(), nullable=False),
        sa.Column('end_date', sa.BigInteger(), nullable=True),
        sa.Column(
            'status',
            sa.Enum(*BOOKING_STATUSES, name='booking_status', native_enum=False, length=20, create_constraint=True),
            nullable=False,
            server_default='pending',
        ),
        sa.Column('response_token', sa.String(64), nullable=False, unique=True),
        sa.Column('token_expires_at', sa.BigInteger(), nullable=True),
        sa.Column('deposit_evidence_url', sa.Text(), nullable=True),
        sa.Column('checked_in_at', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
    )
    op.create_index('ix_bookings_status_start_date', 'bookings', ['status', 'start_date'])
    
    op.create_table(
        'booking_status_history',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('booking_id', sa.String(36), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('old_status', sa.String(20), nullable=False),
        sa.Column('new_status', sa.String(20), nullable=False),
        sa.Column('changed_by', sa.String(100), nullable=False, server_default='system'),
        sa.Column('change_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
    )
    op.create_index('ix_booking_status_history_booking_id', 'booking_status_history', ['booking_id'])
    
    # The unique constraint is the dedup guarantee across processes
    op.create_table(
        'email_sent_log',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('booking_id', sa.String(36), nullable=True),
        sa.Column('booking_key', sa.String(36), nullable=False, server_default=''),
        sa.Column('email_type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('recipient_email', sa.String(255), nullable=False),
        sa.Column('sent_at', sa.BigInteger(), nullable=False),
        sa.Column('window_bucket', sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            'booking_key', 'email_type', 'status', 'recipient_email', 'window_bucket',
            name='uq_email_sent_log_key_window',
        ),
    )
    op.create_index('ix_email_sent_log_booking_id', 'email_sent_log', ['booking_id'])
    op.create_index(
        'ix_email_sent_log_lookup',
        'email_sent_log',
        ['booking_key', 'email_type', 'status', 'recipient_email', 'sent_at'],
    )


def downgrade():
    op.drop_index('ix_email_sent_log_lookup', table_name='email_sent_log')
    op.drop_index('ix_email_sent_log_booking_id', table_name='email_sent_log')
    op.drop_table('email_sent_log')
    op.drop_index('ix_booking_status_history_booking_id', table_name='booking_status_history')
    op.drop_table('booking_status_history')
    op.drop_index('ix_bookings_status_start_date', table_name='bookings')
    op.drop_table('bookings')
