"""Initial schema - booking sync tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates the credential, webhook log, property hierarchy and reservation
tables. Every natural key gets a unique constraint; the insert-or-get helper
depends on them.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'auth_credentials',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'webhook_events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('event_id', sa.String(255), nullable=False),
        sa.Column('event_id_generated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('event_type', sa.String(100), nullable=True),
        sa.Column('external_booking_id', sa.String(255), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('result_action', sa.String(50), nullable=True),
        sa.Column('error_message', sa.String(1000), nullable=True),
        sa.Column('received_at', sa.DateTime(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('event_id'),
    )
    op.create_index('ix_webhook_events_processed', 'webhook_events', ['processed', 'received_at'])
    op.create_index('ix_webhook_events_booking', 'webhook_events', ['external_booking_id'])

    op.create_table(
        'properties',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('external_id', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('requires_setup', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('external_id', name='uq_properties_external_id'),
    )

    op.create_table(
        'room_types',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('property_id', sa.String(36), sa.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False),
        sa.Column('external_id', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('max_guests', sa.Integer(), nullable=True),
        sa.Column('requires_setup', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('property_id', 'external_id', name='uq_room_types_property_external'),
    )

    op.create_table(
        'room_units',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('room_type_id', sa.String(36), sa.ForeignKey('room_types.id', ondelete='CASCADE'), nullable=False),
        sa.Column('external_id', sa.String(100), nullable=False),
        sa.Column('unit_number', sa.String(50), nullable=False),
        sa.Column('floor_number', sa.Integer(), nullable=True),
        sa.Column('access_instructions', sa.Text(), nullable=True),
        sa.Column('requires_setup', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('room_type_id', 'external_id', name='uq_room_units_type_external'),
    )

    op.create_table(
        'reservations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('external_booking_id', sa.String(255), nullable=False),
        sa.Column('check_in_token', sa.String(64), nullable=False),
        sa.Column('property_id', sa.String(36), sa.ForeignKey('properties.id', ondelete='SET NULL'), nullable=True),
        sa.Column('room_type_id', sa.String(36), sa.ForeignKey('room_types.id', ondelete='SET NULL'), nullable=True),
        sa.Column('room_unit_id', sa.String(36), sa.ForeignKey('room_units.id', ondelete='SET NULL'), nullable=True),
        sa.Column('guest_given_name', sa.String(100), nullable=True),
        sa.Column('guest_family_name', sa.String(100), nullable=True),
        sa.Column('guest_email', sa.String(255), nullable=True),
        sa.Column('guest_phone', sa.String(50), nullable=True),
        sa.Column('lang', sa.String(10), nullable=True),
        sa.Column('check_in_date', sa.Date(), nullable=True),
        sa.Column('check_out_date', sa.Date(), nullable=True),
        sa.Column('num_guests', sa.Integer(), nullable=True),
        sa.Column('num_adults', sa.Integer(), nullable=True),
        sa.Column('num_children', sa.Integer(), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('currency', sa.String(3), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='new'),
        sa.Column('booking_source', sa.String(100), nullable=True),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('source_modified_at', sa.DateTime(), nullable=True),
        sa.Column('invitation_sent_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('external_booking_id', name='uq_reservations_external_booking_id'),
        sa.UniqueConstraint('check_in_token', name='uq_reservations_check_in_token'),
    )
    op.create_index('ix_reservations_check_in_date', 'reservations', ['check_in_date'])
    op.create_index('ix_reservations_status', 'reservations', ['status'])


def downgrade() -> None:
    op.drop_index('ix_reservations_status', table_name='reservations')
    op.drop_index('ix_reservations_check_in_date', table_name='reservations')
    op.drop_table('reservations')
    op.drop_table('room_units')
    op.drop_table('room_types')
    op.drop_table('properties')
    op.drop_index('ix_webhook_events_booking', table_name='webhook_events')
    op.drop_index('ix_webhook_events_processed', table_name='webhook_events')
    op.drop_table('webhook_events')
    op.drop_table('auth_credentials')
