"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

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
    """
    Create initial database schema:
    - accounts: Owners with plan, limits and usage counters
    - links: Identifier -> destination mappings with QR settings and counters
    - scan_events: Retained scan history per link
    - issued_identifiers: Every identifier ever issued (never deleted)
    """
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('password_hash', sa.String(length=128), nullable=False),
        sa.Column('display_name', sa.String(length=50), nullable=False),
        sa.Column('plan', sa.String(length=20), nullable=False, server_default='free'),
        sa.Column('max_links', sa.Integer(), nullable=False),
        sa.Column('max_scans_per_month', sa.Integer(), nullable=False),
        sa.Column('can_customize', sa.Boolean(), nullable=False),
        sa.Column('can_track_analytics', sa.Boolean(), nullable=False),
        sa.Column('can_export_data', sa.Boolean(), nullable=False),
        sa.Column('links_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('monthly_scans', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_reset_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_accounts_email', 'accounts', ['email'], unique=True)

    op.create_table(
        'links',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('identifier', sa.String(length=20), nullable=False),
        sa.Column('destination_url', sa.Text(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=100), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('size', sa.Integer(), nullable=False, server_default='256'),
        sa.Column('error_correction_level', sa.String(length=1), nullable=False, server_default='M'),
        sa.Column('foreground_color', sa.String(length=7), nullable=False, server_default='#000000'),
        sa.Column('background_color', sa.String(length=7), nullable=False, server_default='#FFFFFF'),
        sa.Column('image_payload', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_premium', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('total_scans', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_scanned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['accounts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_links_identifier', 'links', ['identifier'], unique=True)
    op.create_index('ix_links_owner_id', 'links', ['owner_id'])
    op.create_index('ix_links_created_at', 'links', ['created_at'])

    op.create_table(
        'scan_events',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('link_id', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(['link_id'], ['links.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_scan_events_link_id', 'scan_events', ['link_id'])
    op.create_index('ix_scan_events_timestamp', 'scan_events', ['timestamp'])

    op.create_table(
        'issued_identifiers',
        sa.Column('identifier', sa.String(length=20), nullable=False),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('identifier')
    )


def downgrade() -> None:
    op.drop_table('issued_identifiers')
    op.drop_index('ix_scan_events_timestamp', table_name='scan_events')
    op.drop_index('ix_scan_events_link_id', table_name='scan_events')
    op.drop_table('scan_events')
    op.drop_index('ix_links_created_at', table_name='links')
    op.drop_index('ix_links_owner_id', table_name='links')
    op.drop_index('ix_links_identifier', table_name='links')
    op.drop_table('links')
    op.drop_index('ix_accounts_email', table_name='accounts')
    op.drop_table('accounts')
