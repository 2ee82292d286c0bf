"""initial schema

Revision ID: 001
Revises: 
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create venues table
    op.create_table('venues',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    # Create tables table
    op.create_table('tables',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('venue_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.ForeignKeyConstraint(['venue_id'], ['venues.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('venue_id', 'name', name='uq_table_venue_name')
    )
    op.create_index(op.f('ix_tables_venue_id'), 'tables', ['venue_id'], unique=False)

    # Create profiles table
    op.create_table('profiles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('venue_id', sa.Integer(), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['venue_id'], ['venues.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_profiles_venue_id'), 'profiles', ['venue_id'], unique=False)

    # Create menus table
    op.create_table('menus',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('venue_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('is_hidden', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['venue_id'], ['venues.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_menus_venue_id'), 'menus', ['venue_id'], unique=False)

    # Create pricing_policies table
    op.create_table('pricing_policies',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('venue_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('set_fee', sa.Integer(), nullable=False),
        sa.Column('set_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('extension_fee', sa.Integer(), nullable=False),
        sa.Column('extension_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('nomination_fee', sa.Integer(), nullable=False),
        sa.Column('nomination_set_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('companion_fee', sa.Integer(), nullable=False),
        sa.Column('companion_set_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('escort_fee', sa.Integer(), nullable=False),
        sa.Column('escort_set_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['venue_id'], ['venues.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_pricing_policies_venue_id'), 'pricing_policies', ['venue_id'], unique=False)

    # Create bill_settings table
    op.create_table('bill_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('venue_id', sa.Integer(), nullable=False),
        sa.Column('service_rate', sa.Numeric(precision=6, scale=4), nullable=False),
        sa.Column('tax_rate', sa.Numeric(precision=6, scale=4), nullable=False),
        sa.Column('rounding_enabled', sa.Boolean(), nullable=False),
        sa.Column('rounding_method', sa.String(length=8), nullable=False),
        sa.Column('rounding_unit', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['venue_id'], ['venues.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('venue_id')
    )

    # Create table_sessions table
    op.create_table('table_sessions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('venue_id', sa.Integer(), nullable=False),
        sa.Column('table_id', sa.Integer(), nullable=True),
        sa.Column('main_guest_id', sa.String(length=36), nullable=True),
        sa.Column('guest_count', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('pricing_policy_id', sa.String(length=36), nullable=True),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['venue_id'], ['venues.id'], ),
        sa.ForeignKeyConstraint(['table_id'], ['tables.id'], ),
        sa.ForeignKeyConstraint(['main_guest_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['pricing_policy_id'], ['pricing_policies.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_table_sessions_venue_id'), 'table_sessions', ['venue_id'], unique=False)
    op.create_index(op.f('ix_table_sessions_table_id'), 'table_sessions', ['table_id'], unique=False)
    op.create_index(op.f('ix_table_sessions_status'), 'table_sessions', ['status'], unique=False)

    # Create session_guests table
    op.create_table('session_guests',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('guest_id', sa.String(length=36), nullable=True),
        sa.Column('guest_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['table_sessions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['guest_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'guest_id', name='uq_session_guest')
    )
    op.create_index(op.f('ix_session_guests_session_id'), 'session_guests', ['session_id'], unique=False)

    # Create orders table (the session ledger)
    op.create_table('orders',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('menu_id', sa.String(length=36), nullable=True),
        sa.Column('item_name', sa.String(length=255), nullable=True),
        sa.Column('category', sa.String(length=16), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('guest_id', sa.String(length=36), nullable=True),
        sa.Column('session_guest_id', sa.String(length=36), nullable=True),
        sa.Column('staff_id', sa.String(length=36), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=True),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('engagement_status', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['table_sessions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['menu_id'], ['menus.id'], ),
        sa.ForeignKeyConstraint(['guest_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['session_guest_id'], ['session_guests.id'], ),
        sa.ForeignKeyConstraint(['staff_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_orders_session_category', 'orders', ['session_id', 'category'], unique=False)
    op.create_index('ix_orders_session_guest', 'orders', ['session_id', 'session_guest_id'], unique=False)


def downgrade() -> None:
    op.drop_table('orders')
    op.drop_table('session_guests')
    op.drop_table('table_sessions')
    op.drop_table('bill_settings')
    op.drop_table('pricing_policies')
    op.drop_table('menus')
    op.drop_table('profiles')
    op.drop_table('tables')
    op.drop_table('venues')
