"""Initial booking engine schema.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

Creates:
- firms (booking policy: timezone, buffer_minutes)
- users (lawyers, admins, staff, clients)
- availability_templates (weekly windows, soft delete)
- blocked_ranges
- appointment_types
- appointments
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column(
        'created_at', sa.DateTime(timezone=True),
        server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False,
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        'updated_at', sa.DateTime(timezone=True),
        server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False,
    )


def upgrade() -> None:
    # ==========================================================================
    # firms / users
    # ==========================================================================
    op.create_table(
        'firms',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('timezone', sa.String(50), server_default=sa.text("'UTC'"), nullable=False),
        sa.Column('buffer_minutes', sa.Integer(), server_default=sa.text('15'), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('firm_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['firm_id'], ['firms.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_users_firm_role', 'users', ['firm_id', 'role'])

    # ==========================================================================
    # availability
    # ==========================================================================
    op.create_table(
        'availability_templates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('lawyer_id', sa.Uuid(), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['lawyer_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_template_day_of_week'),
        sa.CheckConstraint('start_time < end_time', name='ck_template_time_order'),
    )
    op.create_index(
        'idx_availability_templates_lawyer_day',
        'availability_templates',
        ['lawyer_id', 'day_of_week', 'is_active'],
    )

    op.create_table(
        'blocked_ranges',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('lawyer_id', sa.Uuid(), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reason', sa.String(255), nullable=False),
        sa.Column('is_full_day', sa.Boolean(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['lawyer_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('start_at <= end_at', name='ck_blocked_range_order'),
    )
    op.create_index(
        'idx_blocked_ranges_lawyer_window',
        'blocked_ranges',
        ['lawyer_id', 'start_at', 'end_at'],
    )

    # ==========================================================================
    # appointments
    # ==========================================================================
    op.create_table(
        'appointment_types',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('firm_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('color', sa.String(7), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['firm_id'], ['firms.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_appointment_types_firm', 'appointment_types', ['firm_id', 'is_active'])

    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('firm_id', sa.Uuid(), nullable=False),
        sa.Column('lawyer_id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=True),
        sa.Column('appointment_type_id', sa.Uuid(), nullable=True),
        sa.Column('case_id', sa.Uuid(), nullable=True),

        # Client snapshot
        sa.Column('client_name', sa.String(200), nullable=False),
        sa.Column('client_email', sa.String(255), nullable=False),
        sa.Column('client_phone', sa.String(20), nullable=True),

        # Schedule
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),

        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_by_id', sa.Uuid(), nullable=True),

        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('internal_notes', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),

        sa.ForeignKeyConstraint(['firm_id'], ['firms.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['lawyer_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['cancelled_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(
            ['appointment_type_id'], ['appointment_types.id'], ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('start_time < end_time', name='ck_appointment_time_order'),
    )
    op.create_index(
        'idx_appointments_lawyer_window',
        'appointments',
        ['lawyer_id', 'start_time', 'end_time'],
    )
    op.create_index('idx_appointments_firm_start', 'appointments', ['firm_id', 'start_time'])
    op.create_index('idx_appointments_client', 'appointments', ['client_id'])


def downgrade() -> None:
    op.drop_table('appointments')
    op.drop_table('appointment_types')
    op.drop_table('blocked_ranges')
    op.drop_table('availability_templates')
    op.drop_table('users')
    op.drop_table('firms')
