"""Initial schema - businesses, catalog, clients, appointments, ledger and audit log.

Revision ID: 001
Revises:
Create Date: 2026-01-12

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    """Create booking tables."""
    op.create_table(
        'businesses',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('schedule', sa.JSON(), nullable=False),
        sa.Column('accepted_health_plans', sa.JSON(), nullable=False),
        sa.Column('client_active_limit', sa.Integer(), nullable=True),
        sa.Column('slot_granularity_minutes', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_businesses'))
    )
    op.create_index(op.f('ix_businesses_created_at'), 'businesses', ['created_at'], unique=False)

    op.create_table(
        'professionals',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('work_hours', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['business_id'], ['businesses.id'],
            name=op.f('fk_professionals_business_id_businesses'), ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_professionals'))
    )
    op.create_index(op.f('ix_professionals_business_id'), 'professionals', ['business_id'], unique=False)
    op.create_index(op.f('ix_professionals_created_at'), 'professionals', ['created_at'], unique=False)

    op.create_table(
        'services',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('accepted_health_plan_ids', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['business_id'], ['businesses.id'],
            name=op.f('fk_services_business_id_businesses'), ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_services'))
    )
    op.create_index(op.f('ix_services_business_id'), 'services', ['business_id'], unique=False)
    op.create_index(op.f('ix_services_created_at'), 'services', ['created_at'], unique=False)

    op.create_table(
        'service_professionals',
        sa.Column('service_id', sa.String(length=36), nullable=False),
        sa.Column('professional_id', sa.String(length=36), nullable=False),
        sa.ForeignKeyConstraint(
            ['service_id'], ['services.id'],
            name=op.f('fk_service_professionals_service_id_services'), ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['professional_id'], ['professionals.id'],
            name=op.f('fk_service_professionals_professional_id_professionals'), ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('service_id', 'professional_id', name=op.f('pk_service_professionals'))
    )

    op.create_table(
        'clients',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('health_plan_id', sa.String(length=36), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['business_id'], ['businesses.id'],
            name=op.f('fk_clients_business_id_businesses'), ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_clients')),
        sa.UniqueConstraint('business_id', 'phone', name='uq_clients_business_phone')
    )
    op.create_index(op.f('ix_clients_phone'), 'clients', ['phone'], unique=False)
    op.create_index(op.f('ix_clients_created_at'), 'clients', ['created_at'], unique=False)

    op.create_table(
        'appointments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('client_id', sa.String(length=36), nullable=False),
        sa.Column('service_id', sa.String(length=36), nullable=False),
        sa.Column('professional_id', sa.String(length=36), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_minute', sa.Integer(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='scheduled'),
        sa.Column('billing_type', sa.String(length=20), nullable=False, server_default='private'),
        sa.Column('health_plan_id', sa.String(length=36), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('canceled_by', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['business_id'], ['businesses.id'],
            name=op.f('fk_appointments_business_id_businesses'), ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], name=op.f('fk_appointments_client_id_clients')),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], name=op.f('fk_appointments_service_id_services')),
        sa.ForeignKeyConstraint(
            ['professional_id'], ['professionals.id'],
            name=op.f('fk_appointments_professional_id_professionals')
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_appointments'))
    )
    op.create_index(op.f('ix_appointments_business_id'), 'appointments', ['business_id'], unique=False)
    op.create_index(op.f('ix_appointments_status'), 'appointments', ['status'], unique=False)
    op.create_index(op.f('ix_appointments_created_at'), 'appointments', ['created_at'], unique=False)
    op.create_index('ix_appointments_professional_date', 'appointments', ['professional_id', 'date'], unique=False)
    op.create_index('ix_appointments_client_status', 'appointments', ['client_id', 'status'], unique=False)

    # At most one scheduled appointment per professional, date and start
    op.create_index(
        'uq_appointments_scheduled_slot',
        'appointments',
        ['professional_id', 'date', 'start_minute'],
        unique=True,
        sqlite_where=sa.text("status = 'scheduled'"),
        postgresql_where=sa.text("status = 'scheduled'"),
    )

    op.create_table(
        'blocked_date_ranges',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('professional_id', sa.String(length=36), nullable=True),
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('end_at', sa.DateTime(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['business_id'], ['businesses.id'],
            name=op.f('fk_blocked_date_ranges_business_id_businesses'), ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['professional_id'], ['professionals.id'],
            name=op.f('fk_blocked_date_ranges_professional_id_professionals'), ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_blocked_date_ranges'))
    )
    op.create_index(op.f('ix_blocked_date_ranges_created_at'), 'blocked_date_ranges', ['created_at'], unique=False)
    op.create_index(
        'ix_blocked_date_ranges_business_start', 'blocked_date_ranges', ['business_id', 'start_at'], unique=False
    )

    op.create_table(
        'professional_day_ledgers',
        sa.Column('professional_id', sa.String(length=36), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(
            ['professional_id'], ['professionals.id'],
            name=op.f('fk_professional_day_ledgers_professional_id_professionals'), ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('professional_id', 'date', name=op.f('pk_professional_day_ledgers'))
    )

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=False),
        sa.Column('actor', sa.String(length=100), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_audit_log'))
    )
    op.create_index(op.f('ix_audit_log_action'), 'audit_log', ['action'], unique=False)
    op.create_index(op.f('ix_audit_log_created_at'), 'audit_log', ['created_at'], unique=False)
    op.create_index('ix_audit_log_entity', 'audit_log', ['entity_type', 'entity_id'], unique=False)


def downgrade() -> None:
    """Drop booking tables."""
    op.drop_table('audit_log')
    op.drop_table('professional_day_ledgers')
    op.drop_table('blocked_date_ranges')
    op.drop_index('uq_appointments_scheduled_slot', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('clients')
    op.drop_table('service_professionals')
    op.drop_table('services')
    op.drop_table('professionals')
    op.drop_table('businesses')
