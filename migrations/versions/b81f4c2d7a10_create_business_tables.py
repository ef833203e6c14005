"""create clients, projects, employees and orders tables

Revision ID: b81f4c2d7a10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'b81f4c2d7a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ORDER_STATUS_VALUES = ('pending', 'in-progress', 'completed', 'delivered', 'cancelled')


def _audit_columns():
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def _audit_indexes(table: str):
    op.create_index(f'ix_{table}_tenant_id', table, ['tenant_id'])
    op.create_index(f'ix_{table}_created_at', table, ['created_at'])


def upgrade() -> None:
    enum_values = ", ".join(f"'{v}'" for v in ORDER_STATUS_VALUES)
    op.execute(f"DO $$ BEGIN IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'orderstatus') THEN CREATE TYPE orderstatus AS ENUM ({enum_values}); END IF; END $$;")

    op.create_table(
        'clients',
        *_audit_columns(),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('company', sa.String(), nullable=True),
        sa.Column('tags', postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column('budget', sa.Numeric(12, 2), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
    )
    _audit_indexes('clients')

    op.create_table(
        'projects',
        *_audit_columns(),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('budget', sa.Numeric(12, 2), nullable=True),
        sa.Column('deadline', sa.Date(), nullable=True),
        sa.Column('requirements', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
    )
    _audit_indexes('projects')
    op.create_index('ix_projects_client_id', 'projects', ['client_id'])

    op.create_table(
        'employees',
        *_audit_columns(),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('skills', postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column('experience', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
    )
    _audit_indexes('employees')

    op.create_table(
        'orders',
        *_audit_columns(),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('deadline', sa.Date(), nullable=True),
        sa.Column('status', postgresql.ENUM(*ORDER_STATUS_VALUES, name='orderstatus', create_type=False), nullable=False),
        # No foreign keys: orders outlive deleted clients, projects and employees
        sa.Column('client_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('employee_id', postgresql.UUID(as_uuid=True), nullable=False),
    )
    _audit_indexes('orders')
    op.create_index('ix_orders_client_id', 'orders', ['client_id'])
    op.create_index('ix_orders_project_id', 'orders', ['project_id'])
    op.create_index('ix_orders_employee_id', 'orders', ['employee_id'])


def downgrade() -> None:
    op.drop_table('orders')
    op.drop_table('employees')
    op.drop_table('projects')
    op.drop_table('clients')
    op.execute("DROP TYPE IF EXISTS orderstatus")
