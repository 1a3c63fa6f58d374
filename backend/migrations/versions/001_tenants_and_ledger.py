"""Create tenants and tenant_migrations tables

Revision ID: 001_tenants_and_ledger
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_tenants_and_ledger'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Create Tenant table
    op.create_table('tenants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('subdomain', sa.String(length=63), nullable=False),
        sa.Column('schema_name', sa.String(length=63), nullable=False),
        sa.Column('contact_email', sa.String(length=255), nullable=False),
        sa.Column('contact_phone', sa.String(length=50), nullable=True),
        sa.Column('subscription_plan', sa.String(length=20), nullable=False, server_default='basic'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='trial'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('trial_ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('trial', 'active', 'suspended', 'expired')",
            name='valid_tenant_status_check'
        ),
        sa.CheckConstraint(
            "subscription_plan IN ('basic', 'professional', 'enterprise')",
            name='valid_subscription_plan_check'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('subdomain'),
        sa.UniqueConstraint('schema_name')
    )
    op.create_index('ix_tenants_subdomain', 'tenants', ['subdomain'], unique=True)
    op.create_index('ix_tenants_schema_name', 'tenants', ['schema_name'], unique=True)
    op.create_index('ix_tenants_active_status', 'tenants', ['is_active', 'status'], unique=False)

    # Create TenantMigration ledger table
    op.create_table('tenant_migrations',
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('migration_version', sa.String(length=50), nullable=False),
        sa.Column('migration_name', sa.String(length=255), nullable=False),
        sa.Column('executed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('tenant_id', 'migration_version')
    )
    op.create_index(
        'ix_tenant_migrations_tenant_executed', 'tenant_migrations',
        ['tenant_id', 'executed_at'], unique=False
    )


def downgrade():
    op.drop_index('ix_tenant_migrations_tenant_executed', table_name='tenant_migrations')
    op.drop_table('tenant_migrations')

    op.drop_index('ix_tenants_active_status', table_name='tenants')
    op.drop_index('ix_tenants_schema_name', table_name='tenants')
    op.drop_index('ix_tenants_subdomain', table_name='tenants')
    op.drop_table('tenants')
