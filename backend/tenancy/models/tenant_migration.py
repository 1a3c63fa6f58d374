"""
TenantMigration Model

This module defines the migration ledger: one row per (tenant, migration version)
pair that has been applied to the tenant's schema.

Key features:
- Composite primary key (tenant_id, migration_version) prevents duplicate entries
- Cascading delete when the tenant is removed
- Rows are inserted by the migration runner and deleted only by rollback

Storage:
- Stored in the main schema next to the tenants table
"""

import logging
from sqlalchemy import String, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship

from .base import utcnow
from ..extensions import db

logger = logging.getLogger(__name__)


class TenantMigration(db.Model):
    """
    Ledger entry recording that a migration was applied to a tenant schema.

    Attributes:
        tenant_id (UUID): Foreign key to tenants.id (part of composite primary key)
        migration_version (str): Version of the applied migration (part of composite primary key)
        migration_name (str): Name of the migration at the time it was applied
        executed_at (datetime): UTC timestamp when the migration was committed

    Relationships:
        tenant: Reference to Tenant model
    """

    __tablename__ = 'tenant_migrations'

    # Composite Primary Key
    tenant_id = db.Column(
        Uuid(as_uuid=True),
        ForeignKey('tenants.id', ondelete='CASCADE'),
        primary_key=True,
        nullable=False
    )
    migration_version = db.Column(String(50), primary_key=True, nullable=False)

    # Fields
    migration_name = db.Column(String(255), nullable=False)
    executed_at = db.Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    tenant = relationship('Tenant', back_populates='migrations')

    __table_args__ = (
        Index('ix_tenant_migrations_tenant_executed', 'tenant_id', 'executed_at'),
    )

    def to_dict(self) -> dict:
        """
        Convert the ledger entry to a dictionary for JSON serialization.

        Returns:
            Dictionary with tenant_id, version, name and executed_at
        """
        return {
            'tenant_id': str(self.tenant_id),
            'version': self.migration_version,
            'name': self.migration_name,
            'executed_at': self.executed_at.isoformat() if self.executed_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<TenantMigration(tenant_id={self.tenant_id}, "
            f"version='{self.migration_version}', name='{self.migration_name}')>"
        )
