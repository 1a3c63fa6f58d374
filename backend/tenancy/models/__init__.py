"""
SQLAlchemy models for the tenant schema lifecycle engine.

This package contains the main-schema models:
- BaseModel: Abstract base class with common fields
- Tenant: Tenant organizations, one isolated schema each
- TenantMigration: Ledger of migrations applied to each tenant schema

Business tables inside tenant schemas are not models; they are created by
tenant migrations (see tenancy.tenant_db).
"""

from tenancy.models.base import BaseModel
from tenancy.models.tenant import Tenant
from tenancy.models.tenant_migration import TenantMigration

__all__ = [
    'BaseModel',
    'Tenant',
    'TenantMigration',
]
