"""
Services Package - Business Logic Layer

Available Services:
- TenantRegistry: Tenant lookup, validation and caching
- TenantService: Tenant provisioning (schema + tenant row)
- MigrationService: Engine facade (tenancy.services.migration_service), built by
  the application factory and returned by get_migration_service()

migration_service is not imported here because it depends on tenancy.tenant_db,
which itself depends on the registry in this package.
"""

from tenancy.services.tenant_registry import TenantInfo, TenantRegistry
from tenancy.services.tenant_service import TenantService

__all__ = [
    'TenantInfo',
    'TenantRegistry',
    'TenantService',
]
