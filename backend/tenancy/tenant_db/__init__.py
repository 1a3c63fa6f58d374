"""
Tenant Schema Migrations Package

This package contains the migration system for the tables created inside
each tenant schema (customers, invoices, accounting, ...).

Modules:
- schema_name: SchemaName type and subdomain -> schema name derivation
- tenant_migrations: MigrationDefinition and MigrationRegistry
- builtin_migrations: Built-in migration catalog
- ledger: MigrationLedger (tenant_migrations table)
- runner: MigrationRunner and FleetRunner
- rollback: RollbackCoordinator
- status: StatusReporter
- health: HealthChecker (main database and tenant schemas)

Only the leaf modules are re-exported here; import the runner, rollback,
status and health modules directly.
"""

from tenancy.tenant_db.schema_name import SchemaName, derive_schema_name
from tenancy.tenant_db.tenant_migrations import (
    MigrationDefinition,
    MigrationRegistry,
    version_sort_key,
)

__all__ = [
    'SchemaName',
    'derive_schema_name',
    'MigrationDefinition',
    'MigrationRegistry',
    'version_sort_key',
]
