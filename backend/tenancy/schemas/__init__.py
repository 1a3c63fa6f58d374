"""
Marshmallow schemas for data validation and serialization.

This package contains the validation and output schemas of the tenant schema
lifecycle engine:
- tenant_schema: Tenant provisioning input and tenant responses
- migration_schema: Migration definitions, status reports, history and fleet reports
- health_schema: Schema statistics and health checks
"""

from tenancy.schemas.tenant_schema import (
    TenantCreateSchema,
    TenantResponseSchema,
    tenant_response_schema,
    tenants_response_schema,
)

from tenancy.schemas.migration_schema import (
    MigrationDefinitionSchema,
    MigrationStatusSchema,
    LedgerEntrySchema,
    TenantMigrationOutcomeSchema,
    FleetReportSchema,
    migration_definition_schema,
    migration_definitions_schema,
    migration_status_schema,
    ledger_entries_schema,
    fleet_report_schema,
)

from tenancy.schemas.health_schema import (
    SchemaStatsSchema,
    SchemaHealthSchema,
    TenantHealthSchema,
    schema_stats_schema,
    schema_health_schema,
    tenant_health_schema,
    tenants_health_schema,
)

__all__ = [
    # Tenant schemas
    'TenantCreateSchema',
    'TenantResponseSchema',
    'tenant_response_schema',
    'tenants_response_schema',
    # Migration schemas
    'MigrationDefinitionSchema',
    'MigrationStatusSchema',
    'LedgerEntrySchema',
    'TenantMigrationOutcomeSchema',
    'FleetReportSchema',
    'migration_definition_schema',
    'migration_definitions_schema',
    'migration_status_schema',
    'ledger_entries_schema',
    'fleet_report_schema',
    # Health schemas
    'SchemaStatsSchema',
    'SchemaHealthSchema',
    'TenantHealthSchema',
    'schema_stats_schema',
    'schema_health_schema',
    'tenant_health_schema',
    'tenants_health_schema',
]
