"""
Migration Schemas for Serialization

Read-only Marshmallow schemas used to render migration engine results.

Schemas:
- MigrationDefinitionSchema: One registered migration
- MigrationStatusSchema: Executed/pending/total report for one tenant
- LedgerEntrySchema: One row of a tenant's migration history
- TenantMigrationOutcomeSchema: Result of one tenant in a fleet run
- FleetReportSchema: Result of a fleet run
"""

from marshmallow import Schema, fields


class MigrationDefinitionSchema(Schema):
    version = fields.Str(dump_only=True)
    name = fields.Str(dump_only=True)
    description = fields.Str(dump_only=True)
    reversible = fields.Boolean(dump_only=True)


class MigrationStatusSchema(Schema):
    """
    Status report for one tenant.

    executed and pending are in registry order; unknown lists ledger versions
    with no registered definition.
    """
    tenant_id = fields.Str(dump_only=True)
    schema_name = fields.Str(dump_only=True)
    executed = fields.List(fields.Str(), dump_only=True)
    pending = fields.List(fields.Str(), dump_only=True)
    total = fields.Integer(dump_only=True)
    unknown = fields.List(fields.Str(), dump_only=True)


class LedgerEntrySchema(Schema):
    version = fields.Str(dump_only=True)
    name = fields.Str(dump_only=True)
    executed_at = fields.DateTime(dump_only=True)


class TenantMigrationOutcomeSchema(Schema):
    tenant_id = fields.Str(dump_only=True)
    subdomain = fields.Str(dump_only=True, allow_none=True)
    status = fields.Str(dump_only=True)
    applied = fields.List(fields.Str(), dump_only=True)
    failed_version = fields.Str(dump_only=True, allow_none=True)
    error = fields.Str(dump_only=True, allow_none=True)


class FleetReportSchema(Schema):
    """
    Result of running pending migrations for every active tenant.
    """
    dry_run = fields.Boolean(dump_only=True)
    total = fields.Integer(dump_only=True)
    failed_count = fields.Integer(dump_only=True)
    outcomes = fields.Dict(
        keys=fields.Str(),
        values=fields.Nested(TenantMigrationOutcomeSchema),
        dump_only=True
    )


migration_definition_schema = MigrationDefinitionSchema()
migration_definitions_schema = MigrationDefinitionSchema(many=True)
migration_status_schema = MigrationStatusSchema()
ledger_entries_schema = LedgerEntrySchema(many=True)
fleet_report_schema = FleetReportSchema()
