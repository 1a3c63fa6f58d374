"""
Health Schemas for Serialization

Read-only Marshmallow schemas used to render schema statistics and
health checks.

Schemas:
- SchemaStatsSchema: Table count, row count and size of a tenant schema
- SchemaHealthSchema: Health of the main database or of one schema
- TenantHealthSchema: Health of one tenant's schema
"""

from marshmallow import Schema, fields


class SchemaStatsSchema(Schema):
    schema_name = fields.Str(dump_only=True)
    tables = fields.Integer(dump_only=True)
    total_rows = fields.Integer(dump_only=True)
    size_bytes = fields.Integer(dump_only=True)
    size_mb = fields.Float(dump_only=True)


class SchemaHealthSchema(Schema):
    target = fields.Str(dump_only=True)
    healthy = fields.Boolean(dump_only=True)
    error = fields.Str(dump_only=True, allow_none=True)


class TenantHealthSchema(Schema):
    tenant_id = fields.Str(dump_only=True)
    subdomain = fields.Str(dump_only=True)
    schema_name = fields.Str(dump_only=True, allow_none=True)
    healthy = fields.Boolean(dump_only=True)
    error = fields.Str(dump_only=True, allow_none=True)


schema_stats_schema = SchemaStatsSchema()
schema_health_schema = SchemaHealthSchema()
tenant_health_schema = TenantHealthSchema()
tenants_health_schema = TenantHealthSchema(many=True)
