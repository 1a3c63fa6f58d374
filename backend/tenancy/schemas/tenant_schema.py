"""
Tenant Schemas for Data Validation and Serialization

This module defines Marshmallow schemas for tenant provisioning input and
tenant output.

Schemas:
- TenantCreateSchema: For tenant provisioning (name, subdomain, contact, plan)
- TenantResponseSchema: For API/CLI responses
"""

from marshmallow import Schema, fields, validate, validates, ValidationError, pre_load, post_load

from tenancy.models.tenant import Tenant
from tenancy.tenant_db.schema_name import (
    SUBDOMAIN_MIN_LENGTH,
    SUBDOMAIN_PATTERN,
    max_subdomain_length,
)


class TenantCreateSchema(Schema):
    """
    Schema for tenant provisioning.

    The subdomain is stripped and lowercased before validation. The allowed
    length depends on the schema prefix, which is passed through the schema
    context key ``schema_prefix`` (defaults to ``tenant``).
    """
    name = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=255, error="Name must be between 1 and 255 characters")
    )
    subdomain = fields.Str(required=True)
    contact_email = fields.Email(
        required=True,
        validate=validate.Length(max=255, error="Email must not exceed 255 characters")
    )
    contact_phone = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=50, error="Phone must not exceed 50 characters")
    )
    subscription_plan = fields.Str(
        load_default=Tenant.PLAN_BASIC,
        validate=validate.OneOf(
            Tenant.VALID_PLANS,
            error="Plan must be one of: " + ', '.join(Tenant.VALID_PLANS)
        )
    )

    def __init__(self, *args, schema_prefix: str = 'tenant', **kwargs):
        super().__init__(*args, **kwargs)
        self.schema_prefix = schema_prefix

    @pre_load
    def normalize_subdomain(self, data, **kwargs):
        """Strip and lowercase the subdomain before field validation."""
        if isinstance(data, dict) and isinstance(data.get('subdomain'), str):
            data = dict(data)
            data['subdomain'] = data['subdomain'].strip().lower()
        return data

    @validates('name')
    def validate_name(self, value, **kwargs):
        """Validate name is not empty or whitespace only."""
        if not value or not value.strip():
            raise ValidationError("Name cannot be empty or whitespace")

    @validates('subdomain')
    def validate_subdomain(self, value, **kwargs):
        """
        Validate subdomain format.

        Requirements:
        - Lowercase letters, digits and single hyphens
        - No leading, trailing or consecutive hyphens
        - Short enough that the derived schema name fits the identifier limit
        """
        max_length = max_subdomain_length(self.schema_prefix)
        if not SUBDOMAIN_MIN_LENGTH <= len(value) <= max_length:
            raise ValidationError(
                f"Subdomain must be between {SUBDOMAIN_MIN_LENGTH} and {max_length} characters"
            )
        if not SUBDOMAIN_PATTERN.match(value):
            raise ValidationError(
                "Subdomain may only contain lowercase letters, digits and single hyphens, "
                "and must start and end with a letter or digit"
            )

    @post_load
    def normalize_data(self, data, **kwargs):
        """Normalize tenant data before returning."""
        data['name'] = data['name'].strip()
        data['contact_email'] = data['contact_email'].lower().strip()
        return data


class TenantResponseSchema(Schema):
    """
    Schema for tenant data in responses.
    """
    id = fields.UUID(dump_only=True)
    name = fields.Str(dump_only=True)
    subdomain = fields.Str(dump_only=True)
    schema_name = fields.Str(dump_only=True)
    contact_email = fields.Str(dump_only=True)
    contact_phone = fields.Str(dump_only=True, allow_none=True)
    subscription_plan = fields.Str(dump_only=True)
    status = fields.Str(dump_only=True)
    is_active = fields.Boolean(dump_only=True)
    trial_ends_at = fields.DateTime(dump_only=True, allow_none=True)
    created_at = fields.DateTime(dump_only=True)
    updated_at = fields.DateTime(dump_only=True)


tenant_response_schema = TenantResponseSchema()
tenants_response_schema = TenantResponseSchema(many=True)
