"""
Exception hierarchy for tenant provisioning and tenant schema migrations.

Every error carries a stable machine-readable ``code`` and an HTTP-like
``status_code`` so that callers (service layer, CLI) can render accurate
diagnostics without parsing messages. ``to_dict()`` produces the same
``{code, message, details}`` body used by the platform's JSON error responses.
"""

from typing import Any, Dict, Optional


class TenancyError(Exception):
    """Base exception for the tenant schema lifecycle engine."""

    code = 'TENANCY_ERROR'
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body = {
            'code': self.code,
            'message': self.message,
        }
        if self.details is not None:
            body['details'] = self.details
        return body


# ============================================================================
# Provisioning
# ============================================================================

class TenantValidationError(TenancyError):
    """Tenant creation payload is invalid."""
    code = 'VALIDATION_ERROR'
    status_code = 400


class InvalidSubdomainError(TenantValidationError):
    """Subdomain does not match the allowed charset or length bounds."""
    code = 'INVALID_SUBDOMAIN_FORMAT'


class SubdomainReservedError(TenantValidationError):
    """Subdomain is in the reserved-word list."""
    code = 'SUBDOMAIN_RESERVED'


class SubdomainTakenError(TenantValidationError):
    """Subdomain (or the schema name derived from it) is already in use."""
    code = 'SUBDOMAIN_TAKEN'
    status_code = 409


class ProvisioningError(TenancyError):
    """Schema creation or tenant row insertion failed."""
    code = 'TENANT_PROVISIONING_FAILED'


class UnsupportedDialectError(TenancyError):
    """The backing store has no notion of per-tenant schemas we know how to manage."""
    code = 'UNSUPPORTED_DIALECT'


class SchemaStatsError(TenancyError):
    """Statistics of a tenant schema could not be read (missing schema or query failure)."""
    code = 'TENANT_STATS_ERROR'


# ============================================================================
# Tenant registry
# ============================================================================

class TenantRejected(TenancyError):
    """Tenant exists (or not) but may not be operated on."""
    code = 'TENANT_REJECTED'
    status_code = 403

    def __init__(self, identifier: str, message: Optional[str] = None):
        super().__init__(message or f"Tenant {identifier} rejected")
        self.identifier = identifier


class TenantNotFound(TenantRejected):
    code = 'TENANT_NOT_FOUND'
    status_code = 404

    def __init__(self, identifier: str):
        super().__init__(identifier, f"Tenant not found: {identifier}")


class TenantInactive(TenantRejected):
    code = 'TENANT_INACTIVE'

    def __init__(self, identifier: str):
        super().__init__(identifier, f"Tenant is inactive: {identifier}")


class TenantSuspended(TenantRejected):
    code = 'TENANT_SUSPENDED'

    def __init__(self, identifier: str):
        super().__init__(identifier, f"Tenant account is suspended: {identifier}")


class TenantExpired(TenantRejected):
    code = 'TENANT_EXPIRED'

    def __init__(self, identifier: str):
        super().__init__(identifier, f"Tenant subscription has expired: {identifier}")


# ============================================================================
# Migrations
# ============================================================================

class MigrationError(TenancyError):
    """Base class for migration registry and runner errors."""
    code = 'MIGRATION_ERROR'


class DuplicateMigrationError(MigrationError):
    code = 'DUPLICATE_MIGRATION'
    status_code = 400

    def __init__(self, version: str):
        super().__init__(f"Migration {version} is already registered")
        self.version = version


class RegistryFrozenError(MigrationError):
    code = 'REGISTRY_FROZEN'

    def __init__(self, version: str):
        super().__init__(
            f"Cannot register migration {version}: the migration registry is frozen"
        )
        self.version = version


class MigrationFailed(MigrationError):
    """A forward action raised while running migrations for one tenant."""
    code = 'MIGRATION_FAILED'

    def __init__(self, version: str, cause: BaseException, tenant_id: Optional[str] = None):
        super().__init__(
            f"Migration {version} failed: {cause}",
            details={'version': version, 'tenant_id': tenant_id, 'cause': str(cause)}
        )
        self.version = version
        self.cause = cause
        self.tenant_id = tenant_id


# ============================================================================
# Rollback
# ============================================================================

class RollbackError(MigrationError):
    code = 'ROLLBACK_ERROR'
    status_code = 400


class NoMigrationsToRollback(RollbackError):
    code = 'NO_MIGRATIONS'

    def __init__(self, tenant_id: str):
        super().__init__(f"No migrations to rollback for tenant {tenant_id}")
        self.tenant_id = tenant_id


class MigrationNotApplied(RollbackError):
    code = 'MIGRATION_NOT_APPLIED'

    def __init__(self, version: str, tenant_id: str):
        super().__init__(f"Migration {version} has not been applied to tenant {tenant_id}")
        self.version = version
        self.tenant_id = tenant_id


class RollbackUnsupported(RollbackError):
    code = 'ROLLBACK_NOT_SUPPORTED'

    def __init__(self, version: str):
        super().__init__(f"Migration {version} does not support rollback")
        self.version = version


class RollbackFailed(RollbackError):
    code = 'ROLLBACK_FAILED'
    status_code = 500

    def __init__(self, version: str, cause: BaseException, tenant_id: Optional[str] = None):
        super().__init__(
            f"Rollback of {version} failed: {cause}",
            details={'version': version, 'tenant_id': tenant_id, 'cause': str(cause)}
        )
        self.version = version
        self.cause = cause
        self.tenant_id = tenant_id
