"""
TenantService - Tenant provisioning

This service creates tenants together with their isolated schema and exposes
read access to tenant records.

Key responsibilities:
- Validate provisioning input (marshmallow TenantCreateSchema)
- Reject reserved and already used subdomains
- Create the tenant schema, then insert the tenant row, then commit once
- Drop the orphaned schema when the insert fails on a store without transactional DDL
- Cache the new tenant and optionally apply pending migrations

Provisioning flow:
    validate input -> check reserved -> check uniqueness (store, not cache)
    -> create schema -> insert tenant (status trial) -> commit
    -> cache -> auto-migrate (failures logged, provisioning kept)
"""

import logging
import uuid
from typing import Iterable, List, Optional

from marshmallow import ValidationError

from tenancy.exceptions import (
    InvalidSubdomainError,
    MigrationFailed,
    ProvisioningError,
    SubdomainReservedError,
    SubdomainTakenError,
    TenantRejected,
    TenantValidationError,
)
from tenancy.extensions import db
from tenancy.models.tenant import Tenant
from tenancy.schemas.tenant_schema import TenantCreateSchema
from tenancy.services.tenant_registry import TenantInfo, TenantRegistry
from tenancy.tenant_db.schema_name import derive_schema_name
from tenancy.utils.database import tenant_schema_manager as default_schema_manager

logger = logging.getLogger(__name__)


class TenantService:
    """
    Service class for tenant provisioning and tenant queries.

    Args:
        tenant_registry: Registry used to cache new tenants and resolve identifiers
        schema_manager: TenantSchemaManager creating and dropping schemas
        migration_runner: MigrationRunner used when auto_migrate is on
        schema_prefix: Namespace token of derived schema names
        trial_days: Length of the initial trial period
        default_plan: Subscription plan used when none is given
        reserved_subdomains: Subdomains that can never be provisioned
        auto_migrate: Apply pending migrations right after provisioning
    """

    def __init__(self, tenant_registry: TenantRegistry, schema_manager=None, migration_runner=None,
                 schema_prefix: str = 'tenant', trial_days: int = 30,
                 default_plan: str = Tenant.PLAN_BASIC,
                 reserved_subdomains: Iterable[str] = (), auto_migrate: bool = False):
        self.tenant_registry = tenant_registry
        self.schema_manager = schema_manager or default_schema_manager
        self.migration_runner = migration_runner
        self.schema_prefix = schema_prefix
        self.trial_days = trial_days
        self.default_plan = default_plan
        self.reserved_subdomains = {s.strip().lower() for s in reserved_subdomains}
        self.auto_migrate = auto_migrate

    def create_tenant(self, name: str, subdomain: str, contact_email: str,
                      contact_phone: Optional[str] = None, plan: Optional[str] = None) -> Tenant:
        """
        Provision a new tenant with its own schema.

        Args:
            name: Display name
            subdomain: Requested subdomain (normalized to lowercase)
            contact_email: Contact address
            contact_phone: Optional contact phone
            plan: Subscription plan (defaults to the configured default plan)

        Returns:
            The persisted Tenant

        Raises:
            InvalidSubdomainError: Subdomain format or length is invalid
            TenantValidationError: Other input is invalid
            SubdomainReservedError: Subdomain is reserved
            SubdomainTakenError: Subdomain or derived schema name is already used
            ProvisioningError: Schema creation or tenant insertion failed

        Example:
            tenant = tenant_service.create_tenant(
                name='Acme Corporation',
                subdomain='acme-corp',
                contact_email='ops@acme.example'
            )
            tenant.schema_name  # 'tenant_acme_corp'
        """
        data = self._load({
            'name': name,
            'subdomain': subdomain,
            'contact_email': contact_email,
            'contact_phone': contact_phone,
            'subscription_plan': plan or self.default_plan,
        })
        subdomain = data['subdomain']

        if subdomain in self.reserved_subdomains:
            logger.warning(f"Tenant creation failed: subdomain '{subdomain}' is reserved")
            raise SubdomainReservedError(f"Subdomain '{subdomain}' is reserved")

        schema_name = derive_schema_name(subdomain, self.schema_prefix)
        self._check_available(subdomain, schema_name)

        session = db.session
        schema_created = False
        try:
            schema_created = self.schema_manager.create_schema(schema_name)
            if not schema_created and self.schema_manager.list_tables(schema_name):
                raise ProvisioningError(
                    f"Schema {schema_name} already exists and is not empty",
                    details={'schema_name': schema_name}
                )

            tenant = Tenant(
                schema_prefix=self.schema_prefix,
                trial_days=self.trial_days,
                schema_name=schema_name,
                status=Tenant.STATUS_TRIAL,
                **data
            )
            session.add(tenant)
            session.commit()

        except ProvisioningError:
            session.rollback()
            raise
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to provision tenant '{subdomain}': {str(e)}", exc_info=True)
            if schema_created and not self.schema_manager.supports_transactional_ddl:
                self._drop_orphan_schema(schema_name)
            raise ProvisioningError(
                f"Failed to provision tenant '{subdomain}': {str(e)}",
                details={'schema_name': schema_name}
            ) from e

        logger.info(
            f"Tenant created successfully: {tenant.id} ({tenant.name}) "
            f"with schema {tenant.schema_name}"
        )

        self.tenant_registry.remember(TenantInfo.from_model(tenant))

        if self.auto_migrate and self.migration_runner is not None:
            self._apply_initial_migrations(tenant)

        return tenant

    def get_tenant(self, identifier: str) -> Tenant:
        """
        Fetch a tenant by UUID or subdomain, regardless of status.

        Raises:
            TenantNotFound: If no tenant matches
        """
        info = self.tenant_registry.resolve(identifier)
        return db.session.get(Tenant, uuid.UUID(info.id))

    def list_tenants(self, active_only: bool = False) -> List[Tenant]:
        """List tenants, oldest first."""
        if active_only:
            return Tenant.get_all_active()
        return Tenant.query.order_by(Tenant.created_at.asc()).all()

    def _load(self, payload: dict) -> dict:
        try:
            return TenantCreateSchema(schema_prefix=self.schema_prefix).load(payload)
        except ValidationError as e:
            logger.warning(f"Tenant creation failed: invalid input {e.messages}")
            if 'subdomain' in e.messages:
                raise InvalidSubdomainError("Invalid subdomain format", details=e.messages) from e
            raise TenantValidationError("Invalid tenant data", details=e.messages) from e

    def _check_available(self, subdomain: str, schema_name: str) -> None:
        if Tenant.find_by_subdomain(subdomain) or Tenant.find_by_schema_name(schema_name):
            logger.warning(f"Tenant creation failed: subdomain '{subdomain}' is already taken")
            raise SubdomainTakenError(
                f"Subdomain '{subdomain}' is already taken",
                details={'subdomain': subdomain, 'schema_name': schema_name}
            )

    def _drop_orphan_schema(self, schema_name: str) -> None:
        try:
            self.schema_manager.drop_schema(schema_name)
            db.session.commit()
            logger.info(f"Dropped orphaned schema {schema_name}")
        except Exception as e:
            db.session.rollback()
            logger.error(f"Failed to drop orphaned schema {schema_name}: {str(e)}", exc_info=True)

    def _apply_initial_migrations(self, tenant: Tenant) -> None:
        try:
            applied = self.migration_runner.run_pending(str(tenant.id))
            if applied:
                logger.info(
                    f"Applied {len(applied)} migration(s) to tenant {tenant.id}: {', '.join(applied)}"
                )
            else:
                logger.info(f"Tenant {tenant.id} schema is up to date")
        except (MigrationFailed, TenantRejected) as e:
            # Provisioning is kept; pending migrations can be applied later with tenant-cli
            logger.error(f"Failed to apply tenant migrations: {str(e)}", exc_info=True)
