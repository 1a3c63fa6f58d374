"""
MigrationService - Entry point of the tenant schema lifecycle engine

Wires the tenant registry, provisioner, migration registry, runners, rollback
coordinator and status reporter together for one Flask application, and
exposes the engine operations:

- create_tenant(name, subdomain, contact_email, contact_phone=None, plan=None)
- register_migration(definition)           (before the registry is frozen)
- run_pending(identifier, dry_run=False)
- run_pending_for_all_active_tenants(dry_run=False)
- rollback(identifier, version=None)
- status(identifier) / history(identifier)
- stats(identifier)
- health_check(identifier=None) / health_check_all()
- list_migrations()

The instance is stored on app.extensions['tenancy'] by the application
factory; use get_migration_service() inside an application context.
"""

import logging
from typing import List, Optional

from flask import current_app

from tenancy.models.tenant import Tenant
from tenancy.models.tenant_migration import TenantMigration
from tenancy.services.tenant_registry import TenantRegistry
from tenancy.services.tenant_service import TenantService
from tenancy.tenant_db.health import HealthChecker, TenantHealth
from tenancy.tenant_db.ledger import MigrationLedger
from tenancy.tenant_db.rollback import RollbackCoordinator
from tenancy.tenant_db.runner import FleetReport, FleetRunner, MigrationRunner
from tenancy.tenant_db.status import MigrationStatus, StatusReporter
from tenancy.tenant_db.tenant_migrations import MigrationDefinition, MigrationRegistry
from tenancy.utils.database import SchemaStats, tenant_schema_manager

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'tenancy'


class MigrationService:
    """
    Facade over the engine components of one application.

    Build it with MigrationService.from_config(app.config, registry) or pass
    the components explicitly (tests).
    """

    def __init__(self, registry: MigrationRegistry, tenant_registry: TenantRegistry,
                 tenant_service: TenantService, runner: MigrationRunner,
                 fleet_runner: FleetRunner, rollback_coordinator: RollbackCoordinator,
                 status_reporter: StatusReporter, health_checker: Optional[HealthChecker] = None,
                 schema_manager=None):
        self.registry = registry
        self.tenant_registry = tenant_registry
        self.tenant_service = tenant_service
        self.runner = runner
        self.fleet_runner = fleet_runner
        self.rollback_coordinator = rollback_coordinator
        self.status_reporter = status_reporter
        self.schema_manager = schema_manager or tenant_schema_manager
        self.health_checker = health_checker or HealthChecker(tenant_registry, self.schema_manager)

    @classmethod
    def from_config(cls, config, registry: MigrationRegistry, schema_manager=None,
                    redis_manager=None) -> 'MigrationService':
        """
        Build every component from application configuration.

        Args:
            config: Flask config mapping
            registry: Migration registry (normally already frozen)
            schema_manager: TenantSchemaManager (defaults to the global one)
            redis_manager: RedisManager for the tenant cache (defaults to the global one)
        """
        schema_manager = schema_manager or tenant_schema_manager
        ledger = MigrationLedger()

        tenant_registry = TenantRegistry(
            cache_ttl=config.get('TENANT_CACHE_TTL', 300),
            redis_manager=redis_manager
        )
        runner = MigrationRunner(registry, tenant_registry, ledger, schema_manager)
        tenant_service = TenantService(
            tenant_registry,
            schema_manager=schema_manager,
            migration_runner=runner,
            schema_prefix=config.get('TENANT_SCHEMA_PREFIX', 'tenant'),
            trial_days=config.get('TENANT_TRIAL_DAYS', 30),
            default_plan=config.get('TENANT_DEFAULT_PLAN', Tenant.PLAN_BASIC),
            reserved_subdomains=config.get('RESERVED_SUBDOMAINS', ()),
            auto_migrate=config.get('TENANT_AUTO_MIGRATE', False)
        )

        return cls(
            registry=registry,
            tenant_registry=tenant_registry,
            tenant_service=tenant_service,
            runner=runner,
            fleet_runner=FleetRunner(runner, tenant_registry, config.get('FLEET_MAX_WORKERS', 1)),
            rollback_coordinator=RollbackCoordinator(registry, tenant_registry, ledger, schema_manager),
            status_reporter=StatusReporter(registry, tenant_registry, ledger),
            health_checker=HealthChecker(tenant_registry, schema_manager),
            schema_manager=schema_manager
        )

    # ------------------------------------------------------------------
    # Tenants
    # ------------------------------------------------------------------

    def create_tenant(self, name: str, subdomain: str, contact_email: str,
                      contact_phone: Optional[str] = None, plan: Optional[str] = None) -> Tenant:
        return self.tenant_service.create_tenant(
            name=name,
            subdomain=subdomain,
            contact_email=contact_email,
            contact_phone=contact_phone,
            plan=plan
        )

    def get_tenant(self, identifier: str) -> Tenant:
        return self.tenant_service.get_tenant(identifier)

    def list_tenants(self, active_only: bool = False) -> List[Tenant]:
        return self.tenant_service.list_tenants(active_only=active_only)

    # ------------------------------------------------------------------
    # Migrations
    # ------------------------------------------------------------------

    def register_migration(self, definition: MigrationDefinition) -> MigrationDefinition:
        """Register a migration. Raises RegistryFrozenError after startup."""
        return self.registry.register(definition)

    def list_migrations(self) -> List[MigrationDefinition]:
        return self.registry.list()

    def run_pending(self, identifier: str, dry_run: bool = False) -> List[str]:
        return self.runner.run_pending(identifier, dry_run=dry_run)

    def run_pending_for_all_active_tenants(self, dry_run: bool = False) -> FleetReport:
        return self.fleet_runner.run_pending_for_all_active_tenants(dry_run=dry_run)

    def rollback(self, identifier: str, version: Optional[str] = None) -> str:
        return self.rollback_coordinator.rollback(identifier, version)

    def status(self, identifier: str) -> MigrationStatus:
        return self.status_reporter.status(identifier)

    def history(self, identifier: str) -> List[TenantMigration]:
        return self.status_reporter.history(identifier)

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def stats(self, identifier: str) -> SchemaStats:
        """Table count, row count and size of a tenant schema."""
        tenant = self.tenant_registry.resolve(identifier)
        return self.schema_manager.schema_stats(tenant.schema_name)

    def health_check(self, identifier: Optional[str] = None):
        """Check one tenant schema, or the main database when no tenant is given."""
        if identifier is None:
            return self.health_checker.check_main_database()
        return self.health_checker.check_tenant(identifier)

    def health_check_all(self) -> List[TenantHealth]:
        return self.health_checker.check_all_active()


def init_migration_service(app, registry: MigrationRegistry) -> MigrationService:
    """
    Build the engine for an application and store it on app.extensions.

    Args:
        app: Flask application instance
        registry: Migration registry built during startup

    Returns:
        The MigrationService instance
    """
    service = MigrationService.from_config(app.config, registry)
    app.extensions[EXTENSION_KEY] = service
    logger.info(f"Tenant migration engine initialized with {len(registry)} migration(s)")
    return service


def get_migration_service() -> MigrationService:
    """Return the engine of the current application."""
    return current_app.extensions[EXTENSION_KEY]
