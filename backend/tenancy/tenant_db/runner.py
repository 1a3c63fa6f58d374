"""
Migration runners.

MigrationRunner applies the pending migrations of one tenant, in registry
order, each in its own transaction together with its ledger entry.

FleetRunner applies pending migrations to every active tenant and isolates
failures: one tenant failing never stops the others.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from flask import current_app

from tenancy.exceptions import MigrationFailed, TenantRejected
from tenancy.services.tenant_registry import TenantInfo, TenantRef, TenantRegistry
from tenancy.tenant_db.ledger import MigrationLedger
from tenancy.tenant_db.tenant_migrations import MigrationDefinition, MigrationRegistry
from tenancy.utils.database import tenant_schema_manager as default_schema_manager

logger = logging.getLogger(__name__)

# Outcome statuses of a fleet run
STATUS_MIGRATED = 'migrated'
STATUS_UP_TO_DATE = 'up_to_date'
STATUS_WOULD_MIGRATE = 'would_migrate'
STATUS_FAILED = 'failed'
STATUS_REJECTED = 'rejected'


class MigrationRunner:
    """
    Applies pending migrations to a single tenant schema.

    Args:
        registry: Frozen migration registry
        tenant_registry: Used to validate the tenant before running
        ledger: Migration ledger (defaults to one on the Flask-SQLAlchemy session)
        schema_manager: TenantSchemaManager providing executors
    """

    def __init__(self, registry: MigrationRegistry, tenant_registry: TenantRegistry,
                 ledger: Optional[MigrationLedger] = None, schema_manager=None):
        self.registry = registry
        self.tenant_registry = tenant_registry
        self.ledger = ledger or MigrationLedger()
        self.schema_manager = schema_manager or default_schema_manager

    def pending_for(self, tenant: TenantInfo) -> List[MigrationDefinition]:
        """Registered migrations missing from the tenant's ledger, in registry order."""
        executed = self.ledger.executed_versions(tenant.id)
        return [m for m in self.registry.list() if m.version not in executed]

    def run_pending(self, identifier: str, dry_run: bool = False) -> List[str]:
        """
        Apply every pending migration to one tenant.

        Args:
            identifier: Tenant UUID or subdomain
            dry_run: Only report the pending versions

        Returns:
            Versions applied (or that would be applied on a dry run), in order

        Raises:
            TenantRejected: Tenant is missing or may not be operated on
            MigrationFailed: A forward action raised; earlier migrations stay applied
        """
        tenant = self.tenant_registry.validate(identifier)
        pending = self.pending_for(tenant)

        if not pending:
            logger.info(f"Tenant {tenant.id} ({tenant.schema_name}) is up to date")
            return []

        if dry_run:
            versions = [m.version for m in pending]
            logger.info(
                f"[dry run] Tenant {tenant.id} has {len(versions)} pending migration(s): "
                f"{', '.join(versions)}"
            )
            return versions

        session = self.schema_manager.session
        executor = self.schema_manager.executor(tenant.schema_name, session)
        applied = []

        for migration in pending:
            logger.info(
                f"Applying migration {migration.version} ({migration.name}) "
                f"to tenant {tenant.id} ({tenant.schema_name})"
            )
            try:
                migration.up(tenant.schema_name, executor)
                self.ledger.record(tenant.id, migration)
                session.commit()
            except Exception as e:
                session.rollback()
                logger.error(
                    f"Migration {migration.version} failed for tenant {tenant.id}: {str(e)}",
                    exc_info=True
                )
                raise MigrationFailed(migration.version, e, tenant.id) from e

            applied.append(migration.version)
            logger.info(f"Migration {migration.version} applied to tenant {tenant.id}")

        return applied


@dataclass(frozen=True)
class TenantMigrationOutcome:
    """Result of one tenant in a fleet run."""
    tenant_id: str
    status: str
    applied: List[str] = field(default_factory=list)
    failed_version: Optional[str] = None
    error: Optional[str] = None
    subdomain: Optional[str] = None


@dataclass
class FleetReport:
    """Per-tenant outcomes of a fleet run, keyed by tenant id."""
    dry_run: bool = False
    outcomes: Dict[str, TenantMigrationOutcome] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> Dict[str, TenantMigrationOutcome]:
        return {
            tenant_id: outcome for tenant_id, outcome in self.outcomes.items()
            if outcome.status == STATUS_FAILED
        }

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def has_failures(self) -> bool:
        return self.failed_count > 0

    def with_status(self, status: str) -> List[str]:
        return [tenant_id for tenant_id, o in self.outcomes.items() if o.status == status]


class FleetRunner:
    """
    Runs pending migrations for every active tenant.

    Sequential by default. With max_workers > 1 tenants are spread over a
    bounded thread pool; each worker pushes its own application context and
    therefore uses its own database session.
    """

    def __init__(self, runner: MigrationRunner, tenant_registry: TenantRegistry, max_workers: int = 1):
        self.runner = runner
        self.tenant_registry = tenant_registry
        self.max_workers = max(1, int(max_workers))

    def run_pending_for_all_active_tenants(self, dry_run: bool = False) -> FleetReport:
        """
        Apply pending migrations to all active tenants.

        Never raises for a per-tenant problem; every tenant gets an outcome.
        """
        tenants = self.tenant_registry.active_refs()
        report = FleetReport(dry_run=dry_run)

        logger.info(f"Starting fleet migration for {len(tenants)} active tenant(s)")

        if self.max_workers > 1 and len(tenants) > 1:
            app = current_app._get_current_object()
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = [
                    pool.submit(self._run_in_app_context, app, tenant, dry_run)
                    for tenant in tenants
                ]
                outcomes = [future.result() for future in futures]
        else:
            outcomes = [self._run_one(tenant, dry_run) for tenant in tenants]

        for outcome in outcomes:
            report.outcomes[outcome.tenant_id] = outcome

        logger.info(
            f"Fleet migration finished: {report.total} tenant(s), "
            f"{len(report.with_status(STATUS_MIGRATED))} migrated, "
            f"{len(report.with_status(STATUS_UP_TO_DATE))} up to date, "
            f"{len(report.with_status(STATUS_REJECTED))} rejected, "
            f"{report.failed_count} failed"
        )
        return report

    def _run_in_app_context(self, app, tenant: TenantRef, dry_run: bool) -> TenantMigrationOutcome:
        with app.app_context():
            return self._run_one(tenant, dry_run)

    def _run_one(self, tenant: TenantRef, dry_run: bool) -> TenantMigrationOutcome:
        # The snapshot is built inside run_pending, so a malformed row only fails its own outcome
        try:
            applied = self.runner.run_pending(tenant.id, dry_run=dry_run)
        except TenantRejected as e:
            logger.warning(f"Skipping tenant {tenant.id} ({tenant.subdomain}): {e.message}")
            return TenantMigrationOutcome(
                tenant_id=tenant.id, status=STATUS_REJECTED, error=e.message,
                subdomain=tenant.subdomain
            )
        except MigrationFailed as e:
            logger.error(
                f"Tenant {tenant.id} ({tenant.subdomain}) failed at migration "
                f"{e.version}: {e.cause}"
            )
            return TenantMigrationOutcome(
                tenant_id=tenant.id, status=STATUS_FAILED, failed_version=e.version,
                error=str(e.cause), subdomain=tenant.subdomain
            )
        except Exception as e:
            self.runner.schema_manager.session.rollback()
            logger.error(f"Unexpected error migrating tenant {tenant.id}: {str(e)}", exc_info=True)
            return TenantMigrationOutcome(
                tenant_id=tenant.id, status=STATUS_FAILED, error=str(e),
                subdomain=tenant.subdomain
            )

        if not applied:
            status = STATUS_UP_TO_DATE
        elif dry_run:
            status = STATUS_WOULD_MIGRATE
        else:
            status = STATUS_MIGRATED

        return TenantMigrationOutcome(
            tenant_id=tenant.id, status=status, applied=applied, subdomain=tenant.subdomain
        )
