"""
Rollback coordinator.

Reverts exactly one applied migration of one tenant: runs its reverse
action and deletes its ledger entry in the same transaction.
"""

import logging
from typing import Optional

from tenancy.exceptions import (
    MigrationNotApplied,
    NoMigrationsToRollback,
    RollbackFailed,
    RollbackUnsupported,
)
from tenancy.services.tenant_registry import TenantRegistry
from tenancy.tenant_db.ledger import MigrationLedger
from tenancy.tenant_db.tenant_migrations import MigrationRegistry
from tenancy.utils.database import tenant_schema_manager as default_schema_manager

logger = logging.getLogger(__name__)


class RollbackCoordinator:

    def __init__(self, registry: MigrationRegistry, tenant_registry: TenantRegistry,
                 ledger: Optional[MigrationLedger] = None, schema_manager=None):
        self.registry = registry
        self.tenant_registry = tenant_registry
        self.ledger = ledger or MigrationLedger()
        self.schema_manager = schema_manager or default_schema_manager

    def rollback(self, identifier: str, version: Optional[str] = None) -> str:
        """
        Roll back one migration for one tenant.

        Args:
            identifier: Tenant UUID or subdomain
            version: Version to roll back; defaults to the most recently applied one

        Returns:
            The version that was rolled back

        Raises:
            TenantRejected: Tenant is missing or may not be operated on
            NoMigrationsToRollback: No version given and the ledger is empty
            MigrationNotApplied: The given version is not in the tenant's ledger
            RollbackUnsupported: The version is not registered or has no reverse action
            RollbackFailed: The reverse action raised; the ledger entry is kept
        """
        tenant = self.tenant_registry.validate(identifier)

        if version is None:
            latest = self.ledger.latest(tenant.id)
            if latest is None:
                raise NoMigrationsToRollback(tenant.id)
            version = latest.migration_version
        elif version not in self.ledger.executed_versions(tenant.id):
            raise MigrationNotApplied(version, tenant.id)

        definition = self.registry.get(version)
        if definition is None or not definition.reversible:
            logger.warning(f"Migration {version} cannot be rolled back for tenant {tenant.id}")
            raise RollbackUnsupported(version)

        session = self.schema_manager.session
        executor = self.schema_manager.executor(tenant.schema_name, session)

        logger.info(f"Rolling back migration {version} for tenant {tenant.id} ({tenant.schema_name})")
        try:
            definition.down(tenant.schema_name, executor)
            self.ledger.remove(tenant.id, version)
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(
                f"Rollback of {version} failed for tenant {tenant.id}: {str(e)}",
                exc_info=True
            )
            raise RollbackFailed(version, e, tenant.id) from e

        logger.info(f"Rolled back migration {version} for tenant {tenant.id}")
        return version
