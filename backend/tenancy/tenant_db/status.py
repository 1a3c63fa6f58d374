"""
Migration status reporting.

Status reads the ledger of one tenant and compares it with the registry.
The tenant is only resolved, not validated, so suspended or expired
tenants can still be inspected.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from tenancy.models.tenant_migration import TenantMigration
from tenancy.services.tenant_registry import TenantRegistry
from tenancy.tenant_db.ledger import MigrationLedger
from tenancy.tenant_db.tenant_migrations import MigrationRegistry, version_sort_key


@dataclass(frozen=True)
class MigrationStatus:
    """
    Migration state of one tenant.

    executed and pending are registry versions in registry order, so
    len(executed) + len(pending) == total. unknown holds ledger versions
    that have no registered definition.
    """
    tenant_id: str
    schema_name: str
    executed: List[str]
    pending: List[str]
    total: int
    unknown: List[str] = field(default_factory=list)

    @property
    def is_up_to_date(self) -> bool:
        return not self.pending


class StatusReporter:

    def __init__(self, registry: MigrationRegistry, tenant_registry: TenantRegistry,
                 ledger: Optional[MigrationLedger] = None):
        self.registry = registry
        self.tenant_registry = tenant_registry
        self.ledger = ledger or MigrationLedger()

    def status(self, identifier: str) -> MigrationStatus:
        tenant = self.tenant_registry.resolve(identifier)
        ledgered = self.ledger.executed_versions(tenant.id)
        versions = self.registry.versions()

        return MigrationStatus(
            tenant_id=tenant.id,
            schema_name=tenant.schema_name,
            executed=[v for v in versions if v in ledgered],
            pending=[v for v in versions if v not in ledgered],
            total=len(versions),
            unknown=sorted(
                (v for v in ledgered if v not in self.registry),
                key=version_sort_key
            ),
        )

    def history(self, identifier: str) -> List[TenantMigration]:
        """Ledger rows of one tenant in execution order."""
        tenant = self.tenant_registry.resolve(identifier)
        return self.ledger.entries(tenant.id)
