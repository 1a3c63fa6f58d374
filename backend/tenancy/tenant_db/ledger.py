"""
Migration ledger.

Reads and writes the ``tenant_migrations`` table. A row means the migration
is applied to that tenant's schema; the absence of a row is the only signal
that it is pending.

The ledger never commits. The runner and the rollback coordinator commit the
ledger change together with the migration's own statements.
"""

import logging
import uuid
from typing import List, Optional, Set, Union

from sqlalchemy.orm import Session

from tenancy.extensions import db
from tenancy.models.base import utcnow
from tenancy.models.tenant_migration import TenantMigration
from tenancy.tenant_db.tenant_migrations import MigrationDefinition, version_sort_key

logger = logging.getLogger(__name__)

TenantId = Union[str, uuid.UUID]


def _as_uuid(tenant_id: TenantId) -> uuid.UUID:
    return tenant_id if isinstance(tenant_id, uuid.UUID) else uuid.UUID(str(tenant_id))


class MigrationLedger:
    """Per-tenant record of applied migrations."""

    def __init__(self, session: Optional[Session] = None):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session if self._session is not None else db.session

    def executed_versions(self, tenant_id: TenantId) -> Set[str]:
        rows = self.session.query(TenantMigration.migration_version).filter(
            TenantMigration.tenant_id == _as_uuid(tenant_id)
        ).all()
        return {row[0] for row in rows}

    def entries(self, tenant_id: TenantId) -> List[TenantMigration]:
        """
        Ledger rows for a tenant in execution order.

        Rows with the same executed_at are ordered by natural version.
        """
        rows = self.session.query(TenantMigration).filter_by(tenant_id=_as_uuid(tenant_id)).all()
        return sorted(
            rows,
            key=lambda row: (row.executed_at, version_sort_key(row.migration_version))
        )

    def latest(self, tenant_id: TenantId) -> Optional[TenantMigration]:
        """Most recently applied entry, or None if the ledger is empty."""
        rows = self.entries(tenant_id)
        return rows[-1] if rows else None

    def record(self, tenant_id: TenantId, migration: MigrationDefinition) -> TenantMigration:
        """Add the entry for a migration to the current transaction."""
        entry = TenantMigration(
            tenant_id=_as_uuid(tenant_id),
            migration_version=migration.version,
            migration_name=migration.name,
            executed_at=utcnow()
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def remove(self, tenant_id: TenantId, version: str) -> bool:
        """
        Delete the entry for exactly one (tenant, version) pair.

        Returns:
            True if a row was deleted, False if none existed
        """
        deleted = self.session.query(TenantMigration).filter(
            TenantMigration.tenant_id == _as_uuid(tenant_id),
            TenantMigration.migration_version == version
        ).delete(synchronize_session='fetch')
        return deleted > 0
