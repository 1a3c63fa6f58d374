"""
Health checks of the main database and of tenant schemas.

Checks never raise for an unhealthy target: the failure is reported in the
result so that one broken tenant does not hide the state of the others.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from tenancy.exceptions import TenantRejected
from tenancy.services.tenant_registry import TenantRegistry
from tenancy.utils.database import SchemaHealth, tenant_schema_manager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantHealth:
    tenant_id: str
    subdomain: str
    schema_name: Optional[str]
    healthy: bool
    error: Optional[str] = None


class HealthChecker:

    def __init__(self, tenant_registry: TenantRegistry, schema_manager=None):
        self.tenant_registry = tenant_registry
        self.schema_manager = schema_manager or tenant_schema_manager

    def check_main_database(self) -> SchemaHealth:
        return self.schema_manager.health_check()

    def check_tenant(self, identifier: str) -> TenantHealth:
        """
        Check the schema of one tenant.

        Raises:
            TenantNotFound: If no tenant matches
        """
        tenant = self.tenant_registry.resolve(identifier)
        result = self.schema_manager.health_check(tenant.schema_name)
        return TenantHealth(
            tenant_id=tenant.id,
            subdomain=tenant.subdomain,
            schema_name=tenant.schema_name,
            healthy=result.healthy,
            error=result.error
        )

    def check_all_active(self) -> List[TenantHealth]:
        """Check every active tenant, oldest first."""
        results = []

        for ref in self.tenant_registry.active_refs():
            try:
                results.append(self.check_tenant(ref.id))
            except (TenantRejected, ValueError) as e:
                logger.error(f"Health check of tenant {ref.id} ({ref.subdomain}) failed: {str(e)}")
                results.append(TenantHealth(
                    tenant_id=ref.id,
                    subdomain=ref.subdomain,
                    schema_name=None,
                    healthy=False,
                    error=str(e)
                ))

        unhealthy = sum(1 for r in results if not r.healthy)
        logger.info(f"Health check of {len(results)} tenant(s): {unhealthy} unhealthy")
        return results
