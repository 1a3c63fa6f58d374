"""
Integration tests for tenant provisioning.

Covers tenant creation through the engine: schema creation, schema name
derivation, uniqueness and optional auto-migration.
"""

import pytest

from tenancy.exceptions import (
    InvalidSubdomainError,
    SubdomainReservedError,
    SubdomainTakenError,
)
from tenancy.models import Tenant, TenantMigration
from tenancy.utils.database import tenant_schema_manager


class TestTenantProvisioning:
    """Tenant creation with schema provisioning"""

    def test_create_tenant_provisions_schema(self, engine):
        tenant = engine.create_tenant(
            name='Acme Corporation',
            subdomain='acme-corp',
            contact_email='ops@acme.example.com',
            contact_phone='+33 1 23 45 67 89',
            plan='professional'
        )

        assert tenant.schema_name == 'tenant_acme_corp'
        assert tenant.status == Tenant.STATUS_TRIAL
        assert tenant.subscription_plan == 'professional'
        assert tenant_schema_manager.schema_exists('tenant_acme_corp')

        # Nothing applied yet
        assert tenant_schema_manager.list_tables('tenant_acme_corp') == []
        assert TenantMigration.query.filter_by(tenant_id=tenant.id).count() == 0

    def test_schema_name_is_deterministic(self, engine):
        tenant = engine.create_tenant(name='Store', subdomain='Test-Store', contact_email='a@store.com')

        assert tenant.subdomain == 'test-store'
        assert tenant.schema_name == 'tenant_test_store'

        with pytest.raises(SubdomainTakenError):
            engine.create_tenant(name='Store 2', subdomain='test-store', contact_email='b@store.com')

        assert Tenant.query.count() == 1

    def test_reserved_subdomain(self, engine):
        with pytest.raises(SubdomainReservedError) as exc_info:
            engine.create_tenant(name='Admin', subdomain='admin', contact_email='a@b.com')

        assert exc_info.value.code == 'SUBDOMAIN_RESERVED'
        assert not tenant_schema_manager.schema_exists('tenant_admin')

    def test_invalid_subdomain_creates_nothing(self, engine):
        with pytest.raises(InvalidSubdomainError):
            engine.create_tenant(name='Bad', subdomain='-bad-', contact_email='a@b.com')

        assert Tenant.query.count() == 0

    def test_get_and_list_tenants(self, engine, tenant_factory):
        first = tenant_factory('first')
        second = tenant_factory('second', status=Tenant.STATUS_SUSPENDED)

        assert engine.get_tenant('second') == second
        assert engine.get_tenant(str(first.id)) == first
        assert [t.subdomain for t in engine.list_tenants()] == ['first', 'second']


class TestAutoMigrate:
    """Provisioning with TENANT_AUTO_MIGRATE enabled"""

    @pytest.fixture
    def config_overrides(self):
        return {'TENANT_AUTO_MIGRATE': True}

    def test_new_tenant_is_migrated(self, engine):
        tenant = engine.create_tenant(name='Acme', subdomain='acme', contact_email='a@acme.com')

        status = engine.status(str(tenant.id))
        assert status.executed == ['v1.0.0', 'v1.1.0', 'v1.2.0']
        assert status.pending == []
        assert 'customers' in tenant_schema_manager.list_tables('tenant_acme')
