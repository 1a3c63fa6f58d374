"""
Unit Tests for Database Models

Tests for SQLAlchemy models including:
- Tenant model: schema name derivation, immutability, status/plan validation
- TenantMigration model: ledger entries and composite primary key
"""

import pytest
from datetime import timedelta
from sqlalchemy.exc import IntegrityError

from tenancy.models import Tenant, TenantMigration
from tenancy.models.base import utcnow


class TestTenantModel:
    """Tests for Tenant model"""

    def test_create_tenant(self, session):
        """Test creating a tenant derives its schema name"""
        tenant = Tenant(
            name='Acme Corporation',
            subdomain='acme-corp',
            contact_email='ops@acme.example.com'
        )

        session.add(tenant)
        session.commit()

        assert tenant.id is not None
        assert tenant.schema_name == 'tenant_acme_corp'
        assert tenant.status == Tenant.STATUS_TRIAL
        assert tenant.subscription_plan == Tenant.PLAN_BASIC
        assert tenant.is_active is True
        assert tenant.created_at is not None

    def test_subdomain_is_lowercased(self, session):
        """Test subdomain is normalized to lowercase"""
        tenant = Tenant(name='Store', subdomain='  Test-Store ', contact_email='a@b.com')

        assert tenant.subdomain == 'test-store'
        assert tenant.schema_name == 'tenant_test_store'

    def test_custom_schema_prefix(self, session):
        """Test the schema prefix is configurable"""
        tenant = Tenant(schema_prefix='org', name='Acme', subdomain='acme', contact_email='a@b.com')

        assert tenant.schema_name == 'org_acme'

    def test_trial_days_sets_trial_end(self, session):
        """Test trial_days sets trial_ends_at in the future"""
        before = utcnow()
        tenant = Tenant(trial_days=14, name='Acme', subdomain='acme', contact_email='a@b.com')

        assert tenant.trial_ends_at >= before + timedelta(days=14)
        assert tenant.trial_ends_at <= utcnow() + timedelta(days=14)

    def test_schema_name_is_immutable(self, session):
        """Test schema_name cannot be changed once assigned"""
        tenant = Tenant(name='Acme', subdomain='acme', contact_email='a@b.com')
        session.add(tenant)
        session.commit()

        with pytest.raises(ValueError, match='Cannot change schema_name'):
            tenant.schema_name = 'tenant_other'

    def test_assigning_same_schema_name_is_allowed(self, session):
        """Test re-assigning the same schema_name is a no-op"""
        tenant = Tenant(name='Acme', subdomain='acme', contact_email='a@b.com')
        tenant.schema_name = 'tenant_acme'

        assert tenant.schema_name == 'tenant_acme'

    @pytest.mark.parametrize('schema_name', ['Bad-Row', 'tenant acme', '1tenant', 'x' * 64])
    def test_malformed_schema_name(self, session, schema_name):
        """Test a schema name that could not be used in DDL is rejected"""
        with pytest.raises(ValueError, match='Invalid schema name'):
            Tenant(name='Acme', subdomain='acme', contact_email='a@b.com', schema_name=schema_name)

    def test_invalid_status(self, session):
        """Test invalid status raises ValueError"""
        with pytest.raises(ValueError, match='Invalid status'):
            Tenant(name='Acme', subdomain='acme', contact_email='a@b.com', status='deleted')

        tenant = Tenant(name='Acme', subdomain='acme', contact_email='a@b.com')
        with pytest.raises(ValueError, match='Invalid status'):
            tenant.status = 'deleted'

    def test_invalid_plan(self, session):
        """Test invalid subscription plan raises ValueError"""
        with pytest.raises(ValueError, match='Invalid subscription plan'):
            Tenant(name='Acme', subdomain='acme', contact_email='a@b.com', subscription_plan='gold')

    def test_unique_subdomain(self, session):
        """Test subdomain uniqueness is enforced by the database"""
        session.add(Tenant(name='One', subdomain='acme', contact_email='a@b.com'))
        session.commit()

        session.add(Tenant(name='Two', subdomain='acme', contact_email='c@d.com'))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_find_by_subdomain_case_insensitive(self, session):
        """Test find_by_subdomain ignores case"""
        tenant = Tenant(name='Acme', subdomain='acme', contact_email='a@b.com')
        session.add(tenant)
        session.commit()

        assert Tenant.find_by_subdomain('ACME') == tenant
        assert Tenant.find_by_schema_name('tenant_acme') == tenant
        assert Tenant.find_by_subdomain('unknown') is None

    def test_get_all_active(self, session):
        """Test get_all_active skips deactivated tenants"""
        first = Tenant(name='First', subdomain='first', contact_email='a@b.com')
        second = Tenant(name='Second', subdomain='second', contact_email='a@b.com')
        session.add_all([first, second])
        session.commit()

        second.deactivate()
        session.commit()

        assert Tenant.get_all_active() == [first]

    def test_to_dict(self, session):
        """Test serialization helper"""
        tenant = Tenant(name='Acme', subdomain='acme', contact_email='a@b.com')
        session.add(tenant)
        session.commit()

        data = tenant.to_dict(exclude=['contact_phone'])

        assert data['id'] == str(tenant.id)
        assert data['schema_name'] == 'tenant_acme'
        assert 'contact_phone' not in data
        assert isinstance(data['created_at'], str)


class TestTenantMigrationModel:
    """Tests for TenantMigration ledger model"""

    def _tenant(self, session):
        tenant = Tenant(name='Acme', subdomain='acme', contact_email='a@b.com')
        session.add(tenant)
        session.commit()
        return tenant

    def test_create_entry(self, session):
        """Test creating a ledger entry"""
        tenant = self._tenant(session)
        entry = TenantMigration(
            tenant_id=tenant.id,
            migration_version='v1.0.0',
            migration_name='initial_schema'
        )
        session.add(entry)
        session.commit()

        assert entry.executed_at is not None
        assert tenant.migrations == [entry]
        assert entry.to_dict()['version'] == 'v1.0.0'

    def test_composite_primary_key(self, session):
        """Test a (tenant, version) pair can only be recorded once"""
        tenant = self._tenant(session)
        tenant_id = tenant.id
        session.add(TenantMigration(tenant_id=tenant_id, migration_version='v1.0.0', migration_name='a'))
        session.commit()
        session.expunge_all()

        session.add(TenantMigration(tenant_id=tenant_id, migration_version='v1.0.0', migration_name='b'))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()
