"""
Test Configuration and Fixtures

This module provides pytest fixtures and configuration for the test suite.
Fixtures are reusable test resources that can be injected into test functions.

The test app runs on in-memory SQLite; tenant schemas are in-memory databases
ATTACHed to the single pooled connection. A fresh app (and therefore a fresh
database) is created for every test.

Key fixtures:
- registry: Migration registry handed to create_app (built-in catalog by default,
  override it in a test module to use other migrations)
- app: Flask application instance with test configuration and an app context
- session: Flask-SQLAlchemy session
- engine: MigrationService of the test app
- tenant_factory: Provisions tenants through the engine
- test_tenant: One provisioned tenant
- tenant_row: Inserts a tenants row directly, bypassing model validation
- mock_redis_client / mock_redis_manager: Redis doubles for the tenant cache
"""

import uuid

import pytest

from tenancy import create_app
from tenancy.extensions import db as _db
from tenancy.models import Tenant
from tenancy.services.migration_service import get_migration_service
from tenancy.tenant_db.builtin_migrations import register_builtin_migrations
from tenancy.tenant_db.tenant_migrations import MigrationRegistry


@pytest.fixture
def registry():
    """
    Migration registry used by the app fixture.

    Returns:
        Registry containing the built-in catalog (v1.0.0, v1.1.0, v1.2.0)
    """
    registry = MigrationRegistry()
    register_builtin_migrations(registry)
    return registry


@pytest.fixture
def config_overrides():
    """Configuration values applied on top of TestingConfig."""
    return {}


@pytest.fixture
def app(registry, config_overrides):
    """
    Create Flask application for testing.

    Scope: function - every test gets its own in-memory database

    Returns:
        Flask application configured for testing
    """
    app = create_app('testing', migration_registry=registry, config_overrides=config_overrides)

    # Establish application context
    with app.app_context():
        _db.create_all()

        yield app

        _db.session.remove()
        _db.drop_all()
        _db.engine.dispose()


@pytest.fixture
def session(app):
    """
    Database session for a test.

    Returns:
        SQLAlchemy scoped session
    """
    return _db.session


@pytest.fixture
def engine(app):
    """
    Migration engine of the test app.

    Returns:
        MigrationService instance
    """
    return get_migration_service()


@pytest.fixture
def tenant_factory(engine):
    """
    Provision tenants through the engine.

    Usage:
        tenant = tenant_factory('acme')
        tenant = tenant_factory('acme', status='suspended')
    """
    def _create(subdomain, name=None, status=None, **kwargs):
        tenant = engine.create_tenant(
            name=name or subdomain.title(),
            subdomain=subdomain,
            contact_email=kwargs.pop('contact_email', f'ops@{subdomain}.example.com'),
            **kwargs
        )
        if status is not None:
            tenant.status = status
            _db.session.commit()
            engine.tenant_registry.invalidate(str(tenant.id))
        return tenant

    return _create


@pytest.fixture
def test_tenant(tenant_factory):
    """
    Create a test tenant.

    Returns:
        Tenant instance in trial status with an empty schema
    """
    return tenant_factory('acme-corp', name='Acme Corporation')


@pytest.fixture
def tenant_row(app):
    """
    Insert a tenants row with a Core INSERT, as code outside the engine could.

    No schema is created and the model validators do not run.

    Usage:
        tenant_id = tenant_row('bad-row', schema_name='Bad-Row')
    """
    def _insert(subdomain, schema_name, **values):
        tenant_id = uuid.uuid4()
        _db.session.execute(
            Tenant.__table__.insert().values(
                id=tenant_id,
                name=values.pop('name', subdomain.title()),
                subdomain=subdomain,
                schema_name=schema_name,
                contact_email=values.pop('contact_email', f'ops@{subdomain}.example.com'),
                **values
            )
        )
        _db.session.commit()
        return str(tenant_id)

    return _insert


# Mock fixtures for external dependencies

@pytest.fixture
def mock_redis_client(mocker):
    """
    Mock Redis client for testing.

    Returns:
        Mock client with an empty cache
    """
    mock_client = mocker.MagicMock()
    mock_client.get.return_value = None
    mock_client.setex.return_value = True

    return mock_client


@pytest.fixture
def mock_redis_manager(mocker, mock_redis_client):
    """
    Mock RedisManager handing out mock_redis_client.

    Returns:
        Mock RedisManager object
    """
    mock_manager = mocker.Mock()
    mock_manager.get_client.return_value = mock_redis_client
    mock_manager.is_enabled.return_value = True

    return mock_manager
