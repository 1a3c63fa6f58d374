"""
Application factory of the tenant schema lifecycle engine.

create_app() loads the configuration, sets up logging, binds the extensions
(db, migrate, redis_manager, tenant_schema_manager), builds and freezes the
tenant migration registry and attaches the engine as app.extensions['tenancy'].
"""

import importlib
import logging
import os
from logging.handlers import RotatingFileHandler
from flask import Flask
from flask.logging import default_handler
from sqlalchemy.engine import make_url

from tenancy.config import get_config
from tenancy.extensions import db, migrate, redis_manager


def create_app(config_name=None, migration_registry=None, config_overrides=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: 'development', 'production' or 'testing'. Defaults to FLASK_ENV,
                    then 'development'.
        migration_registry: Registry to use instead of a new one. Migrations already
                    registered in it are kept; the registry is frozen on return.
        config_overrides: Optional mapping applied on top of the configuration class

    Example:
        app = create_app('testing')
        with app.app_context():
            get_migration_service().run_pending_for_all_active_tenants()
    """
    app = Flask(__name__)

    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)
    config_class.init_app(app)

    configure_logging(app)
    initialize_extensions(app)
    initialize_migration_engine(app, migration_registry)
    register_shell_context(app)

    app.logger.info(
        f"Tenancy app created with config {config_name} "
        f"({make_url(app.config['SQLALCHEMY_DATABASE_URI']).get_backend_name()})"
    )

    return app


def initialize_extensions(app):
    """
    Bind db, migrate, redis_manager and tenant_schema_manager to the app.

    Models are imported first so that their tables are on db.metadata
    before Flask-Migrate compares it with the database.
    """
    from tenancy import models  # noqa: F401
    from tenancy.utils.database import init_tenant_schema_manager

    db.init_app(app)
    migrate.init_app(app, db)
    redis_manager.init_app(app)
    # needs db bound to the app
    init_tenant_schema_manager(app)

    app.logger.info(
        f"Extensions initialized: db, migrate, tenant_schema_manager, "
        f"redis ({'enabled' if redis_manager.is_enabled() else 'disabled'})"
    )


def build_migration_registry(app, registry=None):
    """
    Build the tenant migration registry for an application.

    Registers the built-in catalog (TENANT_REGISTER_BUILTIN_MIGRATIONS) and every
    module listed in TENANT_MIGRATION_MODULES. Each module must expose a
    register(registry) function.

    Raises:
        ImportError: If a configured module cannot be imported
        ValueError: If a configured module has no register function
    """
    from tenancy.tenant_db.builtin_migrations import register_builtin_migrations
    from tenancy.tenant_db.tenant_migrations import MigrationRegistry

    registry = registry if registry is not None else MigrationRegistry()

    if app.config.get('TENANT_REGISTER_BUILTIN_MIGRATIONS', True):
        register_builtin_migrations(registry)

    for module_path in app.config.get('TENANT_MIGRATION_MODULES', []):
        module = importlib.import_module(module_path)
        register = getattr(module, 'register', None)
        if not callable(register):
            raise ValueError(f"Migration module {module_path} has no register(registry) function")
        register(registry)
        app.logger.info(f"Registered tenant migrations from {module_path}")

    return registry


def initialize_migration_engine(app, registry=None):
    """
    Build, freeze and attach the tenant migration engine.

    Args:
        app: Flask application instance
        registry: Optional pre-populated MigrationRegistry
    """
    from tenancy.services.migration_service import init_migration_service

    registry = build_migration_registry(app, registry)
    registry.freeze()
    init_migration_service(app, registry)


def configure_logging(app):
    """
    Console logging, plus a rotating file when LOG_FILE is set.

    Reads LOG_LEVEL, LOG_FORMAT, LOG_FILE, LOG_MAX_BYTES and LOG_BACKUP_COUNT.
    Handlers of a previous app instance are dropped so that create_app() can
    run more than once in a process.
    """
    app.logger.removeHandler(default_handler)
    for handler in list(app.logger.handlers):
        app.logger.removeHandler(handler)

    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO').upper())
    app.logger.setLevel(log_level)
    formatter = logging.Formatter(
        app.config.get('LOG_FORMAT', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    handlers = [logging.StreamHandler()]
    log_file = app.config.get('LOG_FILE')
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_file,
            maxBytes=app.config.get('LOG_MAX_BYTES', 10 * 1024 * 1024),
            backupCount=app.config.get('LOG_BACKUP_COUNT', 5)
        ))

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)

    app.logger.info(f"Logging configured: level={logging.getLevelName(log_level)}, file={log_file}")


def register_shell_context(app):
    """`flask shell` gets db, the models and the engine of this app."""
    @app.shell_context_processor
    def make_shell_context():
        from tenancy.models import Tenant, TenantMigration
        from tenancy.services.migration_service import get_migration_service

        return {
            'db': db,
            'Tenant': Tenant,
            'TenantMigration': TenantMigration,
            'engine': get_migration_service(),
        }
