"""
Flask extensions of the tenant schema lifecycle engine.

Instances are created here without an app and bound in the application
factory, so that models and services can import them without circular imports.

- db: Flask-SQLAlchemy (main schema models, tenant schema DDL)
- migrate: Flask-Migrate (Alembic revisions of the main schema)
- redis_manager: optional Redis connection backing the tenant lookup cache
"""

import logging
from typing import Iterable, Optional

import redis
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()


class RedisManager:
    """
    Optional Redis connection.

    When REDIS_URL is unset or the server does not answer at startup, the
    manager stays disabled and get_client() returns None; callers then use
    their in-process fallback.
    """

    def __init__(self):
        self.client: Optional[redis.Redis] = None
        self.enabled = False

    def init_app(self, app):
        self.client = None
        self.enabled = False

        redis_url = app.config.get('REDIS_URL')
        if not redis_url:
            logger.info("REDIS_URL not set, tenant cache is in-process only")
            return

        client = redis.from_url(
            redis_url,
            max_connections=int(app.config.get('REDIS_MAX_CONNECTIONS', 20)),
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30
        )
        try:
            client.ping()
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable at {redis_url}: {e}. Tenant cache is in-process only.")
            return

        self.client = client
        self.enabled = True
        logger.info(f"Redis connected at {redis_url}")

    def get_client(self) -> Optional[redis.Redis]:
        """Redis client, or None when Redis is disabled."""
        return self.client if self.enabled else None

    def is_enabled(self) -> bool:
        """True when Redis is enabled and currently answers PING."""
        client = self.get_client()
        if client is None:
            return False
        try:
            return bool(client.ping())
        except redis.RedisError:
            return False

    def delete_matching(self, pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns the number of keys deleted."""
        client = self.get_client()
        if client is None:
            return 0
        keys: Iterable[str] = list(client.scan_iter(pattern))
        return client.delete(*keys) if keys else 0


redis_manager = RedisManager()
