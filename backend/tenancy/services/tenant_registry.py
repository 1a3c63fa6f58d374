"""
TenantRegistry - Tenant lookup and validation

Resolves a tenant by UUID or subdomain, decides whether it may be operated
on, and enumerates active tenants for fleet runs.

Caching:
- Lookups are cached as frozen TenantInfo snapshots, keyed by id and by subdomain
- Redis is used when available (SETEX with JSON payload under tenant_cache:*)
- Falls back to an in-process dict guarded by a lock
- list_active() and active_refs() always read the store
"""

import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, List, NamedTuple, Optional, Tuple

import redis

from tenancy.exceptions import (
    TenantNotFound,
    TenantInactive,
    TenantSuspended,
    TenantExpired,
)
from tenancy.extensions import redis_manager as default_redis_manager
from tenancy.models.base import utcnow
from tenancy.models.tenant import Tenant
from tenancy.tenant_db.schema_name import SchemaName

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = 'tenant_cache'


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite returns naive datetimes for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TenantRef(NamedTuple):
    """Raw identity of a tenant row."""
    id: str
    subdomain: str


@dataclass(frozen=True)
class TenantInfo:
    """
    Immutable snapshot of a tenant, safe to share between threads and cache.
    """
    id: str
    name: str
    subdomain: str
    schema_name: SchemaName
    status: str
    is_active: bool
    subscription_plan: str
    trial_ends_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, tenant: Tenant) -> 'TenantInfo':
        return cls(
            id=str(tenant.id),
            name=tenant.name,
            subdomain=tenant.subdomain,
            schema_name=SchemaName(tenant.schema_name),
            status=tenant.status,
            is_active=bool(tenant.is_active),
            subscription_plan=tenant.subscription_plan,
            trial_ends_at=_as_utc(tenant.trial_ends_at),
            created_at=_as_utc(tenant.created_at),
        )

    def to_json(self) -> str:
        data = asdict(self)
        for key in ('trial_ends_at', 'created_at'):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return json.dumps(data)

    @classmethod
    def from_json(cls, payload: str) -> 'TenantInfo':
        data = json.loads(payload)
        for key in ('trial_ends_at', 'created_at'):
            if data.get(key):
                data[key] = _as_utc(datetime.fromisoformat(data[key]))
        data['schema_name'] = SchemaName(data['schema_name'])
        return cls(**data)

    def is_trial_expired(self, now: Optional[datetime] = None) -> bool:
        if self.status != Tenant.STATUS_TRIAL or self.trial_ends_at is None:
            return False
        return self.trial_ends_at < (now or utcnow())


class TenantRegistry:
    """
    Tenant lookup with a TTL cache.

    Args:
        cache_ttl: Seconds a cached snapshot stays valid
        redis_manager: RedisManager used for the shared cache (defaults to the global one)
    """

    def __init__(self, cache_ttl: int = 300, redis_manager=None):
        self.cache_ttl = cache_ttl
        self.redis_manager = redis_manager or default_redis_manager
        self._local: Dict[str, Tuple[float, TenantInfo]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve(self, identifier: str) -> TenantInfo:
        """
        Find a tenant by UUID or subdomain.

        Raises:
            TenantNotFound: If no tenant matches
        """
        identifier = str(identifier).strip()
        tenant_uuid = self._parse_uuid(identifier)

        if tenant_uuid is not None:
            cached = self._cache_get(f"id:{tenant_uuid}")
            if cached:
                return cached
            tenant = Tenant.query.filter_by(id=tenant_uuid).first()
            if tenant:
                return self.remember(TenantInfo.from_model(tenant))

        subdomain = identifier.lower()
        cached = self._cache_get(f"subdomain:{subdomain}")
        if cached:
            return cached

        tenant = Tenant.find_by_subdomain(subdomain) if subdomain else None
        if not tenant:
            logger.warning(f"Tenant not found: {identifier}")
            raise TenantNotFound(identifier)

        return self.remember(TenantInfo.from_model(tenant))

    def validate(self, identifier: str) -> TenantInfo:
        """
        Resolve a tenant and check that it may be operated on.

        Raises:
            TenantNotFound: No tenant matches
            TenantInactive: Tenant is deactivated
            TenantSuspended: Tenant status is suspended
            TenantExpired: Tenant status is expired, or its trial has ended
        """
        info = self.resolve(identifier)

        if not info.is_active:
            logger.warning(f"Rejected inactive tenant {info.id} ({info.subdomain})")
            raise TenantInactive(identifier)
        if info.status == Tenant.STATUS_SUSPENDED:
            logger.warning(f"Rejected suspended tenant {info.id} ({info.subdomain})")
            raise TenantSuspended(identifier)
        if info.status == Tenant.STATUS_EXPIRED or info.is_trial_expired():
            logger.warning(f"Rejected expired tenant {info.id} ({info.subdomain})")
            raise TenantExpired(identifier)

        return info

    def list_active(self) -> List[TenantInfo]:
        """All active tenants straight from the store, oldest first."""
        return [TenantInfo.from_model(tenant) for tenant in Tenant.get_all_active()]

    def active_refs(self) -> List[TenantRef]:
        """
        Ids and subdomains of active tenants, oldest first.

        Rows are not turned into snapshots here, so one malformed row cannot
        break the enumeration; it fails later, when that tenant is resolved.
        """
        rows = (
            Tenant.query.with_entities(Tenant.id, Tenant.subdomain)
            .filter_by(is_active=True)
            .order_by(Tenant.created_at.asc())
            .all()
        )
        return [TenantRef(str(tenant_id), subdomain) for tenant_id, subdomain in rows]

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def remember(self, info: TenantInfo) -> TenantInfo:
        """Cache a snapshot under its id and subdomain."""
        for key in self._keys_for(info):
            self._cache_set(key, info)
        return info

    def invalidate(self, tenant_id: str) -> None:
        """Drop the cached entries (id and subdomain) of one tenant."""
        id_key = f"id:{tenant_id}"
        keys = {id_key}

        cached = self._cache_get(id_key)
        if cached:
            keys.add(f"subdomain:{cached.subdomain}")
        else:
            tenant_uuid = self._parse_uuid(str(tenant_id))
            tenant = Tenant.query.filter_by(id=tenant_uuid).first() if tenant_uuid else None
            if tenant:
                keys.add(f"subdomain:{tenant.subdomain}")

        for key in keys:
            self._cache_delete(key)
        logger.debug(f"Invalidated tenant cache for {tenant_id}")

    def clear(self) -> None:
        """Drop every cached tenant."""
        with self._lock:
            self._local.clear()

        try:
            self.redis_manager.delete_matching(f"{CACHE_KEY_PREFIX}:*")
        except redis.RedisError as e:
            logger.warning(f"Error clearing tenant cache in Redis: {e}")

    @staticmethod
    def _keys_for(info: TenantInfo) -> List[str]:
        return [f"id:{info.id}", f"subdomain:{info.subdomain}"]

    @staticmethod
    def _parse_uuid(value: str) -> Optional[uuid.UUID]:
        try:
            return uuid.UUID(value)
        except ValueError:
            return None

    def _cache_get(self, key: str) -> Optional[TenantInfo]:
        redis_client = self.redis_manager.get_client()
        if redis_client:
            try:
                payload = redis_client.get(f"{CACHE_KEY_PREFIX}:{key}")
                return TenantInfo.from_json(payload) if payload else None
            except redis.RedisError as e:
                logger.warning(f"Error reading tenant cache from Redis: {e}")

        with self._lock:
            entry = self._local.get(key)
            if entry is None:
                return None
            expires_at, info = entry
            if expires_at < time.monotonic():
                del self._local[key]
                return None
            return info

    def _cache_set(self, key: str, info: TenantInfo) -> None:
        redis_client = self.redis_manager.get_client()
        if redis_client:
            try:
                redis_client.setex(f"{CACHE_KEY_PREFIX}:{key}", self.cache_ttl, info.to_json())
                return
            except redis.RedisError as e:
                logger.warning(f"Error writing tenant cache to Redis: {e}")

        with self._lock:
            self._local[key] = (time.monotonic() + self.cache_ttl, info)

    def _cache_delete(self, key: str) -> None:
        with self._lock:
            self._local.pop(key, None)

        redis_client = self.redis_manager.get_client()
        if redis_client:
            try:
                redis_client.delete(f"{CACHE_KEY_PREFIX}:{key}")
            except redis.RedisError as e:
                logger.warning(f"Error deleting tenant cache key from Redis: {e}")
