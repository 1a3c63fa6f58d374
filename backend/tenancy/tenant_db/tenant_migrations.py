"""
Versioned migration registry for tenant schemas.

Tenant business tables are created inside each tenant schema and are not
managed by Alembic. This module provides the versioning used to evolve them:
every migration is a named, versioned pair of forward/reverse actions, and
the registry keeps them in natural version order.

Migrations are registered once at startup, then the registry is frozen.

Usage:
    registry = MigrationRegistry()

    @registry.migration('v1.3.0', description='Add tax code to products')
    def add_product_tax_code(schema_name, executor):
        executor.execute("ALTER TABLE {schema}.products ADD COLUMN tax_code VARCHAR(20)")
"""

import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from tenancy.exceptions import DuplicateMigrationError, RegistryFrozenError

logger = logging.getLogger(__name__)

# Matches the ledger column length
MAX_VERSION_LENGTH = 50

MigrationAction = Callable[[str, object], None]

_VERSION_TOKEN = re.compile(r'(\d+)|(\D+)')


def version_sort_key(version: str) -> Tuple[tuple, str]:
    """
    Sort key for natural version ordering.

    Digit runs compare numerically, text runs lexicographically, and a digit
    run sorts before a text run at the same position. The raw string breaks
    remaining ties, so the order is total.

    Examples:
        >>> sorted(['v1.10.0', 'v1.2.0', 'v1.2.0a'], key=version_sort_key)
        ['v1.2.0', 'v1.2.0a', 'v1.10.0']
    """
    parts = []
    for digits, text in _VERSION_TOKEN.findall(version):
        if digits:
            parts.append((0, int(digits), ''))
        else:
            parts.append((1, 0, text))
    return tuple(parts), version


@dataclass(frozen=True)
class MigrationDefinition:
    """
    One versioned structural change for tenant schemas.

    Attributes:
        version: Unique version string (e.g. 'v1.2.0')
        name: Short name recorded in the ledger
        description: Human-readable description
        up: Forward action, called as up(schema_name, executor)
        down: Optional reverse action with the same signature
    """
    version: str
    name: str
    up: MigrationAction
    description: str = ''
    down: Optional[MigrationAction] = None

    def __post_init__(self):
        if not isinstance(self.version, str) or not self.version.strip():
            raise ValueError("Migration version must be a non-empty string")
        if len(self.version) > MAX_VERSION_LENGTH:
            raise ValueError(
                f"Migration version {self.version!r} exceeds {MAX_VERSION_LENGTH} characters"
            )
        if not self.name:
            raise ValueError(f"Migration {self.version} must have a name")
        if not callable(self.up):
            raise ValueError(f"Migration {self.version} forward action is not callable")
        if self.down is not None and not callable(self.down):
            raise ValueError(f"Migration {self.version} reverse action is not callable")

    @property
    def reversible(self) -> bool:
        return self.down is not None


class MigrationRegistry:
    """
    Ordered, freezable collection of tenant migrations.

    The registry is built during application startup (built-in catalog plus
    configured migration modules) and frozen before any migration runs.
    """

    def __init__(self):
        self._migrations: Dict[str, MigrationDefinition] = {}
        self._ordered: List[MigrationDefinition] = []
        self._frozen = False
        self._lock = threading.RLock()

    def register(self, definition: MigrationDefinition) -> MigrationDefinition:
        """
        Add a migration to the registry.

        Raises:
            RegistryFrozenError: If the registry has been frozen
            DuplicateMigrationError: If the version is already registered
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(definition.version)
            if definition.version in self._migrations:
                raise DuplicateMigrationError(definition.version)

            self._migrations[definition.version] = definition
            self._ordered = sorted(
                self._migrations.values(),
                key=lambda m: version_sort_key(m.version)
            )

        logger.debug(f"Registered tenant migration {definition.version}: {definition.name}")
        return definition

    def migration(self, version: str, name: Optional[str] = None,
                  description: Optional[str] = None, down: Optional[MigrationAction] = None):
        """
        Decorator to register a forward action.

        The function name and docstring are used as name and description
        unless given explicitly.

        Usage:
            @registry.migration('v1.1.0', down=drop_invoices)
            def create_invoices(schema_name, executor):
                '''Create invoice tables'''
                ...
        """
        def decorator(func):
            self.register(MigrationDefinition(
                version=version,
                name=name or func.__name__,
                description=description if description is not None else (func.__doc__ or '').strip(),
                up=func,
                down=down
            ))
            return func
        return decorator

    def list(self) -> List[MigrationDefinition]:
        """Return all migrations in version order (a copy)."""
        with self._lock:
            return self._ordered.copy()

    def get(self, version: str) -> Optional[MigrationDefinition]:
        return self._migrations.get(version)

    def versions(self) -> List[str]:
        return [m.version for m in self.list()]

    def freeze(self) -> None:
        """End the initialization phase. Further registration raises RegistryFrozenError."""
        with self._lock:
            self._frozen = True
        logger.info(f"Tenant migration registry frozen with {len(self._migrations)} migrations")

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._migrations)

    def __contains__(self, version: str) -> bool:
        return version in self._migrations

    def __iter__(self) -> Iterator[MigrationDefinition]:
        return iter(self.list())
