"""
Migration data models for schema evolution.

This module defines the core data structures the engine works with:
- Direction: which way a migration moves the schema (up or down)
- DialectScope: which database dialect(s) a migration applies to
- Migration: one versioned, one-directional schema change
- MigrationSet: the ordered migrations for a single direction

The engine never looks at file names; discovery (see
migration_manager) turns files into Migration objects.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Optional

# Dialect tags accepted in migration file names, mapped to SQLAlchemy's
# dialect names.
DIALECT_ALIASES = {
    'postgres': 'postgresql',
    'pg': 'postgresql',
    'sqlite3': 'sqlite',
    'mariadb': 'mysql',
    'cockroach': 'cockroachdb',
    'mssql': 'mssql',
}


def normalize_dialect(name: str) -> str:
    """Map a dialect tag or alias onto its canonical SQLAlchemy name."""
    name = name.strip().lower()
    return DIALECT_ALIASES.get(name, name)


def version_key(version: str) -> tuple:
    """
    Sort key for migration versions.

    All-digit versions (timestamps, sequence numbers) compare numerically
    so that '10' sorts after '9'; anything else sorts lexicographically
    after the numeric ones.

    Example:
        >>> sorted(['10', '9', '20240101'], key=version_key)
        ['9', '10', '20240101']
    """
    if version.isdigit():
        return (0, int(version), version)
    return (1, 0, version)


class Direction(Enum):
    """Which way a migration moves the schema."""
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class DialectScope:
    """
    Dialect(s) a migration applies to.

    ``DialectScope.ALL`` (dialect=None) is the wildcard: the migration
    runs on every database. A specific scope only runs when the active
    connection's dialect matches.

    Example:
        >>> DialectScope.specific('postgres').matches('postgresql')
        True
        >>> DialectScope.ALL.matches('sqlite')
        True
    """
    dialect: Optional[str] = None

    ALL = None  # replaced below with the wildcard instance

    @classmethod
    def specific(cls, dialect: str) -> 'DialectScope':
        """Scope restricted to one dialect (aliases are normalized)."""
        return cls(normalize_dialect(dialect))

    @classmethod
    def parse(cls, tag: Optional[str]) -> 'DialectScope':
        """Build a scope from a file-name tag; None, '' and 'all' mean wildcard."""
        if not tag or tag.lower() == 'all':
            return cls.ALL
        return cls.specific(tag)

    @property
    def is_wildcard(self) -> bool:
        return self.dialect is None

    def matches(self, dialect_name: str) -> bool:
        """Whether a migration with this scope runs on ``dialect_name``."""
        if self.is_wildcard:
            return True
        return self.dialect == normalize_dialect(dialect_name)

    def __str__(self) -> str:
        return self.dialect or 'all'


DialectScope.ALL = DialectScope()


@dataclass(frozen=True)
class Migration:
    """
    Represents a single, one-directional schema change.

    Identity is the ``(version, direction)`` pair: name, scope, body and
    path do not take part in equality or hashing.

    Attributes:
        version: Sortable version identifier (e.g., '20240101120000')
        name: Descriptive name (e.g., 'create_users')
        direction: Direction.UP or Direction.DOWN
        runner: Callable executing the change against a transactional
            connection; opaque to the engine
        dialect_scope: Dialects this migration applies to
        path: Source file, when discovered from disk

    Example:
        >>> migration = Migration(
        ...     version='1',
        ...     name='create_users',
        ...     direction=Direction.UP,
        ...     runner=sql_runner('CREATE TABLE users (id INTEGER);'),
        ... )
        >>> print(migration)
        <Migration(1, create_users, up)>
    """

    version: str
    name: str = field(compare=False)
    direction: Direction
    runner: Callable[[Any], None] = field(compare=False, repr=False)
    dialect_scope: DialectScope = field(default=DialectScope.ALL, compare=False)
    path: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        """Validate migration after initialization."""
        if not self.version:
            raise ValueError("Migration version must not be empty")
        if not isinstance(self.direction, Direction):
            object.__setattr__(self, 'direction', Direction(self.direction))

    def run(self, connection: Any) -> None:
        """Execute the migration body against a transactional connection."""
        self.runner(connection)

    def applies_to(self, dialect_name: str) -> bool:
        """Whether this migration should run on ``dialect_name``."""
        return self.dialect_scope.matches(dialect_name)

    def __lt__(self, other: 'Migration') -> bool:
        """Allow sorting migrations by version."""
        if not isinstance(other, Migration):
            return NotImplemented
        return version_key(self.version) < version_key(other.version)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Migration({self.version}, {self.name}, {self.direction.value})>"


class MigrationSet:
    """
    Ordered collection of migrations for exactly one direction.

    Up sets are kept ascending by version, down sets descending, so that
    rollback undoes the most recent change first. Iteration always yields
    that order.

    Example:
        >>> ups = MigrationSet(Direction.UP)
        >>> ups.add(m2)
        >>> ups.add(m1)
        >>> [m.version for m in ups]
        ['1', '2']
    """

    def __init__(self, direction: Direction, migrations=()):
        self.direction = Direction(direction)
        self._migrations: list[Migration] = []
        for migration in migrations:
            self.add(migration)

    def add(self, migration: Migration) -> None:
        """
        Add a migration, keeping the set sorted.

        Raises:
            ValueError: If the migration's direction differs from the set's
        """
        if migration.direction is not self.direction:
            raise ValueError(
                f"Cannot add {migration.direction.value} migration "
                f"{migration.version} to a {self.direction.value} set"
            )
        self._migrations.append(migration)
        self.sort()

    def sort(self) -> None:
        """Sort ascending for up, descending for down."""
        self._migrations.sort(
            key=lambda m: version_key(m.version),
            reverse=self.direction is Direction.DOWN,
        )

    def find(self, version: str) -> list[Migration]:
        """All migrations with ``version`` (one per dialect scope at most)."""
        return [m for m in self._migrations if m.version == version]

    def __iter__(self) -> Iterator[Migration]:
        return iter(list(self._migrations))

    def __len__(self) -> int:
        return len(self._migrations)

    def __getitem__(self, index):
        return self._migrations[index]

    def __repr__(self) -> str:
        return f"<MigrationSet({self.direction.value}, {len(self)} migrations)>"
