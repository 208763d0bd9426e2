# FILE: app/embeddings/migrations.py
"""
Schema manager for the embedding table.

Runs once at startup and is idempotent. It:
    1. probes the table and the declared type of its embedding column
    2. plans what to do (keep / create / drop and recreate) with plan_migration()
    3. provisions the best tier it can, walking the provisioner ladder:
         NATIVE_VECTOR  CREATE EXTENSION vector + vector(N) column
                        index: ivfflat -> plain -> none
         FIXED_ARRAY    double precision[] column
         TEXT_ENCODED   TEXT column holding "[x,y,...]"
    4. hands the achieved tier to the embedding store

A tier that cannot be provisioned is not an error; only an unreachable store
(StoreUnavailableError) or every tier failing stops startup.

Dropping the table loses stored rows. That is accepted: embeddings are always
regenerable from their source text.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db import SessionLocal, session_scope

from .capability import CapabilityTier, ColumnCapability, probe_capability
from .config import (
    EMBEDDING_COLUMN,
    EMBEDDING_DIMENSIONS,
    EMBEDDING_TABLE,
)
from .errors import ProvisioningError, StoreUnavailableError
from .introspection import SqlIntrospector, is_connection_error
from .strategies import quote_ident

logger = logging.getLogger(__name__)


# =============================================================================
# MIGRATION PLANNING
# =============================================================================

class MigrationAction(str, Enum):
    KEEP = "keep"
    CREATE = "create"
    DROP_AND_CREATE = "drop_and_create"


@dataclass(frozen=True)
class MigrationPlan:
    """What the schema manager is about to do, and why."""
    action: MigrationAction
    current: ColumnCapability
    desired: CapabilityTier
    reason: str

    @property
    def drops_table(self) -> bool:
        return self.action is MigrationAction.DROP_AND_CREATE

    @property
    def provisions(self) -> bool:
        return self.action is not MigrationAction.KEEP


def plan_migration(current: ColumnCapability, desired: CapabilityTier) -> MigrationPlan:
    """
    Decide how to get from the current schema to a usable one.

    - no table                          -> CREATE
    - no embedding column / unknown type -> DROP_AND_CREATE
    - TEXT column while a SQL-side tier is wanted -> DROP_AND_CREATE
    - vector or numeric array column    -> KEEP
    """
    if not current.exists:
        return MigrationPlan(MigrationAction.CREATE, current, desired, "table does not exist")

    if current.tier is None:
        reason = (
            f"incorrect column type: {current.raw_type}"
            if current.raw_type
            else "embedding column is missing"
        )
        return MigrationPlan(MigrationAction.DROP_AND_CREATE, current, desired, reason)

    if current.tier is CapabilityTier.TEXT_ENCODED and desired is not CapabilityTier.TEXT_ENCODED:
        return MigrationPlan(
            MigrationAction.DROP_AND_CREATE,
            current,
            desired,
            f"stale text-encoded column, {desired.value} wanted",
        )

    if current.tier.rank < desired.rank:
        reason = f"{current.tier.value} column kept ({desired.value} available)"
    else:
        reason = f"{current.tier.value} column is usable"
    return MigrationPlan(MigrationAction.KEEP, current, desired, reason)


@dataclass(frozen=True)
class SchemaReport:
    """Outcome of one schema manager run."""
    plan: MigrationPlan
    capability: ColumnCapability
    index: Optional[str] = None

    @property
    def tier(self) -> CapabilityTier:
        return self.capability.tier

    def summary(self) -> str:
        return (
            f"plan={self.plan.action.value} ({self.plan.reason}), "
            f"tier={self.tier.value}, index={self.index or 'none'}"
        )


# =============================================================================
# PROVISIONERS
# =============================================================================

def _columns_sql(embedding_type: str) -> str:
    return f"""
        "id" UUID PRIMARY KEY,
        "content" TEXT NOT NULL,
        "category" TEXT NOT NULL,
        "embedding" {embedding_type} NOT NULL,
        "created_at" TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,
        "updated_at" TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP
    """


class TierProvisioner(ABC):
    """Creates the embedding table for one capability tier."""

    tier: CapabilityTier

    def __init__(self, table: str = EMBEDDING_TABLE, dimensions: int = EMBEDDING_DIMENSIONS):
        self.table = table
        self.dimensions = dimensions
        self._table_sql = quote_ident(table)
        self.category_index = f"{table}_category_idx"

    @abstractmethod
    def create_statements(self) -> List[str]:
        """DDL that must all succeed for this tier, run in one transaction."""

    def index_attempts(self) -> List[tuple]:
        """(label, DDL) pairs for the embedding column, tried in order; the first that succeeds wins."""
        return []

    def provision(self, session_factory: Callable[[], Session]) -> Optional[str]:
        """Create the table. Raises ProvisioningError to fall through to the next tier."""
        try:
            with session_scope(session_factory) as session:
                for statement in self.create_statements():
                    session.execute(text(statement))
        except SQLAlchemyError as e:
            if is_connection_error(e):
                raise StoreUnavailableError(f"Embedding store unreachable: {e}") from e
            raise ProvisioningError(self.tier, str(e)) from e

        return self.ensure_indexes(session_factory)

    def _create_index(self, label: str, statement: str, session_factory: Callable[[], Session]) -> bool:
        try:
            with session_scope(session_factory) as session:
                session.execute(text(statement))
            return True
        except SQLAlchemyError as e:
            if is_connection_error(e):
                raise StoreUnavailableError(f"Embedding store unreachable: {e}") from e
            logger.warning(f"[schema] Could not create {label} index: {e}")
            return False

    def ensure_indexes(self, session_factory: Callable[[], Session]) -> Optional[str]:
        """
        Best-effort index creation.

        The category index is always attempted. Returns the label of the
        embedding index built, or "category" for tiers without one, or None.
        """
        category_built = self._create_index(
            "category",
            f"CREATE INDEX IF NOT EXISTS {quote_ident(self.category_index)} "
            f"ON {self._table_sql} (\"category\")",
            session_factory,
        )

        attempts = self.index_attempts()
        for label, statement in attempts:
            if self._create_index(label, statement, session_factory):
                return label

        if not attempts and category_built:
            return "category"

        logger.info(f"[schema] Proceeding without an index on {self.table}; searches will be slower")
        return None


class NativeVectorProvisioner(TierProvisioner):
    tier = CapabilityTier.NATIVE_VECTOR

    def __init__(self, table: str = EMBEDDING_TABLE, dimensions: int = EMBEDDING_DIMENSIONS):
        super().__init__(table, dimensions)
        self.ivfflat_index = f"{table}_embedding_ivfflat_idx"
        self.plain_index = f"{table}_embedding_idx"

    def create_statements(self) -> List[str]:
        return [
            "CREATE EXTENSION IF NOT EXISTS vector",
            f"CREATE TABLE IF NOT EXISTS {self._table_sql} ({_columns_sql(f'vector({self.dimensions})')})",
        ]

    def index_attempts(self) -> List[tuple]:
        return [
            (
                "ivfflat",
                f"CREATE INDEX IF NOT EXISTS {quote_ident(self.ivfflat_index)} ON {self._table_sql} "
                f"USING ivfflat (\"embedding\" vector_cosine_ops) WITH (lists = 100)",
            ),
            (
                "plain",
                f"CREATE INDEX IF NOT EXISTS {quote_ident(self.plain_index)} ON {self._table_sql} (\"embedding\")",
            ),
        ]


class FixedArrayProvisioner(TierProvisioner):
    tier = CapabilityTier.FIXED_ARRAY

    def create_statements(self) -> List[str]:
        return [f"CREATE TABLE IF NOT EXISTS {self._table_sql} ({_columns_sql('double precision[]')})"]


class TextEncodedProvisioner(TierProvisioner):
    tier = CapabilityTier.TEXT_ENCODED

    def create_statements(self) -> List[str]:
        return [f"CREATE TABLE IF NOT EXISTS {self._table_sql} ({_columns_sql('TEXT')})"]


def default_provisioners(table: str = EMBEDDING_TABLE, dimensions: int = EMBEDDING_DIMENSIONS) -> List[TierProvisioner]:
    return [
        NativeVectorProvisioner(table, dimensions),
        FixedArrayProvisioner(table, dimensions),
        TextEncodedProvisioner(table, dimensions),
    ]


# =============================================================================
# SCHEMA MANAGER
# =============================================================================

class SchemaManager:
    """Probe, plan and repair the embedding table."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        introspector_factory: Callable[[Session], Any] = SqlIntrospector,
        table: str = EMBEDDING_TABLE,
        dimensions: int = EMBEDDING_DIMENSIONS,
        provisioners: Optional[List[TierProvisioner]] = None,
    ):
        self._session_factory = session_factory
        self._introspector_factory = introspector_factory
        self.table = table
        self.dimensions = dimensions
        self.provisioners = provisioners or default_provisioners(table, dimensions)

    def inspect(self) -> tuple:
        """Returns (current capability, desired tier). Raises StoreUnavailableError."""
        try:
            with session_scope(self._session_factory) as session:
                introspector = self._introspector_factory(session)
                introspector.ping()
                current = probe_capability(introspector, self.table, EMBEDDING_COLUMN)
                desired = (
                    CapabilityTier.NATIVE_VECTOR
                    if introspector.vector_extension_available()
                    else CapabilityTier.FIXED_ARRAY
                )
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Embedding store unreachable: {e}") from e
        return current, desired

    def plan(self) -> MigrationPlan:
        current, desired = self.inspect()
        return plan_migration(current, desired)

    def run(self, store=None) -> SchemaReport:
        """
        Bring the schema to a usable tier.

        If a store is given, it is handed the resulting capability so it does
        not have to probe again.
        """
        logger.info("[schema] Running embedding schema migrations...")
        plan = self.plan()
        logger.info(f"[schema] Plan: {plan.action.value} ({plan.reason})")

        if plan.provisions:
            if plan.drops_table:
                logger.warning(
                    f"[schema] Dropping and recreating {self.table}: {plan.reason}"
                )
                self.drop_table()
            tier, index = self._provision(plan.desired)
            capability = ColumnCapability.provisioned(tier)
        else:
            index = self._provisioner_for(plan.current.tier).ensure_indexes(self._session_factory)
            capability = plan.current

        report = SchemaReport(plan=plan, capability=capability, index=index)
        logger.info(f"[schema] Migration complete: {report.summary()}")

        if store is not None:
            store.set_capability(capability)
        return report

    def drop_table(self) -> None:
        try:
            with session_scope(self._session_factory) as session:
                session.execute(text(f"DROP TABLE IF EXISTS {quote_ident(self.table)}"))
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Could not drop {self.table}: {e}") from e

    def down(self) -> None:
        """Remove the embedding table entirely."""
        self.drop_table()
        logger.info(f"[schema] Dropped {self.table}")

    def _provision(self, desired: CapabilityTier) -> tuple:
        """Walk the ladder from the desired tier down. Returns (tier, index)."""
        for provisioner in self.provisioners:
            if provisioner.tier.rank > desired.rank:
                continue
            try:
                index = provisioner.provision(self._session_factory)
                logger.info(f"[schema] Created {self.table} with {provisioner.tier.value} column")
                return provisioner.tier, index
            except ProvisioningError as e:
                logger.warning(f"[schema] Could not provision {e}. Falling back...")

        raise ProvisioningError(None, "no capability tier could be provisioned")

    def _provisioner_for(self, tier: CapabilityTier) -> TierProvisioner:
        for provisioner in self.provisioners:
            if provisioner.tier is tier:
                return provisioner
        return TextEncodedProvisioner(self.table, self.dimensions)


def run_schema_migrations(store=None) -> SchemaReport:
    """Startup entry point."""
    if store is None:
        from .repository import get_embedding_store
        store = get_embedding_store()
    return SchemaManager().run(store=store)
