# FILE: app/embeddings/capability.py
"""
Capability tiers for the embedding column.

The embedding table can hold vectors in one of three physical encodings,
depending on what the database supports at deploy time:

    NATIVE_VECTOR  pgvector `vector(N)` column, distance operators in SQL
    FIXED_ARRAY    `double precision[]` column, cosine computed with unnest()
    TEXT_ENCODED   plain TEXT holding "[x,y,...]", cosine computed in Python

Tiers are ordered: NATIVE_VECTOR > FIXED_ARRAY > TEXT_ENCODED.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CapabilityTier(str, Enum):
    """Physical encoding of the embedding column."""
    NATIVE_VECTOR = "native_vector"
    FIXED_ARRAY = "fixed_array"
    TEXT_ENCODED = "text_encoded"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["CapabilityTier"]:
        """Parse a tier name (case-insensitive). Unknown or empty -> None."""
        if not value:
            return None
        normalized = value.strip().lower()
        for tier in cls:
            if tier.value == normalized or tier.name.lower() == normalized:
                return tier
        return None


_TIER_RANK = {
    CapabilityTier.TEXT_ENCODED: 1,
    CapabilityTier.FIXED_ARRAY: 2,
    CapabilityTier.NATIVE_VECTOR: 3,
}

# Column type reported for a freshly provisioned tier (diagnostics only)
TIER_RAW_TYPES = {
    CapabilityTier.NATIVE_VECTOR: "user-defined (vector)",
    CapabilityTier.FIXED_ARRAY: "array (_float8)",
    CapabilityTier.TEXT_ENCODED: "text",
}

# information_schema.columns.udt_name values for numeric arrays
NUMERIC_ARRAY_UDTS = {"_float8", "_float4", "_numeric"}

TEXT_TYPES = {"text", "character varying", "varchar"}


@dataclass(frozen=True)
class ColumnType:
    """Raw type of a column as reported by information_schema."""
    data_type: str
    udt_name: Optional[str] = None

    def describe(self) -> str:
        data_type = (self.data_type or "").lower()
        if self.udt_name:
            return f"{data_type} ({self.udt_name.lower()})"
        return data_type


@dataclass(frozen=True)
class ColumnCapability:
    """
    What the embedding column can currently do.

    Derived from introspection, never persisted.

    exists: the table exists
    tier: recognised tier, or None if the table/column is missing or
          the column type is not one we can work with
    raw_type: reported column type, kept for diagnostics
    """
    exists: bool
    tier: Optional[CapabilityTier] = None
    raw_type: str = ""

    @property
    def is_usable(self) -> bool:
        return self.exists and self.tier is not None

    @classmethod
    def missing(cls) -> "ColumnCapability":
        return cls(exists=False)

    @classmethod
    def provisioned(cls, tier: CapabilityTier) -> "ColumnCapability":
        return cls(exists=True, tier=tier, raw_type=TIER_RAW_TYPES[tier])


def classify_column_type(column_type: Optional[ColumnType]) -> Optional[CapabilityTier]:
    """Map a reported column type onto a capability tier, or None if unusable."""
    if column_type is None:
        return None

    data_type = (column_type.data_type or "").strip().lower()
    udt_name = (column_type.udt_name or "").strip().lower()

    if data_type == "vector" or udt_name == "vector":
        return CapabilityTier.NATIVE_VECTOR
    if data_type == "user-defined" and not udt_name:
        return CapabilityTier.NATIVE_VECTOR

    if data_type == "array":
        if not udt_name or udt_name in NUMERIC_ARRAY_UDTS:
            return CapabilityTier.FIXED_ARRAY
        return None
    if data_type.endswith("[]") and data_type[:-2].strip() in {"double precision", "real", "numeric"}:
        return CapabilityTier.FIXED_ARRAY

    if data_type in TEXT_TYPES:
        return CapabilityTier.TEXT_ENCODED

    return None


def probe_capability(introspector, table: str, column: str) -> ColumnCapability:
    """Probe the live schema through an introspector (see introspection.py)."""
    if not introspector.table_exists(table):
        return ColumnCapability.missing()

    column_type = introspector.column_type(table, column)
    if column_type is None:
        return ColumnCapability(exists=True, tier=None, raw_type="")

    return ColumnCapability(
        exists=True,
        tier=classify_column_type(column_type),
        raw_type=column_type.describe(),
    )
