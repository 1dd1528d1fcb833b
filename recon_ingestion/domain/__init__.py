"""
recon_ingestion.domain -- Pure types for raw input and field mapping.

ZERO I/O. Imports only from recon_kernel/domain/.
"""

from recon_ingestion.domain.types import (
    EntitySyncState,
    EntityType,
    ExternalRecord,
    ExternalSnapshot,
    FieldMapping,
    FieldType,
    LocalRecord,
    LocalSnapshot,
    RawRecord,
    ValidationError,
)

__all__ = [
    "EntitySyncState",
    "EntityType",
    "ExternalRecord",
    "ExternalSnapshot",
    "FieldMapping",
    "FieldType",
    "LocalRecord",
    "LocalSnapshot",
    "RawRecord",
    "ValidationError",
]
