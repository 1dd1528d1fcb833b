"""Mapping engine: pure field mapping and type coercion."""

from recon_ingestion.mapping.engine import (
    CoercionResult,
    MappingResult,
    apply_mapping,
    apply_transform,
    coerce_from_string,
    validate_field_type,
)
from recon_ingestion.mapping.tables import field_mappings_for

__all__ = [
    "apply_mapping",
    "apply_transform",
    "coerce_from_string",
    "field_mappings_for",
    "validate_field_type",
    "CoercionResult",
    "MappingResult",
]
