"""
Mapping engine: pure transformation from a raw source row to a typed dict.

Applies a tuple of ``FieldMapping`` entries to one row: transform, coerce
strings to the target type, then validate the result. ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from recon_ingestion.domain.types import FieldMapping, FieldType, ValidationError

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y")


# -----------------------------------------------------------------------------
# Result types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CoercionResult:
    """Result of coercing a string to a target type."""

    success: bool
    value: Any = None
    error: ValidationError | None = None


@dataclass(frozen=True)
class MappingResult:
    """Result of applying field mappings to a raw row."""

    success: bool
    mapped_data: dict[str, Any] = field(default_factory=dict)
    errors: tuple[ValidationError, ...] = ()

    @property
    def missing_fields(self) -> tuple[str, ...]:
        return tuple(
            e.field for e in self.errors if e.code == "MISSING_REQUIRED_FIELD"
        )


# -----------------------------------------------------------------------------
# Transforms (pure)
# -----------------------------------------------------------------------------


def _parse_iso_datetime(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def apply_transform(value: Any, transform: str) -> Any:
    """Apply a named transform. Pure function; unknown names are a no-op."""
    if value is None:
        return None
    t = (transform or "").strip().lower()
    if t in ("strip", "trim"):
        return value.strip() if isinstance(value, str) else value
    if t == "upper":
        return value.strip().upper() if isinstance(value, str) else value
    if t == "lower":
        return value.strip().lower() if isinstance(value, str) else value
    if t == "key":
        # Vocabulary lookups: "In Progress " -> "in_progress"
        if isinstance(value, str):
            return "_".join(value.strip().lower().split())
        return value
    if t == "to_decimal":
        if isinstance(value, bool):
            return value
        if isinstance(value, (Decimal, int)):
            return Decimal(value)
        s = value.strip().replace(",", "") if isinstance(value, str) else str(value)
        try:
            return Decimal(s)
        except (InvalidOperation, ValueError):
            return value  # Caller gets the type error from validation
    if t == "to_date":
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            s = value.strip()
            parsed = _parse_iso_datetime(s)
            if parsed is not None and ("T" in s or " " in s):
                return parsed.date()
            for fmt in _DATE_FORMATS:
                try:
                    return datetime.strptime(s, fmt).date()
                except ValueError:
                    continue
        return value
    if t == "to_utc":
        if isinstance(value, str):
            parsed = _parse_iso_datetime(value)
            if parsed is None:
                return value
            value = parsed
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=UTC)
            return value.astimezone(UTC)
        return value
    return value


# -----------------------------------------------------------------------------
# Coercion: string -> typed
# -----------------------------------------------------------------------------


def coerce_from_string(
    value: str,
    field_type: FieldType,
    format_str: str | None = None,
) -> CoercionResult:
    """
    Coerce a string value to the target type. Pure function.

    Stores backed by text columns or JSON payloads hand over strings; this
    converts them to Decimal, date, int, etc.
    """
    s = value.strip() if isinstance(value, str) else (str(value) if value is not None else "")
    if not s and field_type != FieldType.STRING:
        return CoercionResult(success=False, error=ValidationError(
            code="MISSING_VALUE",
            message="Empty value cannot be coerced to non-string type",
        ))

    if field_type == FieldType.STRING:
        return CoercionResult(success=True, value=s)

    if field_type == FieldType.INTEGER:
        try:
            d = Decimal(s)
            if d != d.to_integral_value():
                raise ValueError(s)
            return CoercionResult(success=True, value=int(d))
        except (ValueError, InvalidOperation):
            return CoercionResult(
                success=False,
                error=ValidationError(code="INVALID_INTEGER", message=f"Cannot coerce to integer: {s!r}"),
            )

    if field_type == FieldType.DECIMAL:
        try:
            return CoercionResult(success=True, value=Decimal(s))
        except (ValueError, InvalidOperation):
            return CoercionResult(
                success=False,
                error=ValidationError(code="INVALID_DECIMAL", message=f"Cannot coerce to decimal: {s!r}"),
            )

    if field_type == FieldType.BOOLEAN:
        low = s.lower()
        if low in ("true", "yes", "1", "on"):
            return CoercionResult(success=True, value=True)
        if low in ("false", "no", "0", "off"):
            return CoercionResult(success=True, value=False)
        return CoercionResult(
            success=False,
            error=ValidationError(code="INVALID_BOOLEAN", message=f"Cannot coerce to boolean: {s!r}"),
        )

    if field_type == FieldType.DATE:
        formats = (format_str,) + _DATE_FORMATS if format_str else _DATE_FORMATS
        for fmt in formats:
            try:
                return CoercionResult(success=True, value=datetime.strptime(s, fmt).date())
            except ValueError:
                continue
        return CoercionResult(
            success=False,
            error=ValidationError(code="INVALID_DATE_FORMAT", message=f"Cannot parse date: {s!r}"),
        )

    if field_type == FieldType.DATETIME:
        parsed = _parse_iso_datetime(s)
        if parsed is not None:
            return CoercionResult(success=True, value=parsed)
        return CoercionResult(
            success=False,
            error=ValidationError(code="INVALID_DATETIME_FORMAT", message=f"Cannot parse datetime: {s!r}"),
        )

    return CoercionResult(success=False, error=ValidationError(code="UNSUPPORTED_TYPE", message=f"Unsupported field_type: {field_type}"))


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


def validate_field_type(value: Any, field_type: FieldType, path: str) -> ValidationError | None:
    """Validate that a mapped value has the expected Python type."""
    ok = True
    if field_type == FieldType.STRING:
        ok = isinstance(value, str)
    elif field_type == FieldType.INTEGER:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif field_type == FieldType.DECIMAL:
        ok = isinstance(value, (Decimal, int, float)) and not isinstance(value, bool)
    elif field_type == FieldType.BOOLEAN:
        ok = isinstance(value, bool)
    elif field_type == FieldType.DATE:
        ok = isinstance(value, date) and not isinstance(value, datetime)
    elif field_type == FieldType.DATETIME:
        ok = isinstance(value, datetime)

    if ok:
        return None
    return ValidationError(
        code="INVALID_TYPE",
        message=f"Expected {field_type.value} at {path}, got {type(value).__name__}",
        field=path,
    )


# -----------------------------------------------------------------------------
# Apply mapping (pure)
# -----------------------------------------------------------------------------


def apply_mapping(
    raw_data: dict[str, Any],
    field_mappings: tuple[FieldMapping, ...],
) -> MappingResult:
    """
    Apply field mappings to a raw source row. Pure function.

    For each mapping: get source value, apply transform, coerce if string,
    validate. Missing required -> error; missing optional -> default.
    """
    errors: list[ValidationError] = []
    mapped: dict[str, Any] = {}

    for fm in field_mappings:
        raw_value = raw_data.get(fm.source) if isinstance(raw_data, dict) else None
        path = fm.target

        # Missing value
        if raw_value is None or (isinstance(raw_value, str) and not raw_value.strip()):
            if fm.required:
                errors.append(ValidationError(
                    code="MISSING_REQUIRED_FIELD",
                    message=f"Required field {fm.source!r} is missing",
                    field=path,
                ))
                continue
            if fm.default is not None:
                mapped[path] = fm.default
            continue

        value = apply_transform(raw_value, fm.transform) if fm.transform else raw_value

        # Identifiers and codes may arrive as numbers
        if fm.field_type == FieldType.STRING and isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)

        if isinstance(value, str) and fm.field_type != FieldType.STRING:
            coerced = coerce_from_string(value, fm.field_type, fm.format)
            if not coerced.success:
                errors.append(ValidationError(
                    code=coerced.error.code,
                    message=coerced.error.message,
                    field=path,
                ))
                continue
            value = coerced.value

        type_error = validate_field_type(value, fm.field_type, path)
        if type_error:
            errors.append(type_error)
            continue

        mapped[path] = value

    return MappingResult(
        success=len(errors) == 0,
        mapped_data=mapped,
        errors=tuple(errors),
    )
