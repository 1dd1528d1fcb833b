"""
Configuration Validator (``recon_config.validator``).

Responsibility
--------------
Checks a parsed ``ReconConfig`` for structural problems before it is handed
to the normalizer. A configuration with errors is never returned by
``get_active_config``.

Invariants enforced
-------------------
* ``Uncategorised`` is a canonical category.
* Aliases point at canonical categories.
* Every value table maps onto known enum values.
* Both ``local`` and ``external`` sources are configured.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from recon_config.schema import UNCATEGORISED, ReconConfig, SourceMappingDef
from recon_kernel.domain.values import (
    InvoiceStatus,
    PaymentStatus,
    RecordKind,
    RecordStatus,
    SourceName,
    SyncStatus,
)


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_config(config: ReconConfig) -> ConfigValidationResult:
    """Validate a parsed configuration."""
    result = ConfigValidationResult()

    _validate_settings(config, result)
    _validate_categories(config, result)
    for required in SourceName:
        if required.value not in config.sources:
            result.add_error(f"Missing mapping tables for source '{required.value}'")
    for source in config.sources.values():
        _validate_source(config, source, result)

    return result


def _validate_settings(config: ReconConfig, result: ConfigValidationResult) -> None:
    if len(config.currency) != 3 or not config.currency.isalpha():
        result.add_error(f"currency must be an ISO 4217 code, got {config.currency!r}")
    if not 0 <= config.minor_unit_exponent <= 4:
        result.add_error(
            f"minor_unit_exponent must be between 0 and 4, got {config.minor_unit_exponent}"
        )
    if config.recent_transactions_limit < 1:
        result.add_error("recent_transactions_limit must be positive")
    if config.fetch_timeout_seconds is not None and config.fetch_timeout_seconds <= 0:
        result.add_error("fetch_timeout_seconds must be positive when set")
    if config.refresh_interval_seconds <= 0:
        result.add_error("refresh_interval_seconds must be positive")


def _validate_categories(config: ReconConfig, result: ConfigValidationResult) -> None:
    if UNCATEGORISED not in config.canonical_categories:
        result.add_error(f"canonical_categories must include '{UNCATEGORISED}'")
    if len(set(config.canonical_categories)) != len(config.canonical_categories):
        result.add_error("canonical_categories contains duplicates")


def _check_values(
    source: SourceMappingDef,
    table_name: str,
    table: dict[str, str | None],
    enum_type: type[Enum],
    allow_null: bool,
    result: ConfigValidationResult,
) -> None:
    allowed = {member.value for member in enum_type}
    for raw, canonical in table.items():
        if canonical is None:
            if not allow_null:
                result.add_error(
                    f"Source '{source.name}' {table_name}: '{raw}' cannot map to null"
                )
            continue
        if canonical not in allowed:
            result.add_error(
                f"Source '{source.name}' {table_name}: '{raw}' maps to unknown "
                f"value '{canonical}'"
            )


def _validate_source(
    config: ReconConfig, source: SourceMappingDef, result: ConfigValidationResult,
) -> None:
    if not source.kind_values:
        result.add_error(f"Source '{source.name}' has no kind_values")
    _check_values(source, "kind_values", source.kind_values, RecordKind, False, result)
    _check_values(
        source, "transaction_status_values", source.transaction_status_values,
        RecordStatus, True, result,
    )
    _check_values(
        source, "invoice_status_values", source.invoice_status_values,
        InvoiceStatus, True, result,
    )
    _check_values(
        source, "payment_status_values", source.payment_status_values,
        PaymentStatus, False, result,
    )
    _check_values(
        source, "sync_status_values", source.sync_status_values,
        SyncStatus, False, result,
    )
    for alias, target in source.category_aliases.items():
        if target not in config.canonical_categories:
            result.add_error(
                f"Source '{source.name}' alias '{alias}' points to unknown "
                f"category '{target}'"
            )
    if source.name == SourceName.EXTERNAL.value and not source.sync_status_values:
        result.add_warning("External source has no sync_status_values table")
