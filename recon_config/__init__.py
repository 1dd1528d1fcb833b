"""
recon_config -- single public entrypoint for reconciliation configuration.

Responsibility:
    Provides the only way to obtain configuration at runtime through
    ``get_active_config()``. The normalizer, the engines and the service
    receive a ``ReconConfig``; none of them read YAML files themselves.

Architecture position:
    Configuration -- sits above ``recon_kernel`` and below
    ``recon_ingestion`` / ``recon_services``. The kernel never imports
    from this package.

Invariants enforced:
    - The returned configuration has passed ``validate_config``.
    - Same YAML document, same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``KeyError`` -- a required key is missing.
    - ``ValueError`` -- validation failed.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``RECON_CONFIG_TRACE`` log entry carrying the config id, version and
    checksum, so each dashboard can be tied back to the settings that
    produced it.
"""

from __future__ import annotations

from pathlib import Path

from recon_config.loader import load_yaml_file, parse_config
from recon_config.schema import UNCATEGORISED, ReconConfig, SourceMappingDef
from recon_config.validator import validate_config
from recon_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "building_finance.yaml"

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "UNCATEGORISED",
    "ReconConfig",
    "SourceMappingDef",
    "get_active_config",
]


def get_active_config(config_path: Path | None = None) -> ReconConfig:
    """
    The public configuration entrypoint.

    Args:
        config_path: Override path to the YAML file. Defaults to
            ``recon_config/defaults/building_finance.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path))

    validation = validate_config(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})

    _logger.info(
        "RECON_CONFIG_TRACE",
        extra={
            "trace_type": "RECON_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "currency": config.currency,
            "category_count": len(config.canonical_categories),
            "source_count": len(config.sources),
        },
    )
    return config
