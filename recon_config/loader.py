"""
Configuration Loader (``recon_config.loader``).

Responsibility
--------------
Loads the YAML settings file and parses it into ``recon_config.schema``
dataclasses. Callers go through ``recon_config.get_active_config()``.

Invariants enforced
-------------------
* No silent defaults for required keys: a missing key raises ``KeyError``.
* ``compute_checksum`` is deterministic for identical documents.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from recon_config.schema import ReconConfig, SourceMappingDef


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _str_table(data: dict[str, Any] | None) -> dict[str, Any]:
    # YAML keys such as ``yes`` or numbers come back typed; keys are
    # always source vocabulary strings.
    return {str(k).strip().lower(): v for k, v in (data or {}).items()}


def parse_source_mapping(name: str, data: dict[str, Any]) -> SourceMappingDef:
    """Parse one entry under ``sources``."""
    return SourceMappingDef(
        name=name,
        kind_values=_str_table(data.get("kind_values")),
        transaction_status_values=_str_table(data.get("transaction_status_values")),
        invoice_status_values=_str_table(data.get("invoice_status_values")),
        payment_status_values=_str_table(data.get("payment_status_values")),
        sync_status_values=_str_table(data.get("sync_status_values")),
        category_aliases={
            str(k): str(v) for k, v in (data.get("category_aliases") or {}).items()
        },
    )


def parse_config(data: dict[str, Any]) -> ReconConfig:
    """
    Parse a ``ReconConfig`` from a loaded document.

    Raises:
        KeyError: if a required key is missing.
        ValueError: if a numeric setting cannot be converted.
    """
    timeout = data.get("fetch_timeout_seconds")
    return ReconConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        currency=str(data["currency"]).upper(),
        minor_unit_exponent=int(data["minor_unit_exponent"]),
        recent_transactions_limit=int(data.get("recent_transactions_limit", 10)),
        fetch_timeout_seconds=float(timeout) if timeout is not None else None,
        refresh_interval_seconds=float(data.get("refresh_interval_seconds", 300)),
        canonical_categories=tuple(str(c) for c in data["canonical_categories"]),
        sources={
            str(name): parse_source_mapping(str(name), body or {})
            for name, body in data["sources"].items()
        },
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
