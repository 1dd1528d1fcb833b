"""
Tests for configuration loading and validation.

Covers:
- The shipped building_finance.yaml loads and validates
- Category resolution through canonical names and per-source aliases
- Validation errors for broken documents
- Config trace logging
"""

from pathlib import Path

import pytest
import yaml

from recon_config import DEFAULT_CONFIG_PATH, UNCATEGORISED, get_active_config
from recon_config.loader import compute_checksum, load_yaml_file, parse_config
from recon_config.validator import validate_config


def _write(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "recon.yaml"
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path


@pytest.fixture
def raw_config() -> dict:
    """A fresh copy of the shipped document for mutation."""
    return load_yaml_file(DEFAULT_CONFIG_PATH)


class TestDefaultConfig:
    """The shipped configuration."""

    def test_loads(self, config):
        assert config.config_id == "building_finance"
        assert config.currency == "GBP"
        assert config.minor_unit_exponent == 2
        assert config.recent_transactions_limit == 10
        assert config.fetch_timeout_seconds == 10.0

    def test_both_sources_present(self, config):
        assert set(config.sources) == {"local", "external"}

    def test_uncategorised_is_canonical(self, config):
        assert UNCATEGORISED in config.canonical_categories

    def test_null_statuses_survive_parsing(self, config):
        """A status mapped to null marks a non-event, distinct from unknown."""
        local = config.source("local")
        assert "rejected" in local.transaction_status_values
        assert local.transaction_status_values["rejected"] is None
        assert local.invoice_status_values["paid"] is None

    def test_checksum_is_stable(self, raw_config):
        assert compute_checksum(raw_config) == compute_checksum(dict(raw_config))
        assert len(compute_checksum(raw_config)) == 64

    def test_unknown_source_raises(self, config):
        with pytest.raises(KeyError, match="billing"):
            config.source("billing")


class TestResolveCategory:
    """Category names are matched case-insensitively, then through aliases."""

    def test_canonical_name(self, config):
        assert config.resolve_category("local", "Utilities") == ("Utilities", True)

    def test_case_and_whitespace_ignored(self, config):
        assert config.resolve_category("external", "  service   CHARGES ") == (
            "Service Charges", True,
        )

    def test_source_alias(self, config):
        assert config.resolve_category("external", "Communal Electricity") == (
            "Utilities", True,
        )
        assert config.resolve_category("local", "electricity") == ("Utilities", True)

    def test_aliases_are_per_source(self, config):
        """The external alias 'svc chg' means nothing in the local ledger."""
        assert config.resolve_category("external", "svc chg") == ("Service Charges", True)
        assert config.resolve_category("local", "svc chg") == (UNCATEGORISED, False)

    def test_blank_is_recognised_uncategorised(self, config):
        assert config.resolve_category("local", None) == (UNCATEGORISED, True)
        assert config.resolve_category("local", "   ") == (UNCATEGORISED, True)

    def test_unknown_is_flagged(self, config):
        assert config.resolve_category("local", "Bake Sale") == (UNCATEGORISED, False)


class TestValidation:
    """validate_config and get_active_config error reporting."""

    def test_default_is_valid(self, config):
        result = validate_config(config)
        assert result.is_valid
        assert result.errors == []

    def test_bad_currency(self, raw_config):
        raw_config["currency"] = "POUNDS"
        result = validate_config(parse_config(raw_config))
        assert any("currency" in e for e in result.errors)

    def test_missing_uncategorised(self, raw_config):
        raw_config["canonical_categories"] = [
            c for c in raw_config["canonical_categories"] if c != UNCATEGORISED
        ]
        result = validate_config(parse_config(raw_config))
        assert any(UNCATEGORISED in e for e in result.errors)

    def test_duplicate_categories(self, raw_config):
        raw_config["canonical_categories"].append("Repairs")
        result = validate_config(parse_config(raw_config))
        assert any("duplicates" in e for e in result.errors)

    def test_alias_to_unknown_category(self, raw_config):
        raw_config["sources"]["local"]["category_aliases"]["boiler"] = "Heating"
        result = validate_config(parse_config(raw_config))
        assert any("'boiler'" in e and "Heating" in e for e in result.errors)

    def test_unknown_canonical_status(self, raw_config):
        raw_config["sources"]["external"]["transaction_status_values"]["held"] = "frozen"
        result = validate_config(parse_config(raw_config))
        assert any("frozen" in e for e in result.errors)

    def test_kind_cannot_map_to_null(self, raw_config):
        raw_config["sources"]["external"]["kind_values"]["transfer"] = None
        result = validate_config(parse_config(raw_config))
        assert any("cannot map to null" in e for e in result.errors)

    def test_missing_source(self, raw_config):
        del raw_config["sources"]["external"]
        result = validate_config(parse_config(raw_config))
        assert any("'external'" in e for e in result.errors)

    def test_non_positive_limit(self, raw_config):
        raw_config["recent_transactions_limit"] = 0
        result = validate_config(parse_config(raw_config))
        assert any("recent_transactions_limit" in e for e in result.errors)

    def test_external_without_sync_table_warns(self, raw_config):
        del raw_config["sources"]["external"]["sync_status_values"]
        result = validate_config(parse_config(raw_config))
        assert result.is_valid
        assert any("sync_status_values" in w for w in result.warnings)

    def test_missing_required_key(self, raw_config):
        del raw_config["currency"]
        with pytest.raises(KeyError):
            parse_config(raw_config)


class TestGetActiveConfig:
    """The public entrypoint."""

    def test_override_path(self, tmp_path, raw_config):
        raw_config["recent_transactions_limit"] = 5
        config = get_active_config(_write(tmp_path, raw_config))
        assert config.recent_transactions_limit == 5

    def test_timeout_may_be_disabled(self, tmp_path, raw_config):
        raw_config["fetch_timeout_seconds"] = None
        config = get_active_config(_write(tmp_path, raw_config))
        assert config.fetch_timeout_seconds is None

    def test_invalid_config_raises(self, tmp_path, raw_config):
        raw_config["minor_unit_exponent"] = 9
        with pytest.raises(ValueError, match="Configuration validation failed"):
            get_active_config(_write(tmp_path, raw_config))

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")

    def test_emits_config_trace(self, captured_logs):
        config = get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "RECON_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["config_id"] == "building_finance"
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["source_count"] == 2
