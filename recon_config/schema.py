"""
Reconciliation configuration schema.

Frozen dataclasses the loader parses ``building_finance.yaml`` into. The
engines and the normalizer only ever see these types, never raw YAML.
"""

from __future__ import annotations

from dataclasses import dataclass, field

UNCATEGORISED = "Uncategorised"


def alias_key(name: str) -> str:
    """Lookup key for category names: case-folded, whitespace collapsed."""
    return " ".join(name.split()).casefold()


@dataclass(frozen=True)
class SourceMappingDef:
    """
    Vocabulary tables for one source.

    Values are canonical enum values as strings; ``None`` means the source
    value is known but does not describe an economic event.
    """

    name: str
    kind_values: dict[str, str] = field(default_factory=dict)
    transaction_status_values: dict[str, str | None] = field(default_factory=dict)
    invoice_status_values: dict[str, str | None] = field(default_factory=dict)
    payment_status_values: dict[str, str] = field(default_factory=dict)
    sync_status_values: dict[str, str] = field(default_factory=dict)
    category_aliases: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ReconConfig:
    """
    Runtime configuration for the reconciliation pipeline.

    Guarantees:
        - ``UNCATEGORISED`` is always one of ``canonical_categories``.
        - Every alias resolves to a canonical category.
        - ``checksum`` is the SHA-256 of the canonical JSON of the source
          document, so equal files give equal checksums.
    """

    config_id: str
    version: int
    currency: str
    minor_unit_exponent: int
    recent_transactions_limit: int
    fetch_timeout_seconds: float | None
    refresh_interval_seconds: float
    canonical_categories: tuple[str, ...]
    sources: dict[str, SourceMappingDef]
    checksum: str = ""

    def source(self, name: str) -> SourceMappingDef:
        try:
            return self.sources[name]
        except KeyError:
            raise KeyError(f"No mapping tables configured for source {name!r}") from None

    def resolve_category(
        self, source_name: str, raw: str | None,
    ) -> tuple[str, bool]:
        """
        Resolve a source category to its canonical name.

        Returns ``(category, recognised)``. A blank value resolves to
        ``Uncategorised`` and counts as recognised; an unknown value also
        resolves to ``Uncategorised`` but is reported as unrecognised.
        """
        if raw is None or not str(raw).strip():
            return UNCATEGORISED, True
        key = alias_key(str(raw))
        canonical = {alias_key(c): c for c in self.canonical_categories}
        if key in canonical:
            return canonical[key], True
        aliases = {
            alias_key(a): c
            for a, c in self.source(source_name).category_aliases.items()
        }
        if key in aliases:
            return aliases[key], True
        return UNCATEGORISED, False
