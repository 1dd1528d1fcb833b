"""
recon_ingestion -- turns raw rows from either source into canonical records.

Provides the tagged raw variants, the pure field-mapping engine, and the
normalizer that applies per-source mapping and vocabulary tables.

Architecture:
    recon_ingestion/ sits above recon_kernel and recon_config. The engines
    only ever see its output, never raw rows.
"""
