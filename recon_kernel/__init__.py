"""
Recon Kernel - building finance reconciliation core

Shared foundation for the reconciliation engine:
- Integer minor-unit value types with explicit provenance
- Typed, coded exception hierarchy
- Structured JSON logging
- Read-only SQLAlchemy models for the local ledger and the external mirror
"""

__version__ = "0.1.0"
