"""
Module: recon_kernel.db.base
Responsibility: Declarative base class for the SQLAlchemy read models that
    mirror the application's local ledger tables and the external (MRI)
    mirror tables.
Architecture position: Kernel > DB.  ALL model files import from here.  This
    module MUST NOT import from models/, engines/ or services/.

Invariants enforced:
    - Decimal precision: type_annotation_map maps Python Decimal to
      Numeric(18, 4).  Amounts are stored in major units exactly as the
      application writes them; conversion to minor units happens in the
      normalizer, never here.
    - Timestamps are timezone-aware.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import uuid4

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """
    Declarative base for all read models.

    Guarantees:
        - id is a string primary key; local rows default to a uuid4 string,
          external rows keep the id assigned by the external system.
        - Decimal maps to Numeric(18, 4).
        - datetime maps to DateTime(timezone=True).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 4),
        datetime: DateTime(timezone=True),
    }

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=_new_id,
    )
