"""
Module: producao_kernel.db.base
Responsibility: Declarative base for the SQLAlchemy models of the locally
    synced source tables (time tracking and accounting).  Provides the type
    annotation map for consistent column types.
Architecture position: Kernel > DB.  Lowest-level import target for models.
    MUST NOT import from models/, services/ or outer layers.

Invariants enforced:
    - Decimal precision: Python Decimal maps to Numeric(38, 9).  NEVER use
      float for monetary amounts.
    - Primary keys are the ids assigned by the external systems; rows are
      never given locally generated ids.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import BigInteger, Date, DateTime, Numeric
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Declarative base for all synced-record models.

    Guarantees:
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime (naive local time, as synced).
        - int maps to BigInteger; external ids may exceed 32 bits.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(),
        date: Date(),
        int: BigInteger,
    }
