"""
SQLAlchemy Models

Defines the database schema for reference feature records.
"""

from __future__ import annotations

from datetime import datetime
from typing import List

from sqlalchemy import (
    JSON,
    DateTime,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ---------------------------------------------------------------------
# Feature Record Model
# ---------------------------------------------------------------------

class FeatureRow(Base):
    """
    One labeled reference embedding.

    Vectors are stored as JSON arrays so records of any dimension can coexist;
    comparability is decided at match time.
    """
    __tablename__ = "feature_record"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    dimension: Mapped[int] = mapped_column(Integer, nullable=False)
    vector: Mapped[List[float]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_feature_label", "label"),
    )
