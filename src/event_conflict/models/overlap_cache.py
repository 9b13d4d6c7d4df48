"""SQLAlchemy model for persisted audience overlap predictions."""
from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from event_conflict.models.base import Base


class OverlapCacheRecord(Base):
    """Base overlap score for one category/subcategory pair.

    Only the date-independent base score is stored; temporal and
    significance boosts are applied after every read.  Missing
    subcategories are stored as empty strings so the natural key
    never contains NULL.
    """

    __tablename__ = "audience_overlap_cache"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    category1: Mapped[str] = mapped_column(sa.String)
    subcategory1: Mapped[str] = mapped_column(sa.String, default="")
    category2: Mapped[str] = mapped_column(sa.String)
    subcategory2: Mapped[str] = mapped_column(sa.String, default="")
    overlap_score: Mapped[float] = mapped_column(sa.Float)
    confidence: Mapped[float] = mapped_column(sa.Float)
    factors: Mapped[dict] = mapped_column(sa.JSON)
    reasoning: Mapped[list] = mapped_column(sa.JSON)
    method: Mapped[str] = mapped_column(sa.String)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime)
    expires_at: Mapped[datetime] = mapped_column(sa.DateTime, index=True)

    __table_args__ = (
        sa.UniqueConstraint(
            "category1", "subcategory1", "category2", "subcategory2",
            name="uq_overlap_cache_pair",
        ),
        sa.CheckConstraint(
            "overlap_score >= 0 AND overlap_score <= 0.95", name="valid_overlap_score"
        ),
    )
