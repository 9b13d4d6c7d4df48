from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from event_conflict.models.base import Base


class SeasonalRuleRecord(Base):
    """Expert-authored demand multiplier for one category/month/region."""

    __tablename__ = "seasonal_rules"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(sa.String, index=True)
    subcategory: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    region: Mapped[str] = mapped_column(sa.String, default="CZ")
    month: Mapped[int] = mapped_column(sa.Integer)
    demand_multiplier: Mapped[float] = mapped_column(sa.Float)
    confidence: Mapped[float] = mapped_column(sa.Float, default=0.8)
    reasoning: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    __table_args__ = (
        sa.UniqueConstraint(
            "category", "subcategory", "region", "month", name="uq_seasonal_rule"
        ),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="valid_month"),
    )
