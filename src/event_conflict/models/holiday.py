"""Holiday calendar and the per-category impact rules applied around holidays."""
from __future__ import annotations

import datetime as dt

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from event_conflict.models.base import Base


class HolidayRecord(Base):
    __tablename__ = "holidays"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String)
    date: Mapped[dt.date] = mapped_column(sa.Date, index=True)
    holiday_type: Mapped[str] = mapped_column(sa.String)
    region: Mapped[str] = mapped_column(sa.String, default="CZ")

    __table_args__ = (
        sa.UniqueConstraint("name", "date", "region", name="uq_holiday_name_date_region"),
    )


class HolidayImpactRuleRecord(Base):
    """How strongly a holiday type affects one event category.

    The rule applies from ``days_before`` days before the holiday to
    ``days_after`` days after it.  A NULL subcategory applies to the
    whole category; a NULL holiday name applies to every holiday of
    ``holiday_type``.
    """

    __tablename__ = "holiday_impact_rules"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    holiday_type: Mapped[str] = mapped_column(sa.String)
    holiday_name: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    event_category: Mapped[str] = mapped_column(sa.String, index=True)
    event_subcategory: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    region: Mapped[str] = mapped_column(sa.String, default="CZ")
    days_before: Mapped[int] = mapped_column(sa.Integer, default=0)
    days_after: Mapped[int] = mapped_column(sa.Integer, default=0)
    impact_multiplier: Mapped[float] = mapped_column(sa.Float)
    reasoning: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    __table_args__ = (
        sa.UniqueConstraint(
            "holiday_type",
            "holiday_name",
            "event_category",
            "event_subcategory",
            "region",
            name="uq_holiday_impact_rule",
        ),
        sa.CheckConstraint("impact_multiplier > 0", name="positive_impact_multiplier"),
    )
