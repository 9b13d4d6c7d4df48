from __future__ import annotations

import datetime as dt

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from event_conflict.events import Event
from event_conflict.models.base import Base


class EventRecord(Base):
    """Stored event listing, as written by the ingestion side."""

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(sa.String, primary_key=True)
    title: Mapped[str] = mapped_column(sa.String)
    date: Mapped[dt.date] = mapped_column(sa.Date, index=True)
    end_date: Mapped[dt.date | None] = mapped_column(sa.Date, nullable=True)
    city: Mapped[str] = mapped_column(sa.String, index=True)
    venue: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    category: Mapped[str] = mapped_column(sa.String)
    subcategory: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    expected_attendees: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    source: Mapped[str] = mapped_column(sa.String)
    source_id: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    description: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    url: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    image_url: Mapped[str | None] = mapped_column(sa.String, nullable=True)

    def to_event(self) -> Event:
        return Event(
            id=self.id,
            title=self.title,
            date=self.date,
            end_date=self.end_date,
            city=self.city,
            venue=self.venue,
            category=self.category,
            subcategory=self.subcategory,
            expected_attendees=self.expected_attendees,
            source=self.source,
            source_id=self.source_id,
            description=self.description,
            url=self.url,
            image_url=self.image_url,
        )
