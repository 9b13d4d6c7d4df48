"""Core event record shared by every stage of the engine."""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, replace


def _parse_date(value: str | dt.date | None) -> dt.date | None:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    # Accept full ISO timestamps as well as plain dates
    return dt.date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class Event:
    """A single event listing as returned by an upstream provider.

    Events are immutable once fetched.  ``end_date`` is ``None`` for
    single-day events.
    """

    id: str
    title: str
    date: dt.date
    city: str
    category: str
    source: str = "manual"
    source_id: str | None = None
    end_date: dt.date | None = None
    venue: str | None = None
    subcategory: str | None = None
    expected_attendees: int | None = None
    description: str | None = None
    url: str | None = None
    image_url: str | None = None

    @property
    def end(self) -> dt.date:
        """Last day of the event (the start date for single-day events)."""
        if self.end_date is None or self.end_date < self.date:
            return self.date
        return self.end_date

    @property
    def key(self) -> tuple[str, str]:
        """Identity across providers; ids are only unique within one source."""
        return (self.source, self.id)

    @property
    def span_days(self) -> int:
        return (self.end - self.date).days + 1

    def on(self, day: dt.date) -> Event:
        """Return a copy of this event moved to start on ``day``, keeping its length."""
        shift = day - self.date
        end_date = self.end_date + shift if self.end_date is not None else None
        return replace(self, date=day, end_date=end_date)

    def overlaps(self, start: dt.date, end: dt.date) -> bool:
        """Whether the event's span intersects ``[start, end]``."""
        return self.date <= end and self.end >= start

    @classmethod
    def from_dict(cls, data: dict) -> Event:
        """Build an event from a provider dict (snake_case or camelCase keys)."""

        def pick(*keys, default=None):
            for key in keys:
                if data.get(key) not in (None, ""):
                    return data[key]
            return default

        attendees = pick("expected_attendees", "expectedAttendees")
        return cls(
            id=str(data["id"]),
            title=data["title"],
            date=_parse_date(data["date"]),
            end_date=_parse_date(pick("end_date", "endDate")),
            city=pick("city", default=""),
            venue=pick("venue"),
            category=pick("category", default="Other"),
            subcategory=pick("subcategory"),
            expected_attendees=int(attendees) if attendees is not None else None,
            source=pick("source", default="manual"),
            source_id=pick("source_id", "sourceId"),
            description=pick("description"),
            url=pick("url"),
            image_url=pick("image_url", "imageUrl"),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        data["end_date"] = self.end_date.isoformat() if self.end_date else None
        return data


def days_between(a: Event, b: Event) -> int:
    """Gap in whole days between two events' date spans (0 if they overlap)."""
    return max(0, (b.date - a.end).days, (a.date - b.end).days)


def date_range(start: dt.date, end: dt.date) -> list[dt.date]:
    """All days from ``start`` to ``end`` inclusive."""
    return [start + dt.timedelta(days=i) for i in range((end - start).days + 1)]
