"""JSON file loader and validator for competing event listings."""

import datetime as dt
import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

from event_conflict.events import Event


class EventData(BaseModel):
    id: str
    title: str
    date: dt.date
    end_date: dt.date | None = Field(None, alias="endDate")
    city: str = ""
    venue: str | None = None
    category: str = "Other"
    subcategory: str | None = None
    expected_attendees: int | None = Field(None, alias="expectedAttendees", ge=0)
    source: str = "manual"
    source_id: str | None = Field(None, alias="sourceId")
    description: str | None = None
    url: str | None = None
    image_url: str | None = Field(None, alias="imageUrl")
    # Provider payloads carry fields we ignore (ticket prices, tags, ...)
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_validator(mode="after")
    def end_not_before_start(self) -> "EventData":
        if self.end_date is not None and self.end_date < self.date:
            raise ValueError(f"event {self.id}: end_date precedes date")
        return self

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


class EventFileData(BaseModel):
    events: list[EventData]
    source: str | None = None

    def to_events(self) -> list[Event]:
        return [e.to_event() for e in self.events]


def load_event_file(file_path: Path) -> EventFileData:
    """Read and validate a JSON event file.

    The file is either ``{"events": [...]}`` or a bare list of events.

    Args:
        file_path: Path to the JSON event file.

    Returns:
        Validated EventFileData instance.

    Raises:
        ValueError: If the file contains invalid JSON or fails validation.
    """
    try:
        with open(file_path, encoding="utf-8") as f:
            raw_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_path}: {e}") from e

    if isinstance(raw_data, list):
        raw_data = {"events": raw_data}

    try:
        return EventFileData.model_validate(raw_data)
    except Exception as e:
        raise ValueError(f"Validation error for {file_path}: {e}") from e
