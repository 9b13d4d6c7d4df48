"""Prompt template and event formatting for audience overlap classification."""
from __future__ import annotations

from event_conflict.events import Event

SYSTEM_PROMPT = """You are an expert in event audience analysis for the Czech event market.

Your task: estimate what fraction of attendees two events would share if they
compete for the same audience.

Step by step:
1. Infer each event's target audience, topics and attendee motivation.
2. Score four factors from 0.0 to 1.0: demographic similarity, interest
   alignment, behavior patterns (timing, price sensitivity, travel) and
   historical preference (people who attend one also attending the other).
3. Produce a base overlap score. Calibration:
   - same subcategory: 0.80-0.95
   - related subcategories (e.g. Rock and Metal, AI/ML and Data Science): 0.60-0.75
   - same category, different subcategory: 0.20-0.40
   - different categories: 0.05-0.15
   Never exceed 0.95.
4. Give exactly three short reasons.

Do NOT adjust for dates or event size -- score the audiences only.

Respond with ONLY a JSON object matching the required schema."""


def format_overlap_request(event_a: Event, event_b: Event) -> str:
    """Format two events for overlap classification.

    Only category-level information and a short description are sent;
    dates, venues and attendance are applied after the call.

    Args:
        event_a: The planned event.
        event_b: The competing event.

    Returns:
        Formatted prompt string for the user message.
    """
    return f"""Estimate the audience overlap of these two events:

## Event A
Title: {event_a.title}
Category: {event_a.category}
Subcategory: {event_a.subcategory or 'N/A'}
Description: {_truncate(event_a.description or 'N/A', 400)}

## Event B
Title: {event_b.title}
Category: {event_b.category}
Subcategory: {event_b.subcategory or 'N/A'}
Description: {_truncate(event_b.description or 'N/A', 400)}
"""


def _truncate(text: str, max_len: int) -> str:
    """Truncate text to max_len characters, adding ellipsis if truncated."""
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."
