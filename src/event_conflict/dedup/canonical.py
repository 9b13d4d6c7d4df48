"""Canonical record selection for duplicate clusters.

PURE FUNCTIONS -- selection depends only on the members and their
input positions, never on iteration order of sets or dicts.
"""

from __future__ import annotations

from event_conflict.events import Event


def source_priority(source: str, priorities: dict[str, int]) -> int:
    """Priority of a source; unknown sources rank with manual entries."""
    return priorities.get(source.lower(), 0)


def canonical_score(event: Event, priorities: dict[str, int]) -> float:
    """Completeness score used to pick the canonical listing.

    ``priority*200 + len(description)*0.1 + venue 100 + image 50 +
    url 25 + attendee estimate 10``.
    """
    score = source_priority(event.source, priorities) * 200.0
    score += len(event.description or "") * 0.1
    if event.venue:
        score += 100
    if event.image_url:
        score += 50
    if event.url:
        score += 25
    if event.expected_attendees is not None:
        score += 10
    return score


def select_canonical(
    members: list[tuple[int, Event]],
    priorities: dict[str, int],
) -> tuple[int, Event]:
    """Pick the highest-scoring member; ties go to the lowest input position.

    Args:
        members: ``(input_position, event)`` pairs of one cluster.
        priorities: Source priority table.

    Returns:
        The winning ``(input_position, event)`` pair.
    """
    if not members:
        raise ValueError("cannot select a canonical event from an empty cluster")
    return min(members, key=lambda m: (-canonical_score(m[1], priorities), m[0]))
