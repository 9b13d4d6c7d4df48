"""Result type shared by the holiday, seasonal and venue signal providers."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SignalResult:
    """A demand/conflict multiplier with the reasons behind it.

    ``1.0`` is neutral; every provider returns ``neutral()`` when it
    cannot produce a value.
    """

    multiplier: float
    reasoning: list[str] = field(default_factory=list)
    confidence: float = 0.5
    source: str = ""

    @classmethod
    def neutral(cls, source: str, reason: str | None = None) -> SignalResult:
        return cls(1.0, [reason] if reason else [], 0.0, source)

    def to_dict(self) -> dict:
        return {
            "multiplier": round(self.multiplier, 4),
            "reasoning": list(self.reasoning),
            "confidence": self.confidence,
            "source": self.source,
        }
