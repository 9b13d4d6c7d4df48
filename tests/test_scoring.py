"""Tests for per-day conflict scoring and range consolidation."""

from __future__ import annotations

import datetime as dt

import pytest

from event_conflict.engine.config import ConsolidationConfig, EngineConfig, ScoringConfig
from event_conflict.errors import ConsolidationInvariantError
from event_conflict.events import Event
from event_conflict.overlap import AudienceOverlapPredictor, RuleBasedOverlapEstimator
from event_conflict.scoring import (
    HIGH,
    LOW,
    MEDIUM,
    CompetingImpact,
    ConflictScorer,
    ConsolidationResult,
    DateRangeRecommendation,
    DayScore,
    assert_no_overlap,
    attendee_weight,
    consolidate,
    nearby_competitors,
    risk_tier,
)
from event_conflict.signals import (
    HolidaySignalProvider,
    ImpactRule,
    SeasonalRule,
    SeasonalSignalProvider,
    StaticHolidaySource,
    StaticSeasonalSource,
    VenueSignalProvider,
)
from event_conflict.signals.holiday import HolidayDefinition

CONFIG = EngineConfig()
JUNE = dt.date(2025, 6, 1)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _d(day: int) -> dt.date:
    return JUNE.replace(day=day)


def _make_event(event_id: str, day: int = 10, **overrides) -> Event:
    """Create an Event on a June 2025 date."""
    defaults = dict(
        id=event_id,
        title=f"Event {event_id}",
        date=_d(day),
        city="Praha",
        category="Technology",
    )
    defaults.update(overrides)
    return Event(**defaults)


def _make_scorer(holiday_source=None, seasonal_rules=None, **scoring) -> ConflictScorer:
    return ConflictScorer(
        ScoringConfig(**scoring),
        AudienceOverlapPredictor(None, CONFIG.overlap),
        HolidaySignalProvider(holiday_source or StaticHolidaySource([], [])),
        SeasonalSignalProvider(StaticSeasonalSource(seasonal_rules or [])),
        VenueSignalProvider(CONFIG.venue),
        RuleBasedOverlapEstimator(CONFIG.overlap),
    )


def _impact(event_id: str, day: int, end_day: int | None = None) -> CompetingImpact:
    return CompetingImpact(
        event_id=event_id,
        title=event_id,
        date=_d(day),
        end=_d(end_day or day),
        category="Technology",
        subcategory=None,
        expected_attendees=None,
        overlap=0.3,
        attendee_weight=0.5,
        method="rule-based",
    )


_TIER_SCORES = {LOW: 2.0, MEDIUM: 8.0, HIGH: 15.0}


def _day(day: int, risk: str, score: float | None = None, competing=()) -> DayScore:
    score = _TIER_SCORES[risk] if score is None else score
    return DayScore(
        date=_d(day),
        raw_score=score / 5,
        score=score,
        risk=risk,
        competing=list(competing),
    )


def _spans(ranges: list[DateRangeRecommendation]) -> list[tuple[int, int]]:
    return [(r.start.day, r.end.day) for r in ranges]


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

class TestAttendeeWeight:
    def test_unknown_attendance(self):
        assert attendee_weight(_make_event("c"), 100, 3.0, 0.5) == 0.5

    def test_square_root_ratio(self):
        assert attendee_weight(_make_event("c", expected_attendees=400), 100, 3.0, 0.5) == 2.0
        assert attendee_weight(_make_event("c", expected_attendees=25), 100, 3.0, 0.5) == 0.5

    def test_capped(self):
        assert attendee_weight(_make_event("c", expected_attendees=10000), 100, 3.0, 0.5) == 3.0


class TestRiskTier:
    @pytest.mark.parametrize(
        "score,expected",
        [(0.0, LOW), (5.0, LOW), (5.01, MEDIUM), (12.0, MEDIUM), (12.01, HIGH), (20.0, HIGH)],
    )
    def test_default_thresholds(self, score, expected):
        assert risk_tier(score, 5.0, 12.0) == expected

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ValueError):
            ScoringConfig(low_threshold=13, medium_threshold=12)


class TestNearbyCompetitors:
    def test_window_and_order(self):
        planned = _make_event("planned")
        events = [
            _make_event("z", day=11),
            _make_event("b", day=9),
            _make_event("a", day=9),
            _make_event("far", day=12),
            _make_event("planned", day=10),
            _make_event("festival", day=5, end_date=_d(9)),
        ]
        nearby = nearby_competitors(planned, _d(10), events, window_days=1)
        assert [e.id for e in nearby] == ["festival", "a", "b", "z"]


# ---------------------------------------------------------------------------
# ConflictScorer
# ---------------------------------------------------------------------------

class TestConflictScorer:
    async def test_one_score_per_day_in_order(self):
        scores = await _make_scorer(max_concurrent_days=2).score(
            _make_event("p"), _d(1), _d(10), []
        )
        assert [s.date for s in scores] == [_d(i) for i in range(1, 11)]
        assert all(s.score == 0.0 and s.risk == LOW for s in scores)

    async def test_planned_event_moved_to_each_day(self):
        """A competitor on the 10th affects the 9th-11th only."""
        competitor = _make_event("c", day=10, subcategory="AI/ML", expected_attendees=5000)
        planned = _make_event("p", day=1, subcategory="AI/ML", expected_attendees=100)

        scores = await _make_scorer().score(planned, _d(8), _d(12), [competitor], advanced=False)

        assert [len(s.competing) for s in scores] == [0, 1, 1, 1, 0]

    async def test_advanced_mode_same_subcategory_is_high(self):
        planned = _make_event("p", subcategory="AI/ML", expected_attendees=100)
        competitor = _make_event("c", subcategory="AI/ML", expected_attendees=5000)

        [score] = await _make_scorer().score(planned, _d(10), _d(10), [competitor])

        impact = score.competing[0]
        assert impact.overlap == 0.95
        assert impact.attendee_weight == 3.0
        assert [s.source for s in score.signals] == ["holiday", "seasonal", "venue"]
        assert score.raw_score == pytest.approx(0.95 * 3.0 * score.multiplier)
        assert score.risk == HIGH

    async def test_same_id_from_two_sources_scored_separately(self):
        """Ids are only unique within a provider; each listing keeps its own overlap."""
        planned = _make_event("p", subcategory="AI/ML", expected_attendees=100)
        summit = _make_event("1", subcategory="AI/ML", expected_attendees=5000, source="goout")
        concert = _make_event(
            "1", day=11, category="Entertainment", subcategory="Rock", source="ticketmaster"
        )

        [score] = await _make_scorer().score(planned, _d(10), _d(10), [summit, concert])

        by_source = {i.source: i for i in score.competing}
        assert by_source["goout"].overlap == 0.95
        assert by_source["ticketmaster"].overlap < 0.95
        assert by_source["ticketmaster"].date == _d(11)

    async def test_competitor_sharing_planned_id_is_kept(self):
        planned = _make_event("1", source="manual")
        other = _make_event("1", source="goout")

        [score] = await _make_scorer().score(planned, _d(10), _d(10), [planned, other])

        assert [(i.event_id, i.source) for i in score.competing] == [("1", "goout")]

    async def test_basic_mode_uses_rule_table_only(self):
        planned = _make_event("p", subcategory="AI/ML", expected_attendees=100)
        competitor = _make_event("c", subcategory="AI/ML", expected_attendees=5000)

        [score] = await _make_scorer().score(
            planned, _d(10), _d(10), [competitor], advanced=False
        )

        assert score.competing[0].overlap == 0.85
        assert score.competing[0].method == "rule-based"
        assert [s.source for s in score.signals] == ["holiday", "seasonal"]
        assert score.raw_score == pytest.approx(0.85 * 3.0)
        assert score.score == pytest.approx(12.75)
        assert score.risk == HIGH

    async def test_display_score_capped(self):
        planned = _make_event("p", subcategory="AI/ML", expected_attendees=10)
        competitors = [
            _make_event(f"c{i}", subcategory="AI/ML", expected_attendees=5000) for i in range(5)
        ]
        [score] = await _make_scorer().score(planned, _d(10), _d(10), competitors, advanced=False)
        assert score.score == 20.0
        assert score.raw_score > 4.0

    async def test_holiday_and_seasonal_multipliers_combine(self):
        """A 1.8 holiday window and a 1.3 seasonal multiplier give 2.34."""
        holidays = StaticHolidaySource(
            [HolidayDefinition("Test Day", "public_holiday", month=6, day=10)],
            [ImpactRule("public_holiday", "Technology", 1.8, days_before=1, days_after=1)],
        )
        seasonal = [SeasonalRule("Technology", 6, 1.3)]
        scorer = _make_scorer(holidays, seasonal)

        [score] = await scorer.score(
            _make_event("p"), _d(9), _d(9), [_make_event("c", day=9)], advanced=False
        )

        assert score.multiplier == pytest.approx(2.34)
        # same category 0.30 x unknown-attendance weight 0.5
        assert score.raw_score == pytest.approx(0.30 * 0.5 * 2.34)
        assert "Test Day (public_holiday) - 1.8x impact" in score.reasoning
        assert "Above-average demand for Technology events in June" in score.reasoning

    async def test_to_dict(self):
        [score] = await _make_scorer().score(
            _make_event("p"), _d(10), _d(10), [_make_event("c")], advanced=False
        )
        data = score.to_dict()
        assert data["date"] == "2025-06-10"
        assert data["competing"][0]["overlap_percent"] == 30.0
        assert set(data["signals"]) == {"holiday", "seasonal"}


# ---------------------------------------------------------------------------
# Consolidation
# ---------------------------------------------------------------------------

class TestConsolidate:
    def test_high_day_splits_low_run(self):
        """Ten low days around one high day give two recommended ranges."""
        days = [_day(d, HIGH if d == 6 else LOW) for d in range(1, 12)]

        result = consolidate(days)

        assert _spans(result.recommended) == [(1, 5), (7, 11)]
        assert _spans(result.high_risk) == [(6, 6)]

    def test_unscored_gap_merges(self):
        result = consolidate([_day(1, LOW), _day(4, LOW)])
        assert _spans(result.recommended) == [(1, 4)]
        assert len(result.recommended[0].days) == 2

    def test_gap_too_wide(self):
        result = consolidate([_day(1, LOW), _day(5, LOW)])
        assert _spans(result.recommended) == [(1, 1), (5, 5)]

    def test_gap_limit_configurable(self):
        result = consolidate([_day(1, LOW), _day(5, LOW)], ConsolidationConfig(max_gap_days=4))
        assert _spans(result.recommended) == [(1, 5)]

    def test_medium_day_blocks_low_merge(self):
        result = consolidate([_day(1, LOW), _day(2, MEDIUM), _day(3, LOW)])
        assert _spans(result.recommended) == [(1, 1), (3, 3)]
        assert result.high_risk == []

    def test_competitor_in_gap_blocks_low_merge(self):
        days = [_day(1, LOW, competing=[_impact("fest", 2)]), _day(3, LOW)]
        result = consolidate(days)
        assert _spans(result.recommended) == [(1, 1), (3, 3)]

    def test_competitor_outside_gap_does_not_block(self):
        days = [_day(1, LOW, competing=[_impact("meetup", 1)]), _day(3, LOW)]
        assert _spans(consolidate(days).recommended) == [(1, 3)]

    def test_high_days_merge_across_medium(self):
        result = consolidate([_day(1, HIGH), _day(2, MEDIUM), _day(3, HIGH)])
        assert _spans(result.high_risk) == [(1, 3)]

    def test_low_day_blocks_high_merge(self):
        result = consolidate([_day(1, HIGH), _day(2, LOW), _day(3, HIGH)])
        assert _spans(result.high_risk) == [(1, 1), (3, 3)]
        assert _spans(result.recommended) == [(2, 2)]

    def test_input_order_irrelevant(self):
        days = [_day(d, LOW) for d in (3, 1, 2)]
        assert _spans(consolidate(days).recommended) == [(1, 3)]

    def test_range_statistics(self):
        result = consolidate([_day(1, LOW, 1.0), _day(2, LOW, 3.0), _day(3, LOW, 5.0)])
        rec = result.recommended[0]
        assert rec.avg_score == pytest.approx(3.0)
        assert rec.min_score == 1.0
        assert rec.max_score == 5.0
        assert rec.to_dict()["days"] == ["2025-06-01", "2025-06-02", "2025-06-03"]

    def test_never_overlapping(self):
        risks = [LOW, LOW, HIGH, MEDIUM, LOW, HIGH, HIGH, LOW, MEDIUM, LOW, LOW, HIGH]
        result = consolidate([_day(i + 1, r) for i, r in enumerate(risks)])
        for rec in result.recommended:
            for high in result.high_risk:
                assert not rec.overlaps(high)

    def test_empty(self):
        result = consolidate([])
        assert result.recommended == [] and result.high_risk == []


class TestAssertNoOverlap:
    def test_overlap_detected(self):
        rec = DateRangeRecommendation(_d(1), _d(5), LOW, [_day(1, LOW)])
        high = DateRangeRecommendation(_d(5), _d(6), HIGH, [_day(5, HIGH)])
        with pytest.raises(ConsolidationInvariantError):
            assert_no_overlap(ConsolidationResult([rec], [high]))

    def test_adjacent_ranges_allowed(self):
        rec = DateRangeRecommendation(_d(1), _d(4), LOW, [_day(1, LOW)])
        high = DateRangeRecommendation(_d(5), _d(6), HIGH, [_day(5, HIGH)])
        assert_no_overlap(ConsolidationResult([rec], [high]))
