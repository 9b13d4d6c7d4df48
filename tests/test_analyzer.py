"""End-to-end tests for the conflict analysis pipeline.

Providers are in-memory fakes; no AI key is configured, so overlap
prediction runs on the rule table and deduplication on the exact pass.
"""

import datetime as dt
import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from structlog.testing import capture_logs

from event_conflict.config.settings import Settings
from event_conflict.engine.analyzer import AnalysisResult, ConflictAnalyzer, build_analyzer
from event_conflict.engine.config import EngineConfig, FetchConfig
from event_conflict.events import Event
from event_conflict.models.event_record import EventRecord
from event_conflict.scoring import HIGH

START = dt.date(2025, 6, 2)
END = dt.date(2025, 6, 15)
SUMMIT_DAY = dt.date(2025, 6, 10)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class ListProvider:
    def __init__(self, name: str, events: list[Event]):
        self.name = name
        self.events = events

    async def fetch_events(self, city, start, end, category=None):
        return [e for e in self.events if e.overlaps(start, end)]


class BrokenProvider:
    name = "broken"

    def __init__(self):
        self.calls = 0

    async def fetch_events(self, city, start, end, category=None):
        self.calls += 1
        raise ConnectionError("upstream down")


def _summit(event_id: str, source: str, **overrides) -> Event:
    defaults = dict(
        id=event_id,
        title="AI Summit Prague",
        date=SUMMIT_DAY,
        city="Prague",
        category="Technology",
        subcategory="AI/ML",
        expected_attendees=5000,
        source=source,
    )
    defaults.update(overrides)
    return Event(**defaults)


def _planned() -> Event:
    return Event(
        id="planned",
        title="Prague ML Meetup",
        date=START,
        city="Praha",
        category="Technology",
        subcategory="AI/ML",
        expected_attendees=200,
    )


def _settings(tmp_path: Path, **overrides) -> Settings:
    values = dict(
        engine_config_path=tmp_path / "missing.yaml",
        use_store=False,
        gemini_api_key="",
    )
    values.update(overrides)
    return Settings(**values)


def _config() -> EngineConfig:
    return EngineConfig(fetch=FetchConfig(max_retries=1, backoff_base_seconds=0))


def _spans(ranges) -> list[tuple[dt.date, dt.date]]:
    return [(r.start, r.end) for r in ranges]


@pytest.fixture
def broken() -> BrokenProvider:
    return BrokenProvider()


@pytest.fixture
def analyzer(tmp_path, broken) -> ConflictAnalyzer:
    providers = [
        ListProvider("goout", [_summit("gt-1", "goout"), _planned()]),
        broken,
        ListProvider(
            "ticketmaster",
            [_summit("tm-1", "ticketmaster", title="AI SUMMIT PRAGUE", city="Praha",
                     venue="O2 universum")],
        ),
    ]
    return build_analyzer(_settings(tmp_path), _config(), providers=providers)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class TestAnalyze:
    async def test_duplicates_collapse_to_preferred_source(self, analyzer, broken):
        result = await analyzer.analyze(_planned(), START, END)

        assert isinstance(result, AnalysisResult)
        assert [e.id for e in result.all_events] == ["tm-1"]
        assert result.dedup_metrics.total_events == 2
        assert result.dedup_metrics.duplicates_removed == 1
        assert broken.calls == 2

    async def test_summit_days_are_high_risk(self, analyzer):
        result = await analyzer.analyze(_planned(), START, END)

        assert _spans(result.high_risk_dates) == [
            (dt.date(2025, 6, 9), dt.date(2025, 6, 11)),
        ]
        assert _spans(result.recommended_dates) == [
            (START, dt.date(2025, 6, 8)),
            (dt.date(2025, 6, 12), END),
        ]
        assert len(result.day_scores) == 14
        summit = next(d for d in result.day_scores if d.date == SUMMIT_DAY)
        assert summit.risk == HIGH
        assert summit.competing[0].event_id == "tm-1"
        assert summit.competing[0].overlap == 0.95

    async def test_planned_event_not_its_own_competitor(self, analyzer):
        result = await analyzer.analyze(_planned(), START, END)
        assert all(e.id != "planned" for e in result.all_events)

    async def test_basic_mode_skips_venue(self, analyzer):
        result = await analyzer.analyze(_planned(), START, END, enable_advanced=False)

        assert result.advanced is False
        summit = next(d for d in result.day_scores if d.date == SUMMIT_DAY)
        assert [s.source for s in summit.signals] == ["holiday", "seasonal"]
        assert summit.competing[0].overlap == 0.85

    async def test_seasonal_intelligence(self, analyzer):
        result = await analyzer.analyze(_planned(), START, END)

        seasonal = result.seasonal_intelligence
        assert set(seasonal) == {"demand_curve", "optimal_months", "planned_month"}
        assert len(seasonal["demand_curve"]) == 12
        assert seasonal["planned_month"]["month"] == 6
        assert seasonal["optimal_months"]["best"][0]["month"] == 4

    async def test_to_dict_is_json_serializable(self, analyzer):
        result = await analyzer.analyze(_planned(), START, END)

        data = json.loads(json.dumps(result.to_dict()))
        assert data["run_id"] == result.run_id
        assert data["start"] == "2025-06-02"
        assert data["high_risk_dates"][0]["start"] == "2025-06-09"
        assert data["dedup_metrics"]["cache_hit_rate"] == 0.0

    async def test_end_before_start(self, analyzer):
        with pytest.raises(ValueError):
            await analyzer.analyze(_planned(), END, START)

    async def test_embedding_dimension_mismatch_falls_back_to_exact(self, tmp_path):
        """Inconsistent vectors cost the semantic pass, not the analysis."""
        embedder = AsyncMock()
        embedder.embed.return_value = [[1.0, 0.0], [1.0, 0.0, 0.0]]
        providers = [
            ListProvider(
                "goout",
                [
                    _summit("gt-1", "goout"),
                    _summit("gt-2", "goout", title="Prague Data Day", expected_attendees=300),
                    _summit("gt-3", "goout", title="Rock Night", category="Entertainment"),
                ],
            ),
            ListProvider("ticketmaster", [_summit("tm-1", "ticketmaster")]),
        ]
        analyzer = build_analyzer(_settings(tmp_path), _config(), providers=providers)
        analyzer.deduplicator.embedder = embedder

        with capture_logs() as logs:
            result = await analyzer.analyze(_planned(), START, END)

        assert embedder.embed.await_count == 1
        assert sorted(e.id for e in result.all_events) == ["gt-2", "gt-3", "tm-1"]
        assert result.dedup_metrics.semantic_fallback is True
        assert result.dedup_metrics.exact_pairs == 1
        assert len(result.day_scores) == 14
        [error] = [e for e in logs if e["event"] == "embedding_dimension_mismatch"]
        assert error["log_level"] == "error"
        assert (error["left"], error["right"]) == (2, 3)
        assert analyzer.deduplicator.cache.stats()["size"] == 0

    async def test_competitor_sharing_planned_id_from_other_source_kept(self, tmp_path):
        providers = [ListProvider("goout", [_summit("planned", "goout"), _planned()])]
        analyzer = build_analyzer(_settings(tmp_path), _config(), providers=providers)

        result = await analyzer.analyze(_planned(), START, END)

        assert [e.key for e in result.all_events] == [("goout", "planned")]

    async def test_single_day_window(self, analyzer):
        result = await analyzer.analyze(_planned(), SUMMIT_DAY, SUMMIT_DAY)
        assert [d.date for d in result.day_scores] == [SUMMIT_DAY]
        assert result.recommended_dates == []


class TestStoreBacked:
    async def test_events_read_from_store(self, tmp_path, store):
        await store.upsert(
            EventRecord,
            [
                {
                    "id": "db-1",
                    "title": "AI Summit Prague",
                    "date": SUMMIT_DAY,
                    "city": "Prague",
                    "category": "Technology",
                    "subcategory": "AI/ML",
                    "expected_attendees": 5000,
                    "source": "predicthq",
                },
                {
                    "id": "db-2",
                    "title": "Brno Design Days",
                    "date": SUMMIT_DAY,
                    "city": "Brno",
                    "category": "Arts & Culture",
                    "source": "goout",
                },
            ],
            ["id"],
        )
        analyzer = build_analyzer(
            _settings(tmp_path, use_store=True), _config(), providers=[], store=store
        )

        result = await analyzer.analyze(_planned(), START, END)

        assert [e.id for e in result.all_events] == ["db-1"]
        assert any(r.contains(SUMMIT_DAY) for r in result.high_risk_dates)
        # Empty reference tables give neutral multipliers
        assert result.seasonal_intelligence["planned_month"]["multiplier"] == 1.0
