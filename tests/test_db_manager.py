"""
Tests for DatabaseManager: key layout, chunked appends and queries.
"""

from datetime import datetime, timedelta, timezone

from conftest import make_review

from review_hub.database.db_manager import DatabaseManager, chunk_by_size
from review_hub.models.review import RatingHistoryEntry, RegionData
from review_hub.storage.store import Store


class TestChunkBySize:

    def test_chunks_respect_byte_limit(self):
        records = [{"text": "x" * 100} for _ in range(10)]
        size = len(Store.encode(records[0]).encode("utf-8"))

        chunks = chunk_by_size(records, max_bytes=size * 3)

        assert [len(chunk) for chunk in chunks] == [3, 3, 3, 1]
        assert [r for chunk in chunks for r in chunk] == records

    def test_oversized_record_gets_its_own_chunk(self):
        small = {"text": "a"}
        big = {"text": "b" * 5000}

        chunks = chunk_by_size([small, big, small], max_bytes=1000)

        assert chunks == [[small], [big], [small]]

    def test_empty_input(self):
        assert chunk_by_size([], max_bytes=100) == []


class TestApps:

    async def test_create_and_fetch(self, db, sample_app):
        await db.create_app(sample_app)

        fetched = await db.get_app_by_id("app-1")
        assert fetched == sample_app
        assert await db.get_all_apps() == [sample_app]

    async def test_delete_cascades(self, db, backend, sample_app):
        await db.create_app(sample_app)
        await db.append_reviews("app-1", [make_review("r1")])
        await db.save_aggregates(
            sample_app,
            [RatingHistoryEntry("2024-01-01T00:00:00.000Z", 5.0, 0.0)],
            [RegionData("US", 1)],
        )

        await db.delete_app("app-1")

        assert await db.get_app_by_id("app-1") is None
        assert await db.count_reviews("app-1") == 0
        assert await db.get_rating_history("app-1") == []
        assert await db.get_region_distribution("app-1") == []
        assert await backend.get("rating_history:app-1") is None


class TestReviews:

    async def test_append_is_split_into_size_bounded_pushes(self, backend):
        db = DatabaseManager(backend=backend, append_chunk_bytes=600)
        pushes = []
        original = backend.rpush

        async def counting_rpush(key, *values):
            pushes.append(len(values))
            await original(key, *values)

        backend.rpush = counting_rpush
        reviews = [make_review(f"r{i}", text="t" * 150) for i in range(6)]

        appended = await db.append_reviews("app-1", reviews)

        assert appended == 6
        assert len(pushes) > 1
        assert sum(pushes) == 6
        assert [r.id for r in await db.get_reviews("app-1")] == [f"r{i}" for i in range(6)]

    async def test_paged_reads_return_every_review(self, backend):
        db = DatabaseManager(backend=backend, page_size=3)
        await db.append_reviews("app-1", [make_review(f"r{i}") for i in range(7)])

        assert len(await db.get_reviews("app-1")) == 7
        assert [r.id async for r in db.iter_reviews("app-1", start=5)] == ["r5", "r6"]

    async def test_all_reviews_newest_first_with_limit(self, db, sample_app, app_store_only):
        await db.create_app(sample_app)
        await db.create_app(app_store_only)
        await db.append_reviews("app-1", [
            make_review("old", date="2023-05-01T00:00:00Z"),
            make_review("new", date="2024-03-01T00:00:00Z"),
        ])
        await db.append_reviews("app-2", [
            make_review("mid", date="2023-12-01T00:00:00Z", app_id="app-2"),
        ])

        assert [r.id for r in await db.get_all_reviews(limit=None)] == ["new", "mid", "old"]
        assert [r.id for r in await db.get_recent_reviews(limit=2)] == ["new", "mid"]

    async def test_clear_reviews(self, db):
        await db.append_reviews("app-1", [make_review("r1")])
        await db.clear_reviews("app-1")
        assert await db.get_reviews("app-1") == []


class TestStats:

    async def test_totals_and_weekly_trend(self, db, sample_app):
        await db.create_app(sample_app)
        recent = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        await db.append_reviews("app-1", [
            make_review("r1", rating=5, date=recent),
            make_review("r2", rating=3, date="2020-01-01T00:00:00Z"),
        ])

        stats = await db.get_stats()

        assert stats.total_apps == 1
        assert stats.total_reviews == 2
        assert stats.average_rating == 4.0
        assert stats.reviews_trend == "+1 this week"
        assert stats.rating_trend_up is True

    async def test_empty_store(self, db):
        stats = await db.get_stats()
        assert stats.total_apps == 0
        assert stats.total_reviews == 0
        assert stats.average_rating == 0.0
