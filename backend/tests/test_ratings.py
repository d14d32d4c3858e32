"""
Tests for add_rating (services/tabs.py) and the aggregates in services/ratings.py.
"""

import threading
from datetime import datetime, timezone

import pytest
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from tabcatalog.errors import DuplicateRatingError, NotFound, StorageError, ValidationError
from tabcatalog.models import Rating, Tab
from tabcatalog.services.ratings import (
    RatedTab,
    get_with_aggregate,
    list_with_aggregates,
    rating_summary,
    with_aggregate,
)
from tabcatalog.services.tabs import add_rating, create_tab, get_tab


def _rating_rows(db, tab_id):
    return db.scalar(select(func.count(Rating.id)).where(Rating.tab_id == tab_id))


@pytest.fixture
def tab_id(db):
    return create_tab(db, "Nothing Else Matters", "Metallica", "e|-------0-------0---|")


class TestAggregate:
    def test_no_ratings_is_zero_not_null(self, db, tab_id):
        rated = get_with_aggregate(db, tab_id)
        assert rated.rating == 0.0
        assert rated.votes == 0
        assert isinstance(rated.rating, float)

    @pytest.mark.parametrize(
        "scores, expected",
        [
            ([5], 5.0),
            ([1, 2], 1.5),
            ([5, 4, 4], 4.3),
            ([3, 4, 4], 3.7),
            ([1, 1, 1, 1, 5], 1.8),
            ([2] * 10, 2.0),
            # halves round up: 9/4 = 2.25, 7/4 = 1.75
            ([2, 2, 2, 3], 2.3),
            ([1, 2, 2, 2], 1.8),
        ],
    )
    def test_mean_of_anonymous_ratings(self, db, tab_id, scores, expected):
        for s in scores:
            add_rating(db, tab_id, s)

        rated = get_with_aggregate(db, tab_id)
        assert rated.rating == expected
        assert rated.votes == len(scores)

    def test_with_aggregate_matches_get(self, db, tab_id):
        add_rating(db, tab_id, 4)
        add_rating(db, tab_id, 3)
        tab = get_tab(db, tab_id)

        assert with_aggregate(db, tab) == RatedTab(tab, 3.5, 2)
        assert rating_summary(db, tab_id) == (3.5, 2)

    def test_get_unknown_tab(self, db):
        with pytest.raises(NotFound):
            get_with_aggregate(db, 9999)

    @pytest.mark.parametrize("bad_id", [0, -1, 2**63, 10**20])
    def test_get_id_outside_integer_range(self, db, bad_id):
        with pytest.raises(NotFound):
            get_with_aggregate(db, bad_id)

    def test_ratings_stay_with_their_tab(self, db, tab_id):
        other = create_tab(db, "Wish You Were Here", "Pink Floyd", "e|--0--|")
        add_rating(db, tab_id, 5)
        add_rating(db, other, 1)
        add_rating(db, other, 2)

        assert rating_summary(db, tab_id) == (5.0, 1)
        assert rating_summary(db, other) == (1.5, 2)

    def test_list_keeps_order_and_search(self, db, tab_id):
        wish = create_tab(db, "Wish You Were Here", "Pink Floyd", "e|--0--|")
        stairway = create_tab(db, "Stairway to Heaven", "Led Zeppelin", "e|--5--|")
        add_rating(db, stairway, 5)
        add_rating(db, stairway, 4)
        add_rating(db, wish, 3)

        rows = list_with_aggregates(db)
        assert [(r.tab.id, r.rating, r.votes) for r in rows] == [
            (stairway, 4.5, 2),
            (wish, 3.0, 1),
            (tab_id, 0.0, 0),
        ]

        rows = list_with_aggregates(db, "heaven")
        assert [(r.tab.title, r.rating, r.votes) for r in rows] == [("Stairway to Heaven", 4.5, 2)]

    def test_list_empty_store(self, db):
        assert list_with_aggregates(db) == []

    def test_aggregate_is_recomputed_on_each_read(self, db, session_factory, tab_id):
        assert get_with_aggregate(db, tab_id).votes == 0
        with session_factory() as other:
            add_rating(other, tab_id, 2)
        assert get_with_aggregate(db, tab_id)[1:] == (2.0, 1)


class TestAddRating:
    def test_returns_new_id(self, db, tab_id):
        first = add_rating(db, tab_id, 5)
        second = add_rating(db, tab_id, 4)
        assert second != first
        row = db.get(Rating, first)
        assert (row.tab_id, row.rating, row.client_key) == (tab_id, 5, None)

    @pytest.mark.parametrize("score", [0, 6, -1, 100])
    def test_out_of_range_rejected(self, db, tab_id, score):
        with pytest.raises(ValidationError):
            add_rating(db, tab_id, score, "ip_a")
        assert _rating_rows(db, tab_id) == 0

    @pytest.mark.parametrize("score", [None, 4.5, "5", True])
    def test_non_integer_rejected(self, db, tab_id, score):
        with pytest.raises(ValidationError):
            add_rating(db, tab_id, score)
        assert _rating_rows(db, tab_id) == 0

    def test_non_string_client_key_rejected(self, db, tab_id):
        with pytest.raises(ValidationError):
            add_rating(db, tab_id, 3, 12345)

    def test_unknown_tab(self, db):
        with pytest.raises(NotFound):
            add_rating(db, 9999, 5, "ip_a")
        assert db.scalar(select(func.count(Rating.id))) == 0

    @pytest.mark.parametrize("bad_id", [0, 2**63, 10**20])
    def test_id_outside_integer_range(self, db, bad_id):
        with pytest.raises(NotFound):
            add_rating(db, bad_id, 5, "ip_a")
        assert db.scalar(select(func.count(Rating.id))) == 0

    def test_validation_checked_before_tab_lookup(self, db):
        with pytest.raises(ValidationError):
            add_rating(db, 9999, 6)

    def test_duplicate_client_rejected(self, db, tab_id):
        add_rating(db, tab_id, 5, "ip_a")
        with pytest.raises(DuplicateRatingError) as exc:
            add_rating(db, tab_id, 1, "ip_a")

        assert exc.value.client_key == "ip_a"
        assert rating_summary(db, tab_id) == (5.0, 1)

    def test_same_client_may_rate_other_tabs(self, db, tab_id):
        other = create_tab(db, "Wish You Were Here", "Pink Floyd", "e|--0--|")
        add_rating(db, tab_id, 5, "ip_a")
        add_rating(db, other, 2, "ip_a")
        assert rating_summary(db, other) == (2.0, 1)

    def test_anonymous_ratings_accumulate(self, db, tab_id):
        for _ in range(3):
            add_rating(db, tab_id, 4)
        # empty key counts as anonymous too
        add_rating(db, tab_id, 4, "")
        add_rating(db, tab_id, 4, "")
        assert rating_summary(db, tab_id) == (4.0, 5)
        assert db.scalar(select(func.count(Rating.id)).where(Rating.client_key.is_not(None))) == 0

    def test_rating_scenario(self, db):
        tab_id = create_tab(db, "Nothing Else Matters", "Metallica", "e|...|")
        assert tab_id == 1

        add_rating(db, 1, 5, "ip_a")
        assert rating_summary(db, 1) == (5.0, 1)

        with pytest.raises(DuplicateRatingError):
            add_rating(db, 1, 3, "ip_a")
        assert rating_summary(db, 1) == (5.0, 1)

        add_rating(db, 1, 3, "ip_b")
        assert rating_summary(db, 1) == (4.0, 2)

    def test_session_usable_after_duplicate(self, db, tab_id):
        add_rating(db, tab_id, 5, "ip_a")
        with pytest.raises(DuplicateRatingError):
            add_rating(db, tab_id, 5, "ip_a")
        add_rating(db, tab_id, 3, "ip_b")
        assert rating_summary(db, tab_id) == (4.0, 2)

    def test_storage_failure_leaves_nothing_behind(self, db, tab_id, monkeypatch):
        def failing_commit(self):
            self.flush()
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(Session, "commit", failing_commit)
        with pytest.raises(StorageError):
            add_rating(db, tab_id, 5, "ip_a")
        monkeypatch.undo()

        assert rating_summary(db, tab_id) == (0.0, 0)
        # the failed attempt must not count as this client's rating
        add_rating(db, tab_id, 5, "ip_a")
        assert rating_summary(db, tab_id) == (5.0, 1)

    def test_concurrent_duplicates_only_one_wins(self, session_factory, tab_id):
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def submit(score):
            with session_factory() as db:
                barrier.wait()
                try:
                    add_rating(db, tab_id, score, "ip_race")
                    result = "ok"
                except DuplicateRatingError:
                    result = "duplicate"
                except Exception as e:
                    result = type(e).__name__
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=submit, args=(s,)) for s in (2, 5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes) == ["duplicate", "ok"]
        with session_factory() as db:
            assert rating_summary(db, tab_id)[1] == 1


class TestStoreConstraints:
    """The schema itself refuses bad rows, independent of the service checks."""

    def _now(self):
        return datetime.now(timezone.utc)

    def test_rating_range_check(self, db, tab_id):
        db.add(Rating(tab_id=tab_id, rating=6, created_at=self._now()))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_foreign_key(self, db):
        db.add(Rating(tab_id=9999, rating=3, created_at=self._now()))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_unique_client_per_tab(self, db, tab_id):
        db.add(Rating(tab_id=tab_id, rating=3, client_key="ip_a", created_at=self._now()))
        db.commit()
        db.add(Rating(tab_id=tab_id, rating=4, client_key="ip_a", created_at=self._now()))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_null_client_keys_not_unique(self, db, tab_id):
        for score in (1, 2, 3):
            db.add(Rating(tab_id=tab_id, rating=score, client_key=None, created_at=self._now()))
        db.commit()
        assert _rating_rows(db, tab_id) == 3

    def test_deleting_tab_cascades_to_ratings(self, db, tab_id):
        add_rating(db, tab_id, 5, "ip_a")
        add_rating(db, tab_id, 2)
        db.execute(delete(Tab).where(Tab.id == tab_id))
        db.commit()

        assert _rating_rows(db, tab_id) == 0

    def test_orm_delete_cascades_to_ratings(self, db, tab_id):
        add_rating(db, tab_id, 5, "ip_a")
        db.delete(get_tab(db, tab_id))
        db.commit()

        assert _rating_rows(db, tab_id) == 0
