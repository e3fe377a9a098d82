"""Leaderboard builder: ordering, eligibility, wholesale replacement and reads."""

from app.models.review import LeaderboardEntry
from app.services import leaderboard_service
from conftest import make_mentor


def _seed(db):
    a = make_mentor(db, email="a@test.edu", name="Asha", rating=4.8, total_reviews=10, expertise="Python")
    b = make_mentor(db, email="b@test.edu", name="Bala", rating=4.8, total_reviews=20, expertise="Go, Python")
    c = make_mentor(db, email="c@test.edu", name="Chitra", rating=4.9, total_reviews=1, expertise="Design")
    return a, b, c


def test_rank_order_rating_then_review_count(db_session):
    a, b, c = _seed(db_session)

    entries = leaderboard_service.rebuild_leaderboard(db_session, min_reviews=1)

    assert [(e.mentor_id, e.rank) for e in entries] == [(c.id, 1), (b.id, 2), (a.id, 3)]
    assert entries[0].mentor_name == "Chitra"


def test_full_ties_keep_insertion_order(db_session):
    first = make_mentor(db_session, email="t1@test.edu", rating=4.5, total_reviews=3)
    second = make_mentor(db_session, email="t2@test.edu", rating=4.5, total_reviews=3)

    entries = leaderboard_service.rebuild_leaderboard(db_session, min_reviews=1)

    assert [e.mentor_id for e in entries] == [first.id, second.id]


def test_min_reviews_excludes_unrated_mentors(db_session):
    _seed(db_session)
    make_mentor(db_session, email="new@test.edu", rating=0.0, total_reviews=0)

    assert len(leaderboard_service.rebuild_leaderboard(db_session, min_reviews=1)) == 3
    assert len(leaderboard_service.rebuild_leaderboard(db_session, min_reviews=10)) == 2


def test_rebuild_replaces_previous_set(db_session):
    a, b, c = _seed(db_session)
    leaderboard_service.rebuild_leaderboard(db_session, min_reviews=1)

    c.total_reviews = 0
    a.rating = 5.0
    db_session.commit()
    leaderboard_service.rebuild_leaderboard(db_session, min_reviews=1)

    stored = db_session.query(LeaderboardEntry).order_by(LeaderboardEntry.rank).all()
    assert [(e.mentor_id, e.rank) for e in stored] == [(a.id, 1), (b.id, 2)]
    assert stored[0].rating == 5.0


def test_get_leaderboard_limit_and_expertise(db_session):
    a, b, c = _seed(db_session)
    leaderboard_service.rebuild_leaderboard(db_session, min_reviews=1)

    top_two = leaderboard_service.get_leaderboard(db_session, limit=2)
    assert [e.mentor_id for e in top_two] == [c.id, b.id]

    python = leaderboard_service.get_leaderboard(db_session, expertise="python")
    assert [(e.mentor_id, e.rank) for e in python] == [(b.id, 2), (a.id, 3)]


def test_rank_mentors_numbers_from_one(db_session):
    a, b, c = _seed(db_session)
    entries = leaderboard_service.rank_mentors([a, b, c])
    assert [e.rank for e in entries] == [1, 2, 3]
    assert entries[0].mentor_id == c.id
    assert leaderboard_service.rank_mentors([]) == []


def test_domains_count_each_available_mentor_once(db_session):
    _seed(db_session)
    make_mentor(db_session, email="r@test.edu", expertise="Rust, Rust ,")
    make_mentor(db_session, email="off@test.edu", expertise="Python, Haskell", is_available=False)

    domains = leaderboard_service.get_domains(db_session)

    assert [(d["domain"], d["mentor_count"]) for d in domains] == [
        ("Python", 2), ("Go", 1), ("Design", 1), ("Rust", 1),
    ]
    assert len(leaderboard_service.get_domains(db_session, limit=2)) == 2


def test_leaderboard_stats(db_session):
    _seed(db_session)
    make_mentor(db_session, email="new@test.edu", rating=0.0, total_reviews=0)
    make_mentor(db_session, email="off@test.edu", rating=1.0, total_reviews=5, is_available=False)

    stats = leaderboard_service.get_leaderboard_stats(db_session)
    assert stats == {
        "total_mentors": 4,
        "total_reviews": 0,
        "average_rating": 4.8,
        "ranked_mentors": 0,
    }

    leaderboard_service.rebuild_leaderboard(db_session, min_reviews=1)
    assert leaderboard_service.get_leaderboard_stats(db_session)["ranked_mentors"] == 4


def test_leaderboard_stats_empty_catalogue(db_session):
    stats = leaderboard_service.get_leaderboard_stats(db_session)
    assert stats["total_mentors"] == 0
    assert stats["average_rating"] == 0.0
