import json
import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal, ROUND_HALF_UP

import pytest
from sqlalchemy import event
from sqlalchemy.dialects import mysql, postgresql

from ..core.constants import Role
from ..core.errors import AppError
from ..audit.crud import get_events
from ..core.database import make_engine, make_session_factory
from ..ratings.crud import submit_rating, recompute_average_rating, average_rating_expression
from ..ratings.models import Rating
from ..user.crud import get_user
from .utils import make_user, auth_headers


def _rating_payload(farmer_id, scores):
    product_quality, response_time, communication, friendliness = scores
    return {
        "farmerId": farmer_id,
        "productQuality": product_quality,
        "responseTime": response_time,
        "communication": communication,
        "friendliness": friendliness,
    }


def _expected_average(score_sets):
    means = [Decimal(sum(scores)) / 4 for scores in score_sets]
    return (sum(means) / len(means)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@pytest.fixture
def farmer(db):
    return make_user(db, "farmer@example.com", role=Role.FARMER, first_name="Wanjiru", last_name="Kamau")


@pytest.fixture
def buyer(db):
    return make_user(db, "buyer@example.com", role=Role.BUYER)


@pytest.mark.asyncio
async def test_two_ratings_average_to_three(client, db, farmer, buyer):
    for scores in [(5, 5, 5, 5), (1, 1, 1, 1)]:
        response = await client.post("/api/ratings", json=_rating_payload(farmer.id, scores),
                                     headers=auth_headers(buyer))
        assert response.status_code == 201

    db.expire_all()
    assert get_user(db, farmer.id).average_rating == Decimal("3.00")


@pytest.mark.asyncio
@pytest.mark.parametrize("score_sets", [
    [(4, 4, 4, 5)],
    [(5, 4, 4, 4), (3, 3, 3, 4)],
    [(5, 5, 5, 4), (1, 1, 1, 1), (2, 2, 2, 2)],
    [(1, 2, 3, 4), (5, 5, 4, 4), (2, 3, 2, 3), (5, 1, 5, 2)],
])
async def test_average_is_mean_of_rating_means(client, db, farmer, buyer, score_sets):
    for scores in score_sets:
        response = await client.post("/api/ratings", json=_rating_payload(farmer.id, scores),
                                     headers=auth_headers(buyer))
        assert response.status_code == 201
        body = response.json()
        assert body["raterId"] == buyer.id
        assert body["farmerId"] == farmer.id

    db.expire_all()
    assert get_user(db, farmer.id).average_rating == _expected_average(score_sets)


@pytest.mark.asyncio
@pytest.mark.parametrize("scores", [(0, 3, 3, 3), (3, 6, 3, 3), (3, 3, -1, 3)])
async def test_out_of_range_scores_store_nothing(client, db, farmer, buyer, scores):
    response = await client.post("/api/ratings", json=_rating_payload(farmer.id, scores),
                                 headers=auth_headers(buyer))
    assert response.status_code == 400
    assert db.query(Rating).count() == 0

    db.expire_all()
    assert get_user(db, farmer.id).average_rating is None


@pytest.mark.parametrize("scores", [(0, 3, 3, 3), (3, 3, 3, 6), (3, True, 3, 3), (3, 3.5, 3, 3)])
def test_submit_rating_rejects_invalid_scores(db, farmer, buyer, scores):
    with pytest.raises(AppError) as exc_info:
        submit_rating(db, buyer.id, farmer.id, *scores)
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Scores must be between 1 and 5"
    assert db.query(Rating).count() == 0


@pytest.mark.asyncio
async def test_only_buyers_may_rate(client, db, farmer):
    other_farmer = make_user(db, "other@example.com", role=Role.FARMER)
    response = await client.post("/api/ratings", json=_rating_payload(farmer.id, (4, 4, 4, 4)),
                                 headers=auth_headers(other_farmer))
    assert response.status_code == 403
    assert response.json() == {"message": "Unauthorized"}
    assert db.query(Rating).count() == 0


@pytest.mark.asyncio
async def test_rating_requires_token(client, farmer):
    response = await client.post("/api/ratings", json=_rating_payload(farmer.id, (4, 4, 4, 4)))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_rating_unknown_farmer(client, db, buyer):
    response = await client.post("/api/ratings", json=_rating_payload(9999, (4, 4, 4, 4)),
                                 headers=auth_headers(buyer))
    assert response.status_code == 404
    assert response.json() == {"message": "Farmer not found"}

    # Buyers are not farmers either
    response = await client.post("/api/ratings", json=_rating_payload(buyer.id, (4, 4, 4, 4)),
                                 headers=auth_headers(buyer))
    assert response.status_code == 404
    assert db.query(Rating).count() == 0


def test_recompute_includes_ratings_written_elsewhere(db, farmer, buyer):
    submit_rating(db, buyer.id, farmer.id, 5, 5, 5, 5)

    # A row written by another writer, bypassing submit_rating
    db.add(Rating(rater_id=buyer.id, farmer_id=farmer.id, product_quality=2,
                  response_time=2, communication=2, friendliness=2))
    db.commit()

    average = recompute_average_rating(db, farmer.id)
    db.commit()
    assert average == Decimal("3.50")

    db.expire_all()
    assert get_user(db, farmer.id).average_rating == Decimal("3.50")


def test_recompute_without_ratings_is_null(db, farmer, buyer):
    submit_rating(db, buyer.id, farmer.id, 4, 4, 4, 4)
    db.expire_all()
    assert get_user(db, farmer.id).average_rating == Decimal("4.00")

    db.query(Rating).delete()
    db.commit()

    assert recompute_average_rating(db, farmer.id) is None
    db.commit()
    db.expire_all()
    assert get_user(db, farmer.id).average_rating is None


@pytest.mark.asyncio
async def test_rating_refreshes_cached_farmer_profile(client, cache, db, farmer, buyer):
    response = await client.get("/api/user/profile", headers=auth_headers(farmer))
    assert response.json()["averageRating"] is None

    await client.post("/api/ratings", json=_rating_payload(farmer.id, (4, 4, 5, 5)),
                      headers=auth_headers(buyer))

    cached = json.loads(await cache.get(f"user:{farmer.id}"))
    assert cached["averageRating"] == 4.5

    response = await client.get("/api/user/profile", headers=auth_headers(farmer))
    assert response.json()["averageRating"] == 4.5


@pytest.mark.asyncio
async def test_rating_is_audited(client, db, app, farmer, buyer):
    response = await client.post("/api/ratings", json=_rating_payload(farmer.id, (3, 3, 3, 3)),
                                 headers=auth_headers(buyer))

    await app.state.audit_log.drain()
    events = get_events(db, action="RATING_SUBMITTED", user_id=buyer.id)
    assert len(events) == 1
    assert events[0].entity_type == "RATING"
    assert events[0].entity_id == response.json()["id"]


@pytest.mark.asyncio
async def test_list_farmer_ratings(client, db, farmer, buyer):
    submit_rating(db, buyer.id, farmer.id, 5, 5, 5, 5)
    submit_rating(db, buyer.id, farmer.id, 1, 2, 3, 4)

    response = await client.get(f"/api/ratings/farmer/{farmer.id}")
    assert response.status_code == 200
    body = response.json()
    assert body["farmer"] == {"firstName": "Wanjiru", "lastName": "Kamau", "averageRating": 3.75}
    assert [rating["productQuality"] for rating in body["ratings"]] == [1, 5]
    assert "raterId" not in body["ratings"][0]


@pytest.mark.asyncio
async def test_list_ratings_for_unknown_farmer_is_empty(client):
    response = await client.get("/api/ratings/farmer/9999")
    assert response.status_code == 200
    assert response.json() == {"farmer": None, "ratings": []}


def _add_ratings(db, farmer, buyer, score_sets):
    db.add_all([
        Rating(rater_id=buyer.id, farmer_id=farmer.id, product_quality=pq,
               response_time=rt, communication=c, friendliness=f)
        for pq, rt, c, f in score_sets
    ])
    db.commit()


def test_average_rounds_the_exact_mean_once(db, farmer, buyer):
    # Mean is 507/404 = 1.254950...; rounding to 4 places first would give 1.26
    score_sets = [(1, 1, 1, 1)] * 94 + [(5, 5, 5, 4)] * 6 + [(5, 4, 4, 4)]
    _add_ratings(db, farmer, buyer, score_sets)

    assert _expected_average(score_sets) == Decimal("1.25")
    assert recompute_average_rating(db, farmer.id) == Decimal("1.25")
    db.commit()


def test_average_rounds_half_up(db, farmer, buyer):
    # Mean is exactly 1.125
    _add_ratings(db, farmer, buyer, [(1, 1, 1, 1), (1, 1, 1, 2)])
    assert recompute_average_rating(db, farmer.id) == Decimal("1.13")
    db.commit()


@pytest.mark.parametrize("dialect", [mysql.dialect(), postgresql.dialect()])
def test_average_expression_has_no_intermediate_rounding(dialect):
    sql = str(average_rating_expression(1).compile(dialect=dialect)).upper()
    assert "AVG(" not in sql
    assert "ROUND(" not in sql
    assert "(10, 4)" not in sql


def test_average_expression_uses_integer_division_on_mysql():
    sql = str(average_rating_expression(1).compile(dialect=mysql.dialect()))
    assert " DIV " in sql


@pytest.fixture
def locking_session_factory(session_factory):
    """Sessions on the test database whose transactions take the write lock up front."""
    engine = make_engine(str(session_factory.kw["bind"].url))

    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    yield make_session_factory(engine)
    engine.dispose()


def test_concurrent_submissions_are_all_counted(locking_session_factory, db, farmer, buyer):
    score_sets = [(5, 5, 5, 5), (1, 1, 1, 1), (4, 4, 4, 4), (2, 2, 2, 2), (3, 3, 3, 3), (3, 4, 2, 3)]
    barrier = threading.Barrier(len(score_sets))

    def submit(scores):
        session = locking_session_factory()
        try:
            barrier.wait()
            return submit_rating(session, buyer.id, farmer.id, *scores).id
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(score_sets)) as pool:
        rating_ids = list(pool.map(submit, score_sets))

    assert len(set(rating_ids)) == len(score_sets)
    db.expire_all()
    assert db.query(Rating).filter(Rating.farmer_id == farmer.id).count() == len(score_sets)
    assert get_user(db, farmer.id).average_rating == Decimal("3.00")
