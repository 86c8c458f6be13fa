import pytest

from ..audit.crud import get_events
from ..core.constants import Role
from ..feedback.models import Feedback
from .utils import make_user, auth_headers


@pytest.mark.asyncio
async def test_anonymous_feedback(client, db, app):
    response = await client.post("/api/feedback", json={"rating": 4, "comment": "Fresh produce, fast delivery"})
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Feedback submitted successfully"

    feedback = db.query(Feedback).one()
    assert body["feedbackId"] == feedback.id
    assert feedback.user_id is None
    assert feedback.rating == 4

    await app.state.audit_log.drain()
    events = get_events(db, action="FEEDBACK_SUBMITTED")
    assert events[0].user_id is None
    assert events[0].entity_id == feedback.id


@pytest.mark.asyncio
async def test_feedback_with_token_is_linked_to_user(client, db):
    user = make_user(db, "feedback@example.com", role=Role.BUYER)
    response = await client.post(
        "/api/feedback",
        json={"name": "Achieng", "rating": 5, "comment": "Great"},
        headers=auth_headers(user),
    )
    assert response.status_code == 201

    feedback = db.query(Feedback).one()
    assert feedback.user_id == user.id
    assert feedback.name == "Achieng"


@pytest.mark.asyncio
async def test_feedback_with_invalid_token_is_anonymous(client, db):
    response = await client.post(
        "/api/feedback",
        json={"rating": 3, "comment": "Okay"},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 201
    assert db.query(Feedback).one().user_id is None


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"rating": 0, "comment": "Too low"},
    {"rating": 6, "comment": "Too high"},
    {"rating": 3, "comment": "x" * 1001},
    {"rating": 3, "comment": "Fine", "name": "n" * 101},
    {"comment": "No rating"},
])
async def test_invalid_feedback_is_rejected(client, db, payload):
    response = await client.post("/api/feedback", json=payload)
    assert response.status_code == 400
    assert response.json()["message"] == "Validation failed"
    assert db.query(Feedback).count() == 0


@pytest.mark.asyncio
async def test_longest_comment_is_accepted(client, db):
    response = await client.post("/api/feedback", json={"rating": 3, "comment": "x" * 1000})
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_eleventh_feedback_is_rate_limited(client, db):
    for i in range(10):
        response = await client.post("/api/feedback", json={"rating": 4, "comment": f"Visit {i}"})
        assert response.status_code == 201

    response = await client.post("/api/feedback", json={"rating": 4, "comment": "One too many"})
    assert response.status_code == 429
    assert response.json() == {"message": "Too many feedback submissions, please try again later"}
    assert db.query(Feedback).count() == 10
