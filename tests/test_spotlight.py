from datetime import timedelta

import pytest

from chance.database import utcnow
from chance.errors import ValidationError
from chance.models.user import User
from chance.services import spotlight as spotlight_service


def _award(client, admin, account, points):
    response = client.post(f"/api/admin/users/{account.id}/influence", json={"points": points}, headers=admin.headers)
    assert response.status_code == 200


def _backdate(db, account, days):
    when = utcnow() - timedelta(days=days)
    db.query(User).filter(User.id == account.id).update({User.created_at: when, User.updated_at: when})
    db.commit()


def test_rankings_order_by_influence(client, admin, alice, bob, signup):
    carol = signup("Carol", "White")
    _award(client, admin, alice, 30)
    _award(client, admin, bob, 80)
    _award(client, admin, carol, 30)

    rows = client.get("/api/spotlight/rankings").json()
    assert [(r["rank"], r["user"]["id"], r["influence"]) for r in rows] == [
        (1, bob.id, 80),
        (2, alice.id, 30),
        (3, carol.id, 30),
        (4, admin.id, 0),
    ]


def test_rankings_respect_limit(client, alice, bob, signup):
    signup("Carol", "White")
    rows = client.get("/api/spotlight/rankings", params={"limit": 2}).json()
    assert len(rows) == 2
    assert [r["rank"] for r in rows] == [1, 2]


def test_rankings_count_activity(client, admin, alice, bob, make_project, make_heartbeat):
    project = make_project(alice)
    client.post(
        f"/api/project/{project['id']}/complete",
        json={"points": [{"user_id": alice.id, "points": 40}]},
        headers=admin.headers,
    )
    make_heartbeat(alice)
    make_heartbeat(alice, content="Second update")
    make_heartbeat(alice, content="Private note", visibility="private")
    client.post(f"/api/spotlight/users/{alice.id}/feature", headers=admin.headers)

    top = client.get("/api/spotlight/rankings").json()[0]
    assert top["user"]["id"] == alice.id
    assert top["influence"] == 40
    assert top["projects_completed"] == 1
    assert top["heartbeats"] == 2
    assert top["times_featured"] == 1


def test_rankings_timeframes(client, db, admin, alice, bob, signup):
    carol = signup("Carol", "White")
    _award(client, admin, alice, 10)
    _award(client, admin, bob, 20)
    _award(client, admin, carol, 30)
    _backdate(db, bob, days=10)
    _backdate(db, carol, days=60)

    def ranked_ids(timeframe):
        rows = client.get("/api/spotlight/rankings", params={"timeframe": timeframe}).json()
        return [r["user"]["id"] for r in rows]

    assert ranked_ids("weekly") == [alice.id, admin.id]
    assert ranked_ids("monthly") == [bob.id, alice.id, admin.id]
    assert ranked_ids("all_time") == [carol.id, bob.id, alice.id, admin.id]


def test_rankings_reject_unknown_timeframe(client):
    assert client.get("/api/spotlight/rankings", params={"timeframe": "daily"}).status_code == 422


def test_user_profile_rank(client, admin, alice, bob):
    _award(client, admin, bob, 5)
    _award(client, admin, alice, 3)

    profile = client.get(f"/api/spotlight/users/{alice.id}").json()
    assert profile["rank"] == 2
    assert profile["user"]["id"] == alice.id
    assert profile["created_at"]

    assert client.get(f"/api/spotlight/users/{bob.id}").json()["rank"] == 1
    assert client.get("/api/spotlight/users/999").status_code == 404


def test_feature_user_is_admin_only(client, admin, alice):
    assert client.post(f"/api/spotlight/users/{alice.id}/feature", headers=alice.headers).status_code == 403

    response = client.post(f"/api/spotlight/users/{alice.id}/feature", headers=admin.headers)
    assert response.status_code == 201
    assert response.json()["user_id"] == alice.id

    assert client.post("/api/spotlight/users/999/feature", headers=admin.headers).status_code == 404


def test_unknown_timeframe_is_reported_against_the_query(db):
    with pytest.raises(ValidationError) as excinfo:
        spotlight_service.get_rankings(db, timeframe="daily")
    assert excinfo.value.detail[0]["loc"] == ["query", "timeframe"]
