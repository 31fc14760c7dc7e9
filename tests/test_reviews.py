from bson import ObjectId
from pymongo.errors import PyMongoError

import ratings
from conftest import insert_event


def _review(client, headers, event_id, rating, comment="Well organised"):
    return client.post("/api/v1/reviews", json={"eventId": event_id, "rating": rating, "comment": comment}, headers=headers)


def _event(db, event_id):
    return db["event"].find_one({"_id": ObjectId(event_id)})


def test_reviews_drive_event_rating(client, db, user, other_user):
    event_id = insert_event(db, user[0])

    first = _review(client, user[1], event_id, 5)
    assert first.status_code == 201
    assert first.json()["review"]["user"] == user[0]
    assert first.json()["review"]["status"] == "pending"
    assert _event(db, event_id)["rating"] == 5

    assert _review(client, other_user[1], event_id, 3).status_code == 201
    event = _event(db, event_id)
    assert event["rating"] == 4.0
    assert event["reviewCount"] == 2


def test_one_review_per_user_and_event(client, db, user):
    event_id = insert_event(db, user[0])
    _review(client, user[1], event_id, 4)
    res = _review(client, user[1], event_id, 2)
    assert res.status_code == 400
    assert res.json() == {"msg": "You have already reviewed this event"}
    assert db["review"].count_documents({}) == 1


def test_review_for_missing_event(client, user):
    res = _review(client, user[1], str(ObjectId()), 4)
    assert res.status_code == 404
    assert res.json() == {"msg": ["Event not found"]}


def test_review_rating_range(client, db, user):
    event_id = insert_event(db, user[0])
    res = _review(client, user[1], event_id, 6)
    assert res.status_code == 400
    assert res.json() == {"msg": ["Rating must be between 1 and 5"]}


def test_client_cannot_set_server_fields(client, db, user):
    event_id = insert_event(db, user[0])
    res = client.post("/api/v1/reviews", headers=user[1], json={
        "eventId": event_id, "rating": 4, "user": str(ObjectId()), "isVerified": True, "likes": 99,
    })
    review = res.json()["review"]
    assert review["user"] == user[0]
    assert review["isVerified"] is False
    assert review["likes"] == 0


def test_update_and_delete_refresh_rating(client, db, user, other_user):
    event_id = insert_event(db, user[0])
    review_id = _review(client, user[1], event_id, 5).json()["review"]["id"]
    _review(client, other_user[1], event_id, 3)

    res = client.patch(f"/api/v1/reviews/{review_id}", json={"rating": 1}, headers=user[1])
    assert res.status_code == 200
    assert res.json()["review"]["rating"] == 1
    assert _event(db, event_id)["rating"] == 2.0

    assert client.delete(f"/api/v1/reviews/{review_id}", headers=user[1]).status_code == 200
    event = _event(db, event_id)
    assert event["rating"] == 3.0
    assert event["reviewCount"] == 1


def test_last_review_deleted_resets_rating(client, db, user):
    event_id = insert_event(db, user[0])
    review_id = _review(client, user[1], event_id, 4).json()["review"]["id"]
    client.delete(f"/api/v1/reviews/{review_id}", headers=user[1])
    event = _event(db, event_id)
    assert event["rating"] == 0
    assert event["reviewCount"] == 0


def test_only_author_or_admin_changes_review(client, db, admin, user, other_user):
    event_id = insert_event(db, user[0])
    review_id = _review(client, user[1], event_id, 4).json()["review"]["id"]

    res = client.patch(f"/api/v1/reviews/{review_id}", json={"rating": 1}, headers=other_user[1])
    assert res.status_code == 403
    assert res.json() == {"msg": "Not authorized to update this review"}

    res = client.delete(f"/api/v1/reviews/{review_id}", headers=other_user[1])
    assert res.status_code == 403
    assert res.json() == {"msg": "Not authorized to delete this review"}

    assert client.patch(f"/api/v1/reviews/{review_id}", json={"status": "approved"}, headers=admin[1]).status_code == 200


def test_review_listings(client, db, user, other_user):
    event_id = insert_event(db, user[0])
    _review(client, user[1], event_id, 4)
    _review(client, other_user[1], event_id, 2)

    for_event = client.get(f"/api/v1/reviews/event/{event_id}").json()
    assert for_event["count"] == 2
    mine = client.get("/api/v1/reviews/my-reviews", headers=user[1]).json()["reviews"]
    assert [r["rating"] for r in mine] == [4]
    assert len(client.get("/api/v1/reviews").json()["reviews"]) == 2

    detail = client.get(f"/api/v1/events/{event_id}", headers=user[1]).json()["event"]
    assert len(detail["reviews"]) == 2


def test_failed_refresh_marks_event_stale_until_reconciled(client, db, monkeypatch, admin, user):
    event_id = insert_event(db, user[0])

    def boom(db, event_id):
        raise PyMongoError("primary stepped down")

    monkeypatch.setattr(ratings, "event_rating_summary", boom)
    res = _review(client, user[1], event_id, 5)
    assert res.status_code == 201
    assert _event(db, event_id)["ratingStale"] is True
    assert _event(db, event_id)["rating"] == 0

    monkeypatch.undo()
    assert client.post("/api/v1/reviews/reconcile", headers=user[1]).status_code == 403
    res = client.post("/api/v1/reviews/reconcile", headers=admin[1])
    assert res.json() == {"refreshed": 1, "failed": 0}
    event = _event(db, event_id)
    assert event["ratingStale"] is False
    assert event["rating"] == 5
    assert event["reviewCount"] == 1
